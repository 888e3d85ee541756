"""create lost and found tables

Revision ID: 3c5e8a1f2b7d
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "3c5e8a1f2b7d"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


item_type_enum = sa.Enum(
    "PHONE", "LAPTOP", "TEXTBOOK", "ID", "KEYS", "WALLET", "BACKPACK", "OTHER",
    name="itemtype",
    native_enum=False,
)
lost_item_status_enum = sa.Enum("ACTIVE", "FOUND", "CLOSED", name="lostitemstatus", native_enum=False)
found_item_status_enum = sa.Enum("ACTIVE", "RETURNED", "CLOSED", name="founditemstatus", native_enum=False)
match_status_enum = sa.Enum(
    "PENDING", "MATCHED", "CLAIMED", "APPROVED", "REJECTED", "CANCELLED",
    name="matchstatus",
    native_enum=False,
)


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("uni", sa.String(), nullable=False),
        sa.Column("full_name", sa.String(), nullable=True),
        sa.Column("reputation_score", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("reputation_score >= 0", name="ck_users_reputation_non_negative"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_users_email"), "users", ["email"], unique=True)
    op.create_index(op.f("ix_users_uni"), "users", ["uni"], unique=True)

    op.create_table(
        "lost_items",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("item_type", item_type_enum, nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("location", sa.String(), nullable=False),
        sa.Column("lost_date", sa.Date(), nullable=False),
        sa.Column("status", lost_item_status_enum, nullable=False),
        sa.Column("verification_questions", sa.JSON(), nullable=False),
        sa.Column("photos", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_lost_items_user_id"), "lost_items", ["user_id"], unique=False)
    op.create_index(op.f("ix_lost_items_item_type"), "lost_items", ["item_type"], unique=False)
    op.create_index(op.f("ix_lost_items_lost_date"), "lost_items", ["lost_date"], unique=False)
    op.create_index(op.f("ix_lost_items_status"), "lost_items", ["status"], unique=False)
    op.create_index(op.f("ix_lost_items_created_at"), "lost_items", ["created_at"], unique=False)

    op.create_table(
        "found_items",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("item_type", item_type_enum, nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("location", sa.String(), nullable=False),
        sa.Column("found_date", sa.Date(), nullable=False),
        sa.Column("status", found_item_status_enum, nullable=False),
        sa.Column("photos", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_found_items_user_id"), "found_items", ["user_id"], unique=False)
    op.create_index(op.f("ix_found_items_item_type"), "found_items", ["item_type"], unique=False)
    op.create_index(op.f("ix_found_items_found_date"), "found_items", ["found_date"], unique=False)
    op.create_index(op.f("ix_found_items_status"), "found_items", ["status"], unique=False)
    op.create_index(op.f("ix_found_items_created_at"), "found_items", ["created_at"], unique=False)

    op.create_table(
        "matches",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("lost_item_id", sa.Uuid(), nullable=True),
        sa.Column("found_item_id", sa.Uuid(), nullable=False),
        sa.Column("claimer_id", sa.Uuid(), nullable=True),
        sa.Column("similarity_score", sa.Float(), nullable=False),
        sa.Column("status", match_status_enum, nullable=False),
        sa.Column("verification_answers", sa.JSON(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "similarity_score >= 0 AND similarity_score <= 1",
            name="ck_matches_similarity_score_range",
        ),
        sa.ForeignKeyConstraint(["lost_item_id"], ["lost_items.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["found_item_id"], ["found_items.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["claimer_id"], ["users.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("lost_item_id", "found_item_id", name="uq_matches_lost_found"),
    )
    op.create_index(op.f("ix_matches_lost_item_id"), "matches", ["lost_item_id"], unique=False)
    op.create_index(op.f("ix_matches_found_item_id"), "matches", ["found_item_id"], unique=False)
    op.create_index(op.f("ix_matches_claimer_id"), "matches", ["claimer_id"], unique=False)
    op.create_index(op.f("ix_matches_status"), "matches", ["status"], unique=False)
    op.create_index(op.f("ix_matches_created_at"), "matches", ["created_at"], unique=False)

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=True),
        sa.Column("action", sa.String(), nullable=False),
        sa.Column("target_id", sa.String(), nullable=True),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=True),
        sa.Column("details", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_audit_logs_action"), "audit_logs", ["action"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_audit_logs_action"), table_name="audit_logs")
    op.drop_table("audit_logs")

    for column in ("created_at", "status", "claimer_id", "found_item_id", "lost_item_id"):
        op.drop_index(op.f(f"ix_matches_{column}"), table_name="matches")
    op.drop_table("matches")

    for column in ("created_at", "status", "found_date", "item_type", "user_id"):
        op.drop_index(op.f(f"ix_found_items_{column}"), table_name="found_items")
    op.drop_table("found_items")

    for column in ("created_at", "status", "lost_date", "item_type", "user_id"):
        op.drop_index(op.f(f"ix_lost_items_{column}"), table_name="lost_items")
    op.drop_table("lost_items")

    op.drop_index(op.f("ix_users_uni"), table_name="users")
    op.drop_index(op.f("ix_users_email"), table_name="users")
    op.drop_table("users")
