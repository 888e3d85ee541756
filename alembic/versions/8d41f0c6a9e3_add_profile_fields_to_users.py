"""add profile fields to users

Revision ID: 8d41f0c6a9e3
Revises: 3c5e8a1f2b7d
Create Date: 2026-10-19 14:30:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "8d41f0c6a9e3"
down_revision: Union[str, Sequence[str], None] = "3c5e8a1f2b7d"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


contact_preference_enum = sa.Enum("EMAIL", "PHONE", name="contactpreference", native_enum=False)
profile_visibility_enum = sa.Enum("PUBLIC", "PRIVATE", name="profilevisibility", native_enum=False)


def upgrade() -> None:
    op.add_column("users", sa.Column("first_name", sa.String(length=50), nullable=True))
    op.add_column("users", sa.Column("last_name", sa.String(length=50), nullable=True))
    op.add_column("users", sa.Column("bio", sa.Text(), nullable=True))
    op.add_column("users", sa.Column("phone", sa.String(length=32), nullable=True))
    op.add_column("users", sa.Column("profile_photo", sa.String(), nullable=True))
    op.add_column(
        "users",
        sa.Column("contact_preference", contact_preference_enum, nullable=False, server_default="EMAIL"),
    )
    op.add_column(
        "users",
        sa.Column("profile_visibility", profile_visibility_enum, nullable=False, server_default="PUBLIC"),
    )
    op.add_column("users", sa.Column("last_active_at", sa.DateTime(timezone=True), nullable=True))


def downgrade() -> None:
    for column in (
        "last_active_at",
        "profile_visibility",
        "contact_preference",
        "profile_photo",
        "phone",
        "bio",
        "last_name",
        "first_name",
    ):
        op.drop_column("users", column)
