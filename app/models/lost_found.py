import uuid
from datetime import date, datetime, timezone
from typing import Any, ClassVar

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Date,
    DateTime,
    Enum as SAEnum,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from app.database import Base
from app.models.enums import FoundItemStatus, ItemKind, ItemType, LostItemStatus, MatchStatus


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LostItem(Base):
    __tablename__ = "lost_items"
    kind: ClassVar[ItemKind] = ItemKind.LOST

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    item_type: Mapped[ItemType] = mapped_column(SAEnum(ItemType, native_enum=False), nullable=False, index=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    location: Mapped[str] = mapped_column(String, nullable=False)
    lost_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    status: Mapped[LostItemStatus] = mapped_column(
        SAEnum(LostItemStatus, native_enum=False),
        nullable=False,
        default=LostItemStatus.ACTIVE,
        index=True,
    )
    # [{"question": ..., "answer": ...}, ...] in display order
    verification_questions: Mapped[list[dict[str, str]]] = mapped_column(JSON, nullable=False, default=list)
    photos: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)

    user = relationship("User")
    matches = relationship(
        "Match",
        back_populates="lost_item",
        cascade="all, delete",
        passive_deletes=True,
    )

    @property
    def item_date(self) -> date:
        return self.lost_date


class FoundItem(Base):
    __tablename__ = "found_items"
    kind: ClassVar[ItemKind] = ItemKind.FOUND

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    item_type: Mapped[ItemType] = mapped_column(SAEnum(ItemType, native_enum=False), nullable=False, index=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    location: Mapped[str] = mapped_column(String, nullable=False)
    found_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    status: Mapped[FoundItemStatus] = mapped_column(
        SAEnum(FoundItemStatus, native_enum=False),
        nullable=False,
        default=FoundItemStatus.ACTIVE,
        index=True,
    )
    photos: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)

    user = relationship("User")
    matches = relationship(
        "Match",
        back_populates="found_item",
        cascade="all, delete",
        passive_deletes=True,
    )

    @property
    def item_date(self) -> date:
        return self.found_date


class Match(Base):
    __tablename__ = "matches"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    lost_item_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("lost_items.id", ondelete="CASCADE"), nullable=True, index=True
    )
    found_item_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("found_items.id", ondelete="CASCADE"), nullable=False, index=True
    )
    claimer_id: Mapped[uuid.UUID | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    similarity_score: Mapped[float] = mapped_column(Float, nullable=False)
    status: Mapped[MatchStatus] = mapped_column(
        SAEnum(MatchStatus, native_enum=False),
        nullable=False,
        default=MatchStatus.PENDING,
        index=True,
    )
    # question index (as a string) -> submitted answer
    verification_answers: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)

    lost_item = relationship("LostItem", back_populates="matches")
    found_item = relationship("FoundItem", back_populates="matches")
    claimer = relationship("User")

    __table_args__ = (
        UniqueConstraint("lost_item_id", "found_item_id", name="uq_matches_lost_found"),
        CheckConstraint(
            "similarity_score >= 0 AND similarity_score <= 1",
            name="ck_matches_similarity_score_range",
        ),
    )
    __mapper_args__ = {"version_id_col": version}

    @validates("similarity_score")
    def _validate_similarity_score(self, key: str, value: float) -> float:
        if value is None or not 0.0 <= value <= 1.0:
            raise ValueError(f"similarity_score must be within [0, 1], got {value!r}")
        return value
