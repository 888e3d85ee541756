import uuid
from datetime import datetime, timezone
from sqlalchemy import Boolean, CheckConstraint, DateTime, Enum as SAEnum, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from app.database import Base
from app.models.enums import ContactPreference, ProfileVisibility

GOOD_SAMARITAN_THRESHOLD = 10

# Fields counted towards profile completion.
PROFILE_FIELDS = ("first_name", "last_name", "bio", "phone", "profile_photo")

class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String, unique=True, index=True, nullable=False)
    uni: Mapped[str] = mapped_column(String, unique=True, index=True, nullable=False)
    full_name: Mapped[str | None] = mapped_column(String, nullable=True)
    reputation_score: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    # Profile
    first_name: Mapped[str | None] = mapped_column(String(50), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(50), nullable=True)
    bio: Mapped[str | None] = mapped_column(Text, nullable=True)
    phone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    profile_photo: Mapped[str | None] = mapped_column(String, nullable=True)
    contact_preference: Mapped[ContactPreference] = mapped_column(
        SAEnum(ContactPreference, native_enum=False),
        default=ContactPreference.EMAIL,
        nullable=False,
    )
    profile_visibility: Mapped[ProfileVisibility] = mapped_column(
        SAEnum(ProfileVisibility, native_enum=False),
        default=ProfileVisibility.PUBLIC,
        nullable=False,
    )
    last_active_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint("reputation_score >= 0", name="ck_users_reputation_non_negative"),
    )

    @property
    def good_samaritan(self) -> bool:
        return (self.reputation_score or 0) >= GOOD_SAMARITAN_THRESHOLD

    @property
    def display_name(self) -> str:
        names = " ".join(part for part in (self.first_name, self.last_name) if part)
        return names or self.full_name or self.uni

    @property
    def profile_completion(self) -> int:
        """Percentage of the optional profile fields that are filled in."""
        filled = sum(1 for field in PROFILE_FIELDS if (getattr(self, field) or "").strip())
        return round(100 * filled / len(PROFILE_FIELDS))
