from datetime import datetime, timezone
import logging
import re
from typing import Any
import uuid

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.exceptions import NotFoundError, ValidationFailedError
from app.models.enums import ContactPreference, ProfileVisibility
from app.models.user import User

logger = logging.getLogger(__name__)

UNI_PATTERN = re.compile(r"^[a-z]{2,3}\d{4}$")
PROFILE_EDITABLE_FIELDS = (
    "full_name",
    "first_name",
    "last_name",
    "bio",
    "phone",
    "profile_photo",
    "contact_preference",
    "profile_visibility",
)


def uni_from_email(email: str) -> str:
    return email.split("@", 1)[0].strip().lower()


def validate_registration(email: str) -> dict[str, list[str]]:
    errors: dict[str, list[str]] = {}
    normalized = (email or "").strip().lower()
    domain = settings.INSTITUTION_EMAIL_DOMAIN.lower()
    if not normalized:
        errors.setdefault("email", []).append("can't be blank")
        return errors
    if not re.fullmatch(r"[\w+\-.]+@" + re.escape(domain), normalized):
        errors.setdefault("email", []).append(f"must be a @{domain} address")
        return errors
    if not UNI_PATTERN.match(uni_from_email(normalized)):
        errors.setdefault("uni", []).append("is invalid")
    return errors


async def register_user(db: AsyncSession, email: str, full_name: str | None = None) -> User:
    errors = validate_registration(email)
    if errors:
        raise ValidationFailedError(errors)

    email = email.strip().lower()
    uni = uni_from_email(email)
    taken = await db.execute(select(User.email, User.uni).where((User.email == email) | (User.uni == uni)))
    for row_email, row_uni in taken.all():
        if row_email == email:
            errors.setdefault("email", []).append("has already been taken")
        if row_uni == uni:
            errors.setdefault("uni", []).append("has already been taken")
    if errors:
        raise ValidationFailedError(errors)

    # Accounts are auto-verified until email confirmation exists.
    user = User(
        email=email,
        uni=uni,
        full_name=(full_name or "").strip() or None,
        reputation_score=0,
        verified=True,
    )
    db.add(user)
    try:
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        raise ValidationFailedError({"email": ["has already been taken"]}) from exc
    await db.refresh(user)
    return user


async def get_user(db: AsyncSession, user_id: uuid.UUID) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


async def update_profile(db: AsyncSession, user: User, changes: dict[str, Any]) -> User:
    """Apply a profile edit and stamp ``last_active_at``.

    ``changes`` holds only the fields the caller sent; None clears a field.
    """
    for field, value in changes.items():
        if field not in PROFILE_EDITABLE_FIELDS:
            raise ValidationFailedError({field: ["cannot be changed"]})
        if field in ("contact_preference", "profile_visibility") and value is None:
            raise ValidationFailedError({field: ["can't be blank"]})

    phone = changes.get("phone", user.phone)
    preference = changes.get("contact_preference") or user.contact_preference
    if preference == ContactPreference.PHONE and not phone:
        raise ValidationFailedError({"phone": ["can't be blank when phone is the contact preference"]})

    for field, value in changes.items():
        setattr(user, field, value)
    user.last_active_at = datetime.now(timezone.utc)
    try:
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    await db.refresh(user)
    logger.info("User %s updated profile fields %s", user.id, sorted(changes))
    return user


async def get_visible_user(db: AsyncSession, user_id: uuid.UUID, viewer: User) -> User:
    """Private profiles are visible only to their owner; others see a 404."""
    user = await get_user(db, user_id)
    if user.id != viewer.id and user.profile_visibility == ProfileVisibility.PRIVATE:
        raise NotFoundError("User not found")
    return user
