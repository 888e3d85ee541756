from datetime import datetime
from typing import Any, Optional
import uuid

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from app.models.enums import ContactPreference, ProfileVisibility
from app.schemas.lost_found import is_image_url

PHONE_PATTERN = r"^\+?[0-9][0-9 ().-]{5,18}[0-9]$"


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class TokenPayload(BaseModel):
    sub: Optional[str] = None
    exp: Optional[int] = None
    type: Optional[str] = None


class UserCreate(BaseModel):
    email: EmailStr
    full_name: Optional[str] = Field(default=None, max_length=120)


class UserUpdate(BaseModel):
    """Profile edit. Omitted fields are left alone; blank strings clear a field."""
    full_name: Optional[str] = Field(default=None, max_length=120)
    first_name: Optional[str] = Field(default=None, min_length=2, max_length=50)
    last_name: Optional[str] = Field(default=None, min_length=2, max_length=50)
    bio: Optional[str] = Field(default=None, max_length=500)
    phone: Optional[str] = Field(default=None, pattern=PHONE_PATTERN)
    profile_photo: Optional[str] = Field(default=None, max_length=500)
    contact_preference: Optional[ContactPreference] = None
    profile_visibility: Optional[ProfileVisibility] = None

    @field_validator("full_name", "first_name", "last_name", "bio", "phone", "profile_photo", mode="before")
    @classmethod
    def blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    @field_validator("profile_photo")
    @classmethod
    def photo_must_be_an_image_url(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not is_image_url(value):
            raise ValueError("must be an image URL")
        return value


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    email: str
    uni: str
    full_name: Optional[str] = None
    display_name: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    bio: Optional[str] = None
    phone: Optional[str] = None
    profile_photo: Optional[str] = None
    contact_preference: ContactPreference
    profile_visibility: ProfileVisibility
    profile_completion: int
    reputation_score: int
    good_samaritan: bool
    verified: bool
    created_at: datetime
    last_active_at: Optional[datetime] = None


class PublicUserResponse(BaseModel):
    """What other students see: no email or phone."""
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    uni: str
    full_name: Optional[str] = None
    display_name: str
    bio: Optional[str] = None
    profile_photo: Optional[str] = None
    reputation_score: int
    good_samaritan: bool
    created_at: datetime


class RegistrationResponse(BaseModel):
    user: UserResponse
    token: Token
