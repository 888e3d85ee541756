from datetime import date, datetime
from typing import Any, Optional
from urllib.parse import urlparse
import uuid

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.models.enums import FoundItemStatus, ItemType, LostItemStatus, MatchStatus

IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif", ".webp", ".bmp")
IMAGE_HOSTS = ("postimg.cc", "drive.google.com", "dropbox.com")


def is_image_url(url: str) -> bool:
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        return False
    host = parsed.hostname.lower()
    if any(pattern in host for pattern in IMAGE_HOSTS):
        return True
    return parsed.path.lower().endswith(IMAGE_EXTENSIONS)


def clean_photo_urls(value: Any) -> list[str]:
    """Accept a list or a comma/newline separated string; drop non-image URLs."""
    if value is None:
        return []
    if isinstance(value, str):
        value = value.replace("\n", ",").split(",")
    urls = [str(url).strip() for url in value]
    return [url for url in urls if url and is_image_url(url)]


def _to_date(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, str) and "T" in value:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).date()
    return value


def _strip(value: Any) -> Any:
    return value.strip() if isinstance(value, str) else value


class VerificationQuestion(BaseModel):
    question: str = Field(min_length=1, max_length=300)
    answer: str = Field(min_length=1, max_length=300)


class ItemBase(BaseModel):
    item_type: ItemType
    description: str = Field(min_length=10, max_length=500)
    location: str = Field(min_length=1, max_length=200)
    photos: list[str] = Field(default_factory=list)

    @field_validator("description", "location", mode="before")
    @classmethod
    def strip_text(cls, value: Any) -> Any:
        return _strip(value)

    @field_validator("photos", mode="before")
    @classmethod
    def clean_photos(cls, value: Any) -> list[str]:
        return clean_photo_urls(value)


class LostItemCreate(ItemBase):
    lost_date: date
    verification_questions: list[VerificationQuestion] = Field(default_factory=list)

    @field_validator("lost_date", mode="before")
    @classmethod
    def truncate_lost_date(cls, value: Any) -> Any:
        return _to_date(value)


class FoundItemCreate(ItemBase):
    found_date: date

    @field_validator("found_date", mode="before")
    @classmethod
    def truncate_found_date(cls, value: Any) -> Any:
        return _to_date(value)


class ItemUpdateBase(BaseModel):
    item_type: Optional[ItemType] = None
    description: Optional[str] = Field(default=None, min_length=10, max_length=500)
    location: Optional[str] = Field(default=None, min_length=1, max_length=200)
    photos: Optional[list[str]] = None

    @field_validator("description", "location", mode="before")
    @classmethod
    def strip_text(cls, value: Any) -> Any:
        return _strip(value)

    @field_validator("photos", mode="before")
    @classmethod
    def clean_photos(cls, value: Any) -> Optional[list[str]]:
        if value is None:
            return None
        return clean_photo_urls(value)


class LostItemUpdate(ItemUpdateBase):
    lost_date: Optional[date] = None
    verification_questions: Optional[list[VerificationQuestion]] = None

    @field_validator("lost_date", mode="before")
    @classmethod
    def truncate_lost_date(cls, value: Any) -> Any:
        return _to_date(value)


class FoundItemUpdate(ItemUpdateBase):
    found_date: Optional[date] = None

    @field_validator("found_date", mode="before")
    @classmethod
    def truncate_found_date(cls, value: Any) -> Any:
        return _to_date(value)


class LostItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: uuid.UUID
    item_type: ItemType
    description: str
    location: str
    lost_date: date
    status: LostItemStatus
    photos: list[str]
    created_at: datetime
    updated_at: datetime


class LostItemOwnerResponse(LostItemResponse):
    """Includes the verification answers; only ever returned to the owner."""
    verification_questions: list[VerificationQuestion]


class FoundItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: uuid.UUID
    item_type: ItemType
    description: str
    location: str
    found_date: date
    status: FoundItemStatus
    photos: list[str]
    created_at: datetime
    updated_at: datetime


class ClaimRequest(BaseModel):
    # question index -> answer
    answers: dict[str, str] = Field(default_factory=dict)


class MatchResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    lost_item_id: uuid.UUID | None
    found_item_id: uuid.UUID
    claimer_id: uuid.UUID | None
    similarity_score: float
    status: MatchStatus
    created_at: datetime
    updated_at: datetime


class MatchDetailResponse(MatchResponse):
    lost_item: LostItemResponse | None = None
    found_item: FoundItemResponse
    verification_questions: list[str] = Field(default_factory=list)
    verification_answers: dict[str, str] | None = None
    verification_ratio: float | None = None


class DashboardResponse(BaseModel):
    active_lost_items: list[LostItemResponse]
    active_found_items: list[FoundItemResponse]
    open_matches: list[MatchResponse]
    recent_activity: list[dict[str, Any]]
    reputation_score: int
    good_samaritan: bool
