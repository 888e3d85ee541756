import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth import dependencies
from app.config import settings
from app.core.exceptions import NotFoundError
from app.core.responses import StandardResponse
from app.database import get_db
from app.models.enums import ItemType
from app.models.lost_found import LostItem
from app.models.user import User
from app.schemas.lost_found import (
    LostItemCreate,
    LostItemOwnerResponse,
    LostItemResponse,
    LostItemUpdate,
    MatchResponse,
)
from app.services import item_service
from app.services.match_queue import MatchQueue, get_match_queue
from app.services.match_service import MatchService

router = APIRouter()


def _serialize(item: LostItem, viewer: User) -> LostItemResponse:
    if item.user_id == viewer.id:
        return LostItemOwnerResponse.model_validate(item)
    return LostItemResponse.model_validate(item)


@router.post("", response_model=StandardResponse[LostItemOwnerResponse])
async def create_lost_item(
    payload: LostItemCreate,
    current_user: Annotated[User, Depends(dependencies.get_current_verified_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    match_queue: Annotated[MatchQueue, Depends(get_match_queue)],
):
    item = await item_service.create_lost_item(db, current_user, payload)
    if settings.MATCH_QUEUE_ENABLED:
        match_queue.enqueue_match_search(item)
    return StandardResponse(data=LostItemOwnerResponse.model_validate(item), message="Lost item posted successfully")


@router.get("", response_model=StandardResponse[list[LostItemOwnerResponse]])
async def list_my_lost_items(
    current_user: Annotated[User, Depends(dependencies.get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    item_type: ItemType | None = Query(None),
    location: str | None = Query(None),
):
    items = await item_service.list_user_lost_items(db, current_user.id, item_type=item_type, location=location)
    return StandardResponse(data=[LostItemOwnerResponse.model_validate(item) for item in items])


@router.get("/all", response_model=StandardResponse[list[LostItemResponse]])
async def list_active_lost_items(
    current_user: Annotated[User, Depends(dependencies.get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
):
    items = await item_service.list_active_lost_items(db, limit=limit, offset=offset)
    return StandardResponse(data=[LostItemResponse.model_validate(item) for item in items])


@router.get("/{item_id}", response_model=StandardResponse[LostItemOwnerResponse | LostItemResponse])
async def get_lost_item(
    item_id: uuid.UUID,
    current_user: Annotated[User, Depends(dependencies.get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    item = await item_service.get_lost_item(db, item_id)
    return StandardResponse(data=_serialize(item, current_user))


@router.patch("/{item_id}", response_model=StandardResponse[LostItemOwnerResponse])
async def update_lost_item(
    item_id: uuid.UUID,
    payload: LostItemUpdate,
    current_user: Annotated[User, Depends(dependencies.get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    item = await item_service.update_lost_item(db, item_id, current_user, payload)
    return StandardResponse(data=LostItemOwnerResponse.model_validate(item), message="Lost item updated successfully")


@router.delete("/{item_id}", response_model=StandardResponse[None])
async def delete_lost_item(
    item_id: uuid.UUID,
    current_user: Annotated[User, Depends(dependencies.get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    await item_service.delete_lost_item(db, item_id, current_user)
    return StandardResponse(message="Lost item deleted successfully")


@router.post("/{item_id}/mark-found", response_model=StandardResponse[LostItemOwnerResponse])
async def mark_lost_item_found(
    item_id: uuid.UUID,
    current_user: Annotated[User, Depends(dependencies.get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    item = await item_service.mark_lost_item_found(db, item_id, current_user)
    return StandardResponse(data=LostItemOwnerResponse.model_validate(item), message="Item marked as found")


@router.post("/{item_id}/close", response_model=StandardResponse[LostItemOwnerResponse])
async def close_lost_item(
    item_id: uuid.UUID,
    current_user: Annotated[User, Depends(dependencies.get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    item = await item_service.close_lost_item(db, item_id, current_user)
    return StandardResponse(data=LostItemOwnerResponse.model_validate(item), message="Lost item post closed")


@router.get("/{item_id}/matches", response_model=StandardResponse[list[MatchResponse]])
async def list_lost_item_matches(
    item_id: uuid.UUID,
    current_user: Annotated[User, Depends(dependencies.get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    item = await item_service.get_lost_item(db, item_id)
    if item.user_id != current_user.id:
        raise NotFoundError("Lost item not found")
    matches = await MatchService.matches_for_lost_item(db, item.id)
    return StandardResponse(data=[MatchResponse.model_validate(match) for match in matches])
