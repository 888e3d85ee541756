import uuid
from typing import Annotated

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth import dependencies
from app.config import settings
from app.core.exceptions import NotFoundError
from app.core.responses import StandardResponse
from app.database import get_db
from app.models.user import User
from app.schemas.lost_found import (
    ClaimRequest,
    FoundItemCreate,
    FoundItemResponse,
    FoundItemUpdate,
    MatchResponse,
)
from app.services import item_service
from app.services.match_queue import MatchQueue, get_match_queue
from app.services.match_service import MatchService

router = APIRouter()


@router.post("", response_model=StandardResponse[FoundItemResponse])
async def create_found_item(
    payload: FoundItemCreate,
    current_user: Annotated[User, Depends(dependencies.get_current_verified_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    match_queue: Annotated[MatchQueue, Depends(get_match_queue)],
):
    item = await item_service.create_found_item(db, current_user, payload)
    if settings.MATCH_QUEUE_ENABLED:
        match_queue.enqueue_match_search(item)
    return StandardResponse(data=FoundItemResponse.model_validate(item), message="Your found item has been posted")


@router.get("", response_model=StandardResponse[list[FoundItemResponse]])
async def list_my_found_items(
    current_user: Annotated[User, Depends(dependencies.get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    items = await item_service.list_user_found_items(db, current_user.id)
    return StandardResponse(data=[FoundItemResponse.model_validate(item) for item in items])


@router.get("/feed", response_model=StandardResponse[list[FoundItemResponse]])
async def found_item_feed(
    current_user: Annotated[User, Depends(dependencies.get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
):
    items = await item_service.found_item_feed(db, limit=limit, offset=offset)
    return StandardResponse(data=[FoundItemResponse.model_validate(item) for item in items])


@router.get("/{item_id}", response_model=StandardResponse[FoundItemResponse])
async def get_found_item(
    item_id: uuid.UUID,
    current_user: Annotated[User, Depends(dependencies.get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    item = await item_service.get_found_item(db, item_id)
    return StandardResponse(data=FoundItemResponse.model_validate(item))


@router.patch("/{item_id}", response_model=StandardResponse[FoundItemResponse])
async def update_found_item(
    item_id: uuid.UUID,
    payload: FoundItemUpdate,
    current_user: Annotated[User, Depends(dependencies.get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    item = await item_service.update_found_item(db, item_id, current_user, payload)
    return StandardResponse(data=FoundItemResponse.model_validate(item), message="Found item updated successfully")


@router.delete("/{item_id}", response_model=StandardResponse[None])
async def delete_found_item(
    item_id: uuid.UUID,
    current_user: Annotated[User, Depends(dependencies.get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    await item_service.delete_found_item(db, item_id, current_user)
    return StandardResponse(message="Found item deleted successfully")


@router.post("/{item_id}/mark-returned", response_model=StandardResponse[FoundItemResponse])
async def mark_found_item_returned(
    item_id: uuid.UUID,
    current_user: Annotated[User, Depends(dependencies.get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    item = await item_service.mark_found_item_returned(db, item_id, current_user)
    return StandardResponse(data=FoundItemResponse.model_validate(item), message="Item marked as returned! Reputation +5.")


@router.post("/{item_id}/close", response_model=StandardResponse[FoundItemResponse])
async def close_found_item(
    item_id: uuid.UUID,
    current_user: Annotated[User, Depends(dependencies.get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    item = await item_service.close_found_item(db, item_id, current_user)
    return StandardResponse(data=FoundItemResponse.model_validate(item), message="Listing closed successfully")


@router.post("/{item_id}/claim", response_model=StandardResponse[MatchResponse])
async def claim_found_item(
    item_id: uuid.UUID,
    current_user: Annotated[User, Depends(dependencies.get_current_verified_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    payload: ClaimRequest | None = Body(None),
):
    answers = payload.answers if payload else None
    match = await MatchService.claim_found_item(db, item_id, current_user, answers)
    return StandardResponse(data=MatchResponse.model_validate(match), message="Claim request sent to the poster")


@router.get("/{item_id}/matches", response_model=StandardResponse[list[MatchResponse]])
async def list_found_item_matches(
    item_id: uuid.UUID,
    current_user: Annotated[User, Depends(dependencies.get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    item = await item_service.get_found_item(db, item_id)
    if item.user_id != current_user.id:
        raise NotFoundError("Found item not found")
    matches = await MatchService.matches_for_found_item(db, item.id)
    return StandardResponse(data=[MatchResponse.model_validate(match) for match in matches])
