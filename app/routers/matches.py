import uuid
from typing import Annotated

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth import dependencies
from app.core.responses import StandardResponse
from app.database import get_db
from app.models.enums import MatchStatus
from app.models.lost_found import Match
from app.models.user import User
from app.schemas.lost_found import (
    ClaimRequest,
    FoundItemResponse,
    LostItemResponse,
    MatchDetailResponse,
    MatchResponse,
)
from app.services.match_service import MatchService, verification_ratio

router = APIRouter()


def _detail(match: Match, viewer: User) -> MatchDetailResponse:
    """Questions are shown without answers; submitted answers only to the finder and claimer."""
    lost_item = match.lost_item
    questions = lost_item.verification_questions if lost_item is not None else []
    is_finder = match.found_item.user_id == viewer.id

    detail = MatchDetailResponse(
        **MatchResponse.model_validate(match).model_dump(),
        lost_item=LostItemResponse.model_validate(lost_item) if lost_item is not None else None,
        found_item=FoundItemResponse.model_validate(match.found_item),
        verification_questions=[q.get("question", "") for q in questions or []],
    )
    if is_finder or match.claimer_id == viewer.id:
        detail.verification_answers = match.verification_answers or {}
    if is_finder:
        detail.verification_ratio = verification_ratio(lost_item, match.verification_answers)
    return detail


@router.get("", response_model=StandardResponse[list[MatchResponse]])
async def list_my_matches(
    current_user: Annotated[User, Depends(dependencies.get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    status: MatchStatus | None = Query(None),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
):
    matches = await MatchService.matches_for_user(db, current_user.id, status=status, limit=limit, offset=offset)
    return StandardResponse(data=[MatchResponse.model_validate(match) for match in matches])


@router.get("/{match_id}", response_model=StandardResponse[MatchDetailResponse])
async def get_match(
    match_id: uuid.UUID,
    current_user: Annotated[User, Depends(dependencies.get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    match = await MatchService.get_match_for_user(db, match_id, current_user)
    return StandardResponse(data=_detail(match, current_user))


@router.post("/{match_id}/approve", response_model=StandardResponse[MatchResponse])
async def approve_match(
    match_id: uuid.UUID,
    current_user: Annotated[User, Depends(dependencies.get_current_verified_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    match = await MatchService.approve_match(db, match_id, current_user)
    return StandardResponse(data=MatchResponse.model_validate(match), message="Match approved! Item marked as returned.")


@router.post("/{match_id}/reject", response_model=StandardResponse[MatchResponse])
async def reject_match(
    match_id: uuid.UUID,
    current_user: Annotated[User, Depends(dependencies.get_current_verified_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    match = await MatchService.reject_match(db, match_id, current_user)
    return StandardResponse(data=MatchResponse.model_validate(match), message="Match rejected")


@router.post("/{match_id}/claim", response_model=StandardResponse[MatchResponse])
async def claim_match(
    match_id: uuid.UUID,
    current_user: Annotated[User, Depends(dependencies.get_current_verified_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    payload: ClaimRequest | None = Body(None),
):
    answers = payload.answers if payload else None
    match = await MatchService.claim_match(db, match_id, current_user, answers)
    return StandardResponse(data=MatchResponse.model_validate(match), message="Claim submitted to the finder")
