from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth import dependencies
from app.core.responses import StandardResponse
from app.database import get_db
from app.models.user import User
from app.schemas.lost_found import (
    DashboardResponse,
    FoundItemResponse,
    LostItemResponse,
    MatchResponse,
)
from app.services import item_service

router = APIRouter()


@router.get("", response_model=StandardResponse[DashboardResponse])
async def get_dashboard(
    current_user: Annotated[User, Depends(dependencies.get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    summary = await item_service.dashboard_summary(db, current_user)
    data = DashboardResponse(
        active_lost_items=[LostItemResponse.model_validate(item) for item in summary["active_lost_items"]],
        active_found_items=[FoundItemResponse.model_validate(item) for item in summary["active_found_items"]],
        open_matches=[MatchResponse.model_validate(match) for match in summary["open_matches"]],
        recent_activity=summary["recent_activity"],
        reputation_score=summary["reputation_score"],
        good_samaritan=summary["good_samaritan"],
    )
    return StandardResponse(data=data)
