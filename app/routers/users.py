from typing import Annotated
import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth import dependencies
from app.auth.schemas import (
    PublicUserResponse,
    RegistrationResponse,
    Token,
    UserCreate,
    UserResponse,
    UserUpdate,
)
from app.auth.security import create_access_token
from app.core.responses import StandardResponse
from app.database import get_db
from app.models.user import User
from app.services import user_service

router = APIRouter()


@router.post("", response_model=StandardResponse[RegistrationResponse], status_code=201)
async def register(
    payload: UserCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Register with an institution email; the uni is taken from the address."""
    user = await user_service.register_user(db, payload.email, payload.full_name)
    token = Token(access_token=create_access_token(user.id))
    return StandardResponse(
        data=RegistrationResponse(user=UserResponse.model_validate(user), token=token),
        message="Welcome to Campus Lost & Found",
    )


@router.get("/me", response_model=StandardResponse[UserResponse])
async def read_current_user(
    current_user: Annotated[User, Depends(dependencies.get_current_user)],
):
    return StandardResponse(data=UserResponse.model_validate(current_user))


@router.patch("/me", response_model=StandardResponse[UserResponse])
async def update_current_user(
    payload: UserUpdate,
    current_user: Annotated[User, Depends(dependencies.get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    user = await user_service.update_profile(db, current_user, payload.model_dump(exclude_unset=True))
    return StandardResponse(data=UserResponse.model_validate(user), message="Profile updated successfully")


@router.get("/{user_id}", response_model=StandardResponse[PublicUserResponse])
async def read_user(
    user_id: uuid.UUID,
    current_user: Annotated[User, Depends(dependencies.get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    user = await user_service.get_visible_user(db, user_id, current_user)
    return StandardResponse(data=PublicUserResponse.model_validate(user))
