"""User endpoints."""

from uuid import UUID

from fastapi import APIRouter

from krafts.api.deps import CurrentUser, DbSession
from krafts.schemas.profile import UserResponse
from krafts.services.profiles import ProfileService

router = APIRouter()


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: CurrentUser) -> UserResponse:
    """Get current authenticated user."""
    return UserResponse.model_validate(current_user)


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(user_id: UUID, db: DbSession, _: CurrentUser) -> UserResponse:
    """User with their profiles."""
    user = await ProfileService(db).get_user(user_id)
    return UserResponse.model_validate(user)
