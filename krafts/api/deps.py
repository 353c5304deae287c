"""API dependencies."""

from collections.abc import Callable
from typing import Annotated
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from krafts.core.database import get_db
from krafts.core.security import TOKEN_TYPE_ACCESS, verify_token
from krafts.models.profile import ADMIN_ROLES, Profile
from krafts.models.user import User
from krafts.services.photo import PhotoService, get_photo_service

security = HTTPBearer()

DbSession = Annotated[AsyncSession, Depends(get_db)]


def user_id_from_token(token: str) -> UUID:
    """Validate an access token and return the user id it was issued for.

    Raises:
        HTTPException(401) for expired, malformed or non-access tokens
    """
    payload = verify_token(token)
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if payload.get("type") != TOKEN_TYPE_ACCESS:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token type",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        return UUID(str(payload.get("sub")))
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        ) from None


async def load_user(db: AsyncSession, user_id: UUID) -> User:
    result = await db.execute(
        select(User).options(selectinload(User.profiles)).where(User.id == user_id)
    )
    user = result.scalar_one_or_none()
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
    db: DbSession,
) -> User:
    """Get current authenticated user from JWT token."""
    user_id = user_id_from_token(credentials.credentials)
    return await load_user(db, user_id)


CurrentUser = Annotated[User, Depends(get_current_user)]


async def get_current_profile(current_user: CurrentUser) -> Profile:
    """The caller's primary (first created) profile."""
    if not current_user.profiles:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User profile not found",
        )
    return current_user.profiles[0]


CurrentProfile = Annotated[Profile, Depends(get_current_profile)]


def require_roles(*roles: str) -> Callable:
    """Dependency factory restricting an endpoint to profiles with given roles."""
    allowed = frozenset(roles)

    async def checker(profile: CurrentProfile) -> Profile:
        if profile.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return profile

    return checker


AdminProfile = Annotated[Profile, Depends(require_roles(*ADMIN_ROLES))]

Photos = Annotated[PhotoService, Depends(get_photo_service)]
