"""Authentication endpoints."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials

from krafts.api.deps import CurrentUser, DbSession, Photos, security
from krafts.core.config import settings
from krafts.core.rate_limit import enforce_rate_limit
from krafts.schemas.auth import (
    AuthResponse,
    CleanupResponse,
    CurrentUserResponse,
    SendOtpRequest,
    SendOtpResponse,
    SignupRequest,
    VerifyOtpRequest,
    VerifyOtpResponse,
)
from krafts.schemas.profile import UserResponse
from krafts.services.auth import AuthService
from krafts.services.otp import SmsDeliveryError
from krafts.services.profiles import ProfileService, build_profile_response

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/send-otp", response_model=SendOtpResponse, response_model_exclude_none=True)
async def send_otp(body: SendOtpRequest, request: Request, db: DbSession) -> SendOtpResponse:
    """Send a login/signup OTP to a phone number."""
    enforce_rate_limit(
        request,
        user_id=None,
        limit_per_minute=settings.rate_limit_auth_per_minute,
        scope="auth",
    )
    try:
        return await AuthService(db).send_otp(body.phone)
    except SmsDeliveryError as e:
        logger.error(f"OTP SMS delivery failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to send OTP",
        ) from e


@router.post("/verify-otp", response_model=VerifyOtpResponse, response_model_exclude_none=True)
async def verify_otp(body: VerifyOtpRequest, request: Request, db: DbSession) -> VerifyOtpResponse:
    """Verify an OTP; returns a signup token for new users, an access token otherwise."""
    enforce_rate_limit(
        request,
        user_id=None,
        limit_per_minute=settings.rate_limit_auth_per_minute,
        scope="auth",
    )
    return await AuthService(db).verify_otp(body.phone, body.otp)


@router.post("/signup", response_model=AuthResponse)
async def signup(
    body: SignupRequest,
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
    db: DbSession,
    photos: Photos,
) -> AuthResponse:
    """Register a user with the signup token from verify-otp."""
    return await AuthService(db, photos=photos).signup(credentials.credentials, body)


@router.get("/profile", response_model=CurrentUserResponse)
async def get_auth_profile(current_user: CurrentUser, db: DbSession) -> CurrentUserResponse:
    """The authenticated user and their primary profile."""
    profile = None
    if current_user.profiles:
        profile = await ProfileService(db).get_profile(current_user.profiles[0].id)
    return CurrentUserResponse(
        user=UserResponse.model_validate(current_user),
        profile=build_profile_response(profile) if profile else None,
    )


@router.post("/cleanup-otps", response_model=CleanupResponse)
async def cleanup_otps(db: DbSession) -> CleanupResponse:
    """Delete expired OTP rows."""
    deleted = await AuthService(db).cleanup_expired_otps()
    return CleanupResponse(deleted=deleted)
