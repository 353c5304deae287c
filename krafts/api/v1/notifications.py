"""Push notification endpoints."""

from fastapi import APIRouter

from krafts.api.deps import AdminProfile, CurrentUser, DbSession
from krafts.schemas.common import SuccessResponse
from krafts.schemas.notification import (
    DeviceResponse,
    RevokeTokenRequest,
    SaveTokenRequest,
    SendNotificationRequest,
    SendNotificationResponse,
)
from krafts.services.notifications import NotificationService

router = APIRouter()


@router.post("/save-token", response_model=DeviceResponse)
async def save_token(
    body: SaveTokenRequest,
    db: DbSession,
    current_user: CurrentUser,
) -> DeviceResponse:
    """Register this device for push notifications."""
    token = await NotificationService(db).save_token(current_user.id, body)
    return DeviceResponse.model_validate(token)


@router.post("/revoke-token", response_model=SuccessResponse)
async def revoke_token(
    body: RevokeTokenRequest,
    db: DbSession,
    current_user: CurrentUser,
) -> SuccessResponse:
    await NotificationService(db).revoke_token(current_user.id, body.token)
    return SuccessResponse(message="Token revoked")


@router.get("/my-devices", response_model=list[DeviceResponse])
async def my_devices(db: DbSession, current_user: CurrentUser) -> list[DeviceResponse]:
    tokens = await NotificationService(db).list_devices(current_user.id)
    return [DeviceResponse.model_validate(t) for t in tokens]


@router.post("/send", response_model=SendNotificationResponse)
async def send_notification(
    body: SendNotificationRequest,
    db: DbSession,
    _: AdminProfile,
) -> SendNotificationResponse:
    """Admin push to selected users, explicit tokens or every device."""
    counts = await NotificationService(db).send(body)
    return SendNotificationResponse(**counts)
