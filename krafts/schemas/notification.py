"""Push notification schemas."""

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, Field

from krafts.schemas.common import BaseSchema


class SaveTokenRequest(BaseModel):
    """Register or refresh a device push token."""

    token: str = Field(min_length=1)
    platform: Literal["ios", "android"]
    device_name: str | None = None
    app_version: str | None = None
    os_version: str | None = None
    timezone: str | None = None


class RevokeTokenRequest(BaseModel):
    """Stop sending pushes to a device."""

    token: str = Field(min_length=1)


class DeviceResponse(BaseSchema):
    """Registered device."""

    id: UUID
    token: str
    platform: str
    device_name: str | None = None
    app_version: str | None = None
    os_version: str | None = None
    timezone: str | None = None
    last_seen_at: datetime


class SendNotificationRequest(BaseModel):
    """Admin push.

    Explicit tokens win over user_ids; with neither, every active device is
    targeted.
    """

    tokens: list[str] | None = None
    user_ids: list[UUID] | None = None
    title: str = Field(min_length=1, max_length=255)
    body: str = Field(min_length=1)
    data: dict[str, Any] | None = None


class SendNotificationResponse(BaseModel):
    """Delivery summary."""

    success: bool = True
    sent: int
    failed: int
    revoked: int
