"""Push notification models."""

import enum
import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, ForeignKey, String, Text, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from krafts.models.base import BaseModel

if TYPE_CHECKING:
    from krafts.models.user import User


class DevicePlatform(str, enum.Enum):
    """Mobile platform a push token belongs to."""

    IOS = "ios"
    ANDROID = "android"


class ExpoPushToken(BaseModel):
    """Expo push token registered by a device."""

    __tablename__ = "expo_push_tokens"
    __table_args__ = (
        UniqueConstraint("user_id", "token", name="uq_expo_push_tokens_user_token"),
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    token: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    platform: Mapped[str] = mapped_column(String(16), nullable=False)
    device_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    app_version: Mapped[str | None] = mapped_column(String(50), nullable=True)
    os_version: Mapped[str | None] = mapped_column(String(50), nullable=True)
    timezone: Mapped[str | None] = mapped_column(String(64), nullable=True)
    revoked: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    last_seen_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    user: Mapped["User"] = relationship("User", back_populates="push_tokens")

    def __repr__(self) -> str:
        return f"<ExpoPushToken {self.platform} revoked={self.revoked}>"
