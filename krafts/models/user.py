"""User and OTP models."""

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from krafts.models.base import BaseModel, BaseModelNoUpdate

if TYPE_CHECKING:
    from krafts.models.notification import ExpoPushToken
    from krafts.models.profile import Profile


class User(BaseModel):
    """User model - authenticated via phone OTP."""

    __tablename__ = "users"

    phone: Mapped[str] = mapped_column(
        String(20),
        unique=True,
        nullable=False,
        index=True,
    )
    email: Mapped[str | None] = mapped_column(
        String(255),
        unique=True,
        nullable=True,
    )
    last_login_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # Relationships
    profiles: Mapped[list["Profile"]] = relationship(
        "Profile",
        back_populates="user",
        cascade="all, delete-orphan",
        order_by="Profile.created_at",
    )
    push_tokens: Mapped[list["ExpoPushToken"]] = relationship(
        "ExpoPushToken",
        back_populates="user",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<User {self.phone}>"


class OtpVerification(BaseModelNoUpdate):
    """One-time password issued to a phone number.

    Only a keyed digest of the code is stored. A row is consumed by setting
    verified_at; superseded rows are expired in place.
    """

    __tablename__ = "otp_verifications"

    phone: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        index=True,
    )
    otp_hash: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
    )
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
    )
    verified_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<OtpVerification {self.phone}>"
