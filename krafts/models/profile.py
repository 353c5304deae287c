"""Profile models.

A user owns one base profile. Role specific contact and department data
lives in artist_profiles or recruiter_profiles, keyed by profile id.
"""

import enum
import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from krafts.models.base import BaseModel

if TYPE_CHECKING:
    from krafts.models.user import User


class ProfileRole(str, enum.Enum):
    """Marketplace role of a profile."""

    ARTIST = "artist"
    RECRUITER = "recruiter"
    ADMIN = "admin"
    SUPERADMIN = "superadmin"


ADMIN_ROLES = frozenset({ProfileRole.ADMIN.value, ProfileRole.SUPERADMIN.value})
RECRUITER_ROLES = frozenset({ProfileRole.RECRUITER.value}) | ADMIN_ROLES


class Profile(BaseModel):
    """Public profile of a user."""

    __tablename__ = "profiles"

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # Valid values are enforced at the application layer via ProfileRole.
    role: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        index=True,
    )
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    profile_photo_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_premium: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    premium_until: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # Relationships
    user: Mapped["User"] = relationship("User", back_populates="profiles")
    artist_profile: Mapped["ArtistProfile | None"] = relationship(
        "ArtistProfile",
        back_populates="profile",
        uselist=False,
        cascade="all, delete-orphan",
    )
    recruiter_profile: Mapped["RecruiterProfile | None"] = relationship(
        "RecruiterProfile",
        back_populates="profile",
        uselist=False,
        cascade="all, delete-orphan",
    )
    social_links: Mapped[list["ProfileSocialLink"]] = relationship(
        "ProfileSocialLink",
        back_populates="profile",
        cascade="all, delete-orphan",
        order_by="ProfileSocialLink.order_index",
    )

    @property
    def role_details(self) -> "ArtistProfile | RecruiterProfile | None":
        """Role specific row matching the current role."""
        if self.role == ProfileRole.ARTIST.value:
            return self.artist_profile
        if self.role == ProfileRole.RECRUITER.value:
            return self.recruiter_profile
        return self.recruiter_profile or self.artist_profile

    def __repr__(self) -> str:
        return f"<Profile {self.role} {self.first_name}>"


class RoleDetailsMixin:
    """Contact and department fields shared by both role tables."""

    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(20), nullable=True)
    alt_phone: Mapped[str | None] = mapped_column(String(20), nullable=True)
    maa_associative_number: Mapped[str | None] = mapped_column(String(64), nullable=True)
    gender: Mapped[str | None] = mapped_column(String(32), nullable=True)
    department: Mapped[str | None] = mapped_column(String(255), nullable=True)
    state: Mapped[str | None] = mapped_column(String(100), nullable=True)
    city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    bio: Mapped[str | None] = mapped_column(Text, nullable=True)
    aadhar_number: Mapped[str | None] = mapped_column(String(16), nullable=True)


class ArtistProfile(BaseModel, RoleDetailsMixin):
    """Artist specific profile data."""

    __tablename__ = "artist_profiles"

    profile_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )

    profile: Mapped["Profile"] = relationship("Profile", back_populates="artist_profile")


class RecruiterProfile(BaseModel, RoleDetailsMixin):
    """Recruiter specific profile data."""

    __tablename__ = "recruiter_profiles"

    profile_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )

    profile: Mapped["Profile"] = relationship("Profile", back_populates="recruiter_profile")
    companies: Mapped[list["RecruiterCompany"]] = relationship(
        "RecruiterCompany",
        back_populates="recruiter_profile",
        cascade="all, delete-orphan",
    )


class RecruiterCompany(BaseModel):
    """Production house a recruiter works for."""

    __tablename__ = "recruiter_companies"

    recruiter_profile_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("recruiter_profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(20), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    logo_url: Mapped[str | None] = mapped_column(Text, nullable=True)

    recruiter_profile: Mapped["RecruiterProfile"] = relationship(
        "RecruiterProfile",
        back_populates="companies",
    )


class ProfileSocialLink(BaseModel):
    """Ordered external link shown on a profile."""

    __tablename__ = "profile_social_links"

    profile_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # website, facebook, twitter, instagram, youtube or custom_<n>
    platform: Mapped[str] = mapped_column(String(50), nullable=False)
    url: Mapped[str] = mapped_column(Text, nullable=False)
    label: Mapped[str | None] = mapped_column(String(100), nullable=True)
    order_index: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    profile: Mapped["Profile"] = relationship("Profile", back_populates="social_links")
