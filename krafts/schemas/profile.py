"""Profile schemas."""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

from krafts.schemas.common import BaseSchema


class SocialLinkResponse(BaseSchema):
    """External link on a profile."""

    id: UUID
    platform: str
    url: str
    label: str | None = None
    order_index: int


class CompanyResponse(BaseSchema):
    """Recruiter company."""

    id: UUID
    name: str
    phone: str | None = None
    email: str | None = None
    logo_url: str | None = None


class RoleDetailsResponse(BaseSchema):
    """Role table row (artist_profiles / recruiter_profiles)."""

    id: UUID
    email: str | None = None
    phone: str | None = None
    alt_phone: str | None = None
    maa_associative_number: str | None = None
    gender: str | None = None
    department: str | None = None
    state: str | None = None
    city: str | None = None
    bio: str | None = None


class ProfileSummary(BaseSchema):
    """Compact profile embedded in other resources."""

    id: UUID
    first_name: str
    last_name: str | None = None
    profile_photo_url: str | None = None
    role: str


class ProfileResponse(BaseSchema):
    """Full profile."""

    id: UUID
    user_id: UUID
    role: str
    first_name: str
    last_name: str | None = None
    profile_photo_url: str | None = None
    is_premium: bool = False
    premium_until: datetime | None = None
    created_at: datetime
    details: RoleDetailsResponse | None = None
    companies: list[CompanyResponse] = []
    social_links: list[SocialLinkResponse] = []


class ProfileUpdate(BaseModel):
    """Partial profile update.

    first_name, last_name and profile_photo_url live on the profile row,
    everything else on the role row.
    """

    first_name: str | None = None
    last_name: str | None = None
    profile_photo_url: str | None = None
    email: EmailStr | None = None
    phone: str | None = None
    alt_phone: str | None = None
    maa_associative_number: str | None = None
    gender: str | None = None
    department: str | None = None
    state: str | None = None
    city: str | None = None
    bio: str | None = None


PROFILE_ROW_FIELDS = frozenset({"first_name", "last_name", "profile_photo_url"})
ROLE_ROW_FIELDS = frozenset({
    "email",
    "phone",
    "alt_phone",
    "maa_associative_number",
    "gender",
    "department",
    "state",
    "city",
    "bio",
})


class BecomeRecruiterRequest(BaseModel):
    """Switch an artist profile to recruiter."""

    company_name: str = Field(alias="companyName", min_length=1)
    company_phone: str | None = Field(default=None, alias="companyPhone")
    company_email: EmailStr | None = Field(default=None, alias="companyEmail")
    company_logo: str | None = Field(default=None, alias="companyLogo")


class UpgradePremiumRequest(BaseModel):
    """Premium plan purchase."""

    plan_type: Literal["monthly", "yearly"] = Field(alias="planType")
    payment_id: str | None = Field(default=None, alias="paymentId")


class UpgradePremiumResponse(BaseModel):
    """Premium upgrade result."""

    success: bool = True
    message: str
    premium_until: datetime = Field(serialization_alias="premiumUntil")


class UserResponse(BaseSchema):
    """User with their profiles."""

    id: UUID
    phone: str
    email: str | None = None
    created_at: datetime
    profiles: list[ProfileSummary] = []
