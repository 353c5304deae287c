"""Authentication schemas."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from krafts.schemas.profile import ProfileResponse, UserResponse


class SendOtpRequest(BaseModel):
    """Request an OTP for a phone number."""

    phone: str = Field(min_length=10, max_length=20)


class SendOtpResponse(BaseModel):
    """OTP dispatch result. otp is only echoed in development."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    message: str
    phone_number: str = Field(serialization_alias="phoneNumber")
    user_exists: bool = Field(serialization_alias="userExists")
    otp: str | None = None


class VerifyOtpRequest(BaseModel):
    """Submit an OTP."""

    phone: str = Field(min_length=10, max_length=20)
    otp: str = Field(pattern=r"^\d{4,8}$")


class VerifyOtpResponse(BaseModel):
    """Either a signup token (new user) or an access token (existing user)."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    is_new_user: bool = Field(serialization_alias="isNewUser")
    signup_token: str | None = Field(default=None, serialization_alias="signupToken")
    access_token: str | None = Field(default=None, serialization_alias="accessToken")
    user: UserResponse | None = None
    profile: ProfileResponse | None = None


class CustomLink(BaseModel):
    """User-defined profile link."""

    label: str | None = None
    url: str


Gender = Literal["Male", "Female", "Non-binary", "Prefer not to say"]


class SignupRequest(BaseModel):
    """Complete registration after OTP verification."""

    model_config = ConfigDict(populate_by_name=True)

    first_name: str = Field(alias="firstName", min_length=1)
    last_name: str | None = Field(default=None, alias="lastName")
    email: EmailStr
    alternative_phone: str | None = Field(default=None, alias="alternativePhone")
    maa_associative_number: str | None = Field(default=None, alias="maaAssociativeNumber")
    gender: Gender
    department: str
    state: str
    city: str
    role: Literal["artist", "recruiter"]
    profile_photo: str | None = Field(default=None, alias="profilePhoto")
    bio: str | None = None
    aadhar_number: str | None = Field(default=None, alias="aadharNumber")

    # Recruiter company
    company_name: str | None = Field(default=None, alias="companyName")
    company_phone: str | None = Field(default=None, alias="companyPhone")
    company_email: EmailStr | None = Field(default=None, alias="companyEmail")
    company_logo: str | None = Field(default=None, alias="companyLogo")

    # Social links
    website: str | None = None
    facebook: str | None = None
    twitter: str | None = None
    instagram: str | None = None
    youtube: str | None = None
    custom_links: list[CustomLink] = Field(default_factory=list, alias="customLinks")

    @field_validator("aadhar_number")
    @classmethod
    def validate_aadhar(cls, value: str | None) -> str | None:
        if value is None:
            return value
        digits = value.replace(" ", "")
        if not digits.isdigit() or len(digits) != 16:
            raise ValueError("Aadhar number must be 16 digits")
        return digits


SOCIAL_PLATFORMS = ("website", "facebook", "twitter", "instagram", "youtube")


class AuthResponse(BaseModel):
    """Access token with the authenticated user."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    access_token: str = Field(serialization_alias="accessToken")
    token_type: str = Field(default="Bearer", serialization_alias="tokenType")
    user: UserResponse
    profile: ProfileResponse | None = None


class CleanupResponse(BaseModel):
    """OTP cleanup result."""

    success: bool = True
    deleted: int


class CurrentUserResponse(BaseModel):
    """Authenticated user with their primary profile."""

    user: UserResponse
    profile: ProfileResponse | None = None
