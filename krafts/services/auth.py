"""Phone OTP login and signup flow."""

import logging
from datetime import UTC, datetime

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from krafts.core.config import settings
from krafts.core.errors import BadGatewayError, BadRequestError, ConflictError, UnauthorizedError
from krafts.core.security import create_access_token, create_signup_token, verify_signup_token
from krafts.models.profile import (
    ArtistProfile,
    Profile,
    ProfileRole,
    ProfileSocialLink,
    RecruiterCompany,
    RecruiterProfile,
)
from krafts.models.user import User
from krafts.schemas.auth import (
    SOCIAL_PLATFORMS,
    AuthResponse,
    SendOtpResponse,
    SignupRequest,
    VerifyOtpResponse,
)
from krafts.schemas.profile import UserResponse
from krafts.services.otp import (
    OtpService,
    SmsDeliveryError,
    format_phone_number,
    generate_otp,
    is_valid_phone_number,
    send_otp_sms,
)
from krafts.services.object_storage import ObjectStorageError
from krafts.services.photo import PhotoProcessingError, PhotoService
from krafts.services.profiles import build_profile_response

logger = logging.getLogger(__name__)


def user_with_profiles_query() -> Select[tuple[User]]:
    """User select with every profile and its role rows eagerly loaded."""
    return select(User).options(
        selectinload(User.profiles).options(
            selectinload(Profile.artist_profile),
            selectinload(Profile.recruiter_profile).selectinload(RecruiterProfile.companies),
            selectinload(Profile.social_links),
        )
    )


def issue_access_token(user: User) -> str:
    return create_access_token(
        subject=str(user.id),
        additional_claims={"phone": user.phone, "email": user.email},
    )


def build_social_links(request: SignupRequest) -> list[ProfileSocialLink]:
    """Known platforms first, then custom links, numbered in display order."""
    links: list[ProfileSocialLink] = []
    for platform in SOCIAL_PLATFORMS:
        url = getattr(request, platform)
        if url:
            links.append(ProfileSocialLink(platform=platform, url=url, order_index=len(links)))
    for n, custom in enumerate(request.custom_links, start=1):
        if custom.url:
            links.append(
                ProfileSocialLink(
                    platform=f"custom_{n}",
                    url=custom.url,
                    label=custom.label,
                    order_index=len(links),
                )
            )
    return links


class AuthService:
    """Send/verify OTP and register new users."""

    def __init__(self, db: AsyncSession, photos: PhotoService | None = None):
        self.db = db
        self.otp = OtpService(db)
        self.photos = photos

    async def _find_user(self, phone: str) -> User | None:
        result = await self.db.execute(user_with_profiles_query().where(User.phone == phone))
        return result.scalar_one_or_none()

    async def send_otp(self, raw_phone: str) -> SendOtpResponse:
        if not is_valid_phone_number(raw_phone):
            raise BadRequestError(
                "Invalid phone number format. Must be a valid 10-digit Indian mobile "
                "number starting with 6-9"
            )
        phone = format_phone_number(raw_phone)
        result = await self.db.execute(select(User.id).where(User.phone == phone))
        user_exists = result.scalar_one_or_none() is not None

        otp = generate_otp()
        await self.otp.store_otp(phone, otp)

        try:
            await send_otp_sms(phone, otp)
        except SmsDeliveryError as e:
            if not settings.is_development:
                raise
            logger.warning(f"SMS delivery failed in development, continuing: {e}")

        return SendOtpResponse(
            message=(
                "OTP sent successfully for login"
                if user_exists
                else "OTP sent successfully. Please complete signup"
            ),
            phone_number=phone,
            user_exists=user_exists,
            otp=otp if settings.is_development else None,
        )

    async def verify_otp(self, raw_phone: str, otp: str) -> VerifyOtpResponse:
        phone = format_phone_number(raw_phone)
        if not await self.otp.verify_otp(phone, otp):
            raise UnauthorizedError("Invalid or expired OTP")

        user = await self._find_user(phone)
        if user is None:
            return VerifyOtpResponse(
                is_new_user=True,
                signup_token=create_signup_token(phone),
            )

        user.last_login_at = datetime.now(UTC)
        await self.db.flush()
        profile = user.profiles[0] if user.profiles else None
        logger.info(f"User {user.id} logged in")
        return VerifyOtpResponse(
            is_new_user=False,
            access_token=issue_access_token(user),
            user=UserResponse.model_validate(user),
            profile=build_profile_response(profile) if profile else None,
        )

    async def signup(self, signup_token: str, request: SignupRequest) -> AuthResponse:
        """Create user, profile, role row, company and links in one transaction."""
        phone = verify_signup_token(signup_token)
        if phone is None:
            raise UnauthorizedError("Invalid or expired signup token")

        if await self._find_user(phone) is not None:
            raise ConflictError("User already registered")
        result = await self.db.execute(select(User.id).where(User.email == request.email))
        if result.scalar_one_or_none() is not None:
            raise ConflictError("Email already in use")

        details_fields = {
            "email": request.email,
            "phone": phone,
            "alt_phone": request.alternative_phone,
            "maa_associative_number": request.maa_associative_number,
            "gender": request.gender,
            "department": request.department,
            "state": request.state,
            "city": request.city,
            "bio": request.bio,
            "aadhar_number": request.aadhar_number,
        }

        profile = Profile(
            role=request.role,
            first_name=request.first_name,
            last_name=request.last_name,
            is_premium=False,
        )
        if request.role == ProfileRole.RECRUITER.value:
            recruiter = RecruiterProfile(**details_fields)
            recruiter.companies = (
                [
                    RecruiterCompany(
                        name=request.company_name,
                        phone=request.company_phone,
                        email=request.company_email,
                        logo_url=request.company_logo,
                    )
                ]
                if request.company_name
                else []
            )
            profile.recruiter_profile = recruiter
            profile.artist_profile = None
        else:
            profile.artist_profile = ArtistProfile(**details_fields)
            profile.recruiter_profile = None
        profile.social_links = build_social_links(request)

        user = User(phone=phone, email=request.email, last_login_at=datetime.now(UTC))
        user.profiles = [profile]
        self.db.add(user)
        await self.db.flush()

        if request.profile_photo:
            if self.photos is None:
                raise BadRequestError("Photo uploads are not available")
            try:
                profile.profile_photo_url = await self.photos.store_image_field(
                    request.profile_photo,
                    prefix="profiles",
                    owner_id=str(user.id),
                    avatar=True,
                )
            except PhotoProcessingError as e:
                raise BadRequestError(str(e)) from e
            except ObjectStorageError as e:
                logger.error(f"Failed to store profile photo for user {user.id}: {e}")
                raise BadGatewayError("Failed to store file") from e
            await self.db.flush()

        logger.info(f"Registered user {user.id} as {request.role}")
        return AuthResponse(
            access_token=issue_access_token(user),
            user=UserResponse.model_validate(user),
            profile=build_profile_response(profile),
        )

    async def cleanup_expired_otps(self) -> int:
        return await self.otp.cleanup_expired()
