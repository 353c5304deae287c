"""Profile reads, updates, role switch and premium upgrade."""

import calendar
import logging
import uuid
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from krafts.core.errors import BadRequestError, ForbiddenError, NotFoundError
from krafts.core.pagination import decode_cursor, paginate
from krafts.models.profile import (
    Profile,
    ProfileRole,
    RecruiterCompany,
    RecruiterProfile,
)
from krafts.models.user import User
from krafts.schemas.profile import (
    PROFILE_ROW_FIELDS,
    ROLE_ROW_FIELDS,
    BecomeRecruiterRequest,
    CompanyResponse,
    ProfileResponse,
    ProfileUpdate,
    RoleDetailsResponse,
    SocialLinkResponse,
)

logger = logging.getLogger(__name__)

ROLE_DETAIL_COPY_FIELDS = (
    "email",
    "phone",
    "alt_phone",
    "maa_associative_number",
    "gender",
    "department",
    "state",
    "city",
    "bio",
    "aadhar_number",
)


def profile_query() -> Select[tuple[Profile]]:
    """Profile select with role rows, companies and links eagerly loaded."""
    return select(Profile).options(
        selectinload(Profile.artist_profile),
        selectinload(Profile.recruiter_profile).selectinload(RecruiterProfile.companies),
        selectinload(Profile.social_links),
    )


def build_profile_response(profile: Profile) -> ProfileResponse:
    """Assemble the API shape of a profile from its loaded rows."""
    details = profile.role_details
    companies = profile.recruiter_profile.companies if profile.recruiter_profile else []
    return ProfileResponse(
        id=profile.id,
        user_id=profile.user_id,
        role=profile.role,
        first_name=profile.first_name,
        last_name=profile.last_name,
        profile_photo_url=profile.profile_photo_url,
        is_premium=profile.is_premium,
        premium_until=profile.premium_until,
        created_at=profile.created_at,
        details=RoleDetailsResponse.model_validate(details) if details else None,
        companies=[CompanyResponse.model_validate(c) for c in companies],
        social_links=[SocialLinkResponse.model_validate(link) for link in profile.social_links],
    )


def add_months(start: datetime, months: int) -> datetime:
    """Calendar month arithmetic, clamping the day to the target month."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return start.replace(year=year, month=month, day=day)


PLAN_MONTHS = {"monthly": 1, "yearly": 12}


def compute_premium_until(
    current_expiry: datetime | None,
    plan_type: str,
    now: datetime | None = None,
) -> datetime:
    """New premium expiry: extend from the later of now and the current expiry."""
    if plan_type not in PLAN_MONTHS:
        raise BadRequestError("Invalid plan type")
    now = now or datetime.now(UTC)
    start = current_expiry if current_expiry and current_expiry > now else now
    return add_months(start, PLAN_MONTHS[plan_type])


def split_profile_update(update: ProfileUpdate) -> tuple[dict[str, Any], dict[str, Any]]:
    """Partition changed fields into profile-row and role-row updates."""
    changes = update.model_dump(exclude_unset=True)
    profile_fields = {k: v for k, v in changes.items() if k in PROFILE_ROW_FIELDS}
    role_fields = {k: v for k, v in changes.items() if k in ROLE_ROW_FIELDS}
    return profile_fields, role_fields


class ProfileService:
    """Profile operations; ownership is checked against the caller's profile id."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_profiles(
        self,
        role: str | None,
        cursor: str | None,
        limit: int,
    ) -> tuple[list[Profile], str | None]:
        query = select(Profile).order_by(Profile.created_at.desc(), Profile.id.desc())
        if role:
            query = query.where(Profile.role == role)
        decoded = decode_cursor(cursor)
        if decoded:
            query = query.where(Profile.created_at < decoded.timestamp)
        result = await self.db.execute(query.limit(limit + 1))
        rows = list(result.scalars().all())
        return paginate(rows, limit, key=lambda p: (p.created_at, p.id))

    async def get_profile(self, profile_id: uuid.UUID) -> Profile:
        result = await self.db.execute(profile_query().where(Profile.id == profile_id))
        profile = result.scalar_one_or_none()
        if profile is None:
            raise NotFoundError("Profile not found")
        return profile

    async def get_user(self, user_id: uuid.UUID) -> User:
        result = await self.db.execute(
            select(User).options(selectinload(User.profiles)).where(User.id == user_id)
        )
        user = result.scalar_one_or_none()
        if user is None:
            raise NotFoundError("User not found")
        return user

    def _ensure_owner(self, profile_id: uuid.UUID, caller_profile_id: uuid.UUID) -> None:
        if profile_id != caller_profile_id:
            raise ForbiddenError("You can only modify your own profile")

    async def update_profile(
        self,
        profile_id: uuid.UUID,
        caller_profile_id: uuid.UUID,
        update: ProfileUpdate,
    ) -> Profile:
        self._ensure_owner(profile_id, caller_profile_id)
        profile = await self.get_profile(profile_id)
        profile_fields, role_fields = split_profile_update(update)

        for field, value in profile_fields.items():
            setattr(profile, field, value)

        if role_fields:
            details = profile.role_details
            if details is None:
                raise BadRequestError("Profile has no role details to update")
            for field, value in role_fields.items():
                setattr(details, field, value)

        await self.db.flush()
        logger.info(f"Updated profile {profile_id}: {sorted(profile_fields) + sorted(role_fields)}")
        return await self.get_profile(profile_id)

    async def become_recruiter(
        self,
        profile_id: uuid.UUID,
        caller_profile_id: uuid.UUID,
        request: BecomeRecruiterRequest,
    ) -> Profile:
        """Switch an artist to recruiter, creating the recruiter row and company.

        Runs inside the request transaction so a failure leaves the role unchanged.
        """
        self._ensure_owner(profile_id, caller_profile_id)
        profile = await self.get_profile(profile_id)
        if profile.role == ProfileRole.RECRUITER.value or profile.recruiter_profile is not None:
            raise BadRequestError("Already a recruiter")

        recruiter = RecruiterProfile(profile_id=profile.id)
        if profile.artist_profile is not None:
            for field in ROLE_DETAIL_COPY_FIELDS:
                setattr(recruiter, field, getattr(profile.artist_profile, field))
        recruiter.companies = [
            RecruiterCompany(
                name=request.company_name,
                phone=request.company_phone,
                email=request.company_email,
                logo_url=request.company_logo,
            )
        ]
        profile.recruiter_profile = recruiter
        profile.role = ProfileRole.RECRUITER.value
        self.db.add(recruiter)
        await self.db.flush()
        logger.info(f"Profile {profile_id} became recruiter")
        return await self.get_profile(profile_id)

    async def upgrade_premium(
        self,
        profile_id: uuid.UUID,
        caller_profile_id: uuid.UUID,
        plan_type: str,
        payment_id: str | None = None,
    ) -> datetime:
        self._ensure_owner(profile_id, caller_profile_id)
        profile = await self.get_profile(profile_id)
        premium_until = compute_premium_until(profile.premium_until, plan_type)
        profile.is_premium = True
        profile.premium_until = premium_until
        await self.db.flush()
        logger.info(
            f"Profile {profile_id} upgraded to premium ({plan_type}, payment={payment_id})"
        )
        return premium_until

