"""Profile endpoints."""

from uuid import UUID

from fastapi import APIRouter, Query

from krafts.api.deps import CurrentProfile, DbSession
from krafts.core.pagination import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from krafts.schemas.common import CursorPage
from krafts.schemas.profile import (
    BecomeRecruiterRequest,
    ProfileResponse,
    ProfileSummary,
    ProfileUpdate,
    UpgradePremiumRequest,
    UpgradePremiumResponse,
)
from krafts.services.profiles import ProfileService, build_profile_response

router = APIRouter()


@router.get("", response_model=CursorPage[ProfileSummary])
async def list_profiles(
    db: DbSession,
    _: CurrentProfile,
    role: str | None = Query(None),
    cursor: str | None = Query(None),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
) -> CursorPage[ProfileSummary]:
    """List profiles, newest first."""
    profiles, next_cursor = await ProfileService(db).list_profiles(role, cursor, limit)
    return CursorPage(
        data=[ProfileSummary.model_validate(p) for p in profiles],
        next_cursor=next_cursor,
    )


@router.get("/{profile_id}", response_model=ProfileResponse)
async def get_profile(profile_id: UUID, db: DbSession, _: CurrentProfile) -> ProfileResponse:
    """Profile with role details, companies and social links."""
    profile = await ProfileService(db).get_profile(profile_id)
    return build_profile_response(profile)


@router.patch("/{profile_id}", response_model=ProfileResponse)
async def update_profile(
    profile_id: UUID,
    update: ProfileUpdate,
    db: DbSession,
    current_profile: CurrentProfile,
) -> ProfileResponse:
    """Update own profile and role details."""
    profile = await ProfileService(db).update_profile(profile_id, current_profile.id, update)
    return build_profile_response(profile)


@router.post("/{profile_id}/become-recruiter", response_model=ProfileResponse)
async def become_recruiter(
    profile_id: UUID,
    body: BecomeRecruiterRequest,
    db: DbSession,
    current_profile: CurrentProfile,
) -> ProfileResponse:
    """Switch an artist profile to recruiter and register their company."""
    profile = await ProfileService(db).become_recruiter(profile_id, current_profile.id, body)
    return build_profile_response(profile)


@router.post("/{profile_id}/upgrade-premium", response_model=UpgradePremiumResponse)
async def upgrade_premium(
    profile_id: UUID,
    body: UpgradePremiumRequest,
    db: DbSession,
    current_profile: CurrentProfile,
) -> UpgradePremiumResponse:
    """Extend premium membership by the purchased plan."""
    premium_until = await ProfileService(db).upgrade_premium(
        profile_id,
        current_profile.id,
        body.plan_type,
        body.payment_id,
    )
    return UpgradePremiumResponse(
        message=f"Premium {body.plan_type} plan activated",
        premium_until=premium_until,
    )
