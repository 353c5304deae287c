"""Schedule endpoints."""

from uuid import UUID

from fastapi import APIRouter, Query, status

from krafts.api.deps import CurrentProfile, DbSession
from krafts.core.pagination import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from krafts.schemas.common import CursorPage
from krafts.schemas.project import (
    RecruiterPostSummary,
    ScheduleCreate,
    ScheduleMemberCreate,
    ScheduleMemberResponse,
    ScheduleMemberStatusUpdate,
    ScheduleResponse,
)
from krafts.services.schedules import (
    ScheduleService,
    build_member_response,
    build_schedule_response,
)

router = APIRouter()


@router.get("", response_model=CursorPage[ScheduleResponse])
async def list_schedules(
    db: DbSession,
    _: CurrentProfile,
    profile_id: UUID | None = Query(None, alias="profileId"),
    project_id: UUID | None = Query(None, alias="projectId"),
    cursor: str | None = Query(None),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
) -> CursorPage[ScheduleResponse]:
    """Schedules by date; with profileId, only those the profile is invited to."""
    rows, next_cursor = await ScheduleService(db).list_schedules(
        profile_id=profile_id,
        project_id=project_id,
        cursor=cursor,
        limit=limit,
    )
    return CursorPage(
        data=[build_schedule_response(s, member_status) for s, member_status in rows],
        next_cursor=next_cursor,
    )


@router.get("/recruiter/projects", response_model=list[RecruiterPostSummary])
async def recruiter_projects(
    db: DbSession,
    current_profile: CurrentProfile,
) -> list[RecruiterPostSummary]:
    """The caller's posts, to pick one when planning a schedule."""
    posts = await ScheduleService(db).recruiter_posts(current_profile)
    return [RecruiterPostSummary.model_validate(p) for p in posts]


@router.post("", response_model=ScheduleResponse, status_code=status.HTTP_201_CREATED)
async def create_schedule(
    body: ScheduleCreate,
    db: DbSession,
    current_profile: CurrentProfile,
) -> ScheduleResponse:
    schedule = await ScheduleService(db).create_schedule(current_profile, body)
    return build_schedule_response(schedule)


@router.get("/{schedule_id}", response_model=ScheduleResponse)
async def get_schedule(schedule_id: UUID, db: DbSession, _: CurrentProfile) -> ScheduleResponse:
    schedule = await ScheduleService(db).get_schedule(schedule_id)
    return build_schedule_response(schedule)


@router.post(
    "/{schedule_id}/members",
    response_model=ScheduleMemberResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_schedule_member(
    schedule_id: UUID,
    body: ScheduleMemberCreate,
    db: DbSession,
    current_profile: CurrentProfile,
) -> ScheduleMemberResponse:
    member = await ScheduleService(db).add_member(schedule_id, current_profile, body.profile_id)
    return build_member_response(member)


@router.patch("/{schedule_id}/members/me", response_model=ScheduleMemberResponse)
async def update_my_member_status(
    schedule_id: UUID,
    body: ScheduleMemberStatusUpdate,
    db: DbSession,
    current_profile: CurrentProfile,
) -> ScheduleMemberResponse:
    """Accept or decline a schedule invite."""
    member = await ScheduleService(db).update_member_status(
        schedule_id, current_profile, body.status
    )
    return build_member_response(member)


@router.get("/{schedule_id}/members", response_model=list[ScheduleMemberResponse])
async def list_schedule_members(
    schedule_id: UUID,
    db: DbSession,
    _: CurrentProfile,
) -> list[ScheduleMemberResponse]:
    members = await ScheduleService(db).list_members(schedule_id)
    return [build_member_response(m) for m in members]
