"""Project endpoints."""

from uuid import UUID

from fastapi import APIRouter, Query, status

from krafts.api.deps import CurrentProfile, DbSession, Photos
from krafts.core.pagination import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from krafts.schemas.common import CursorPage
from krafts.schemas.project import (
    ProjectCreate,
    ProjectMemberCreate,
    ProjectMemberResponse,
    ProjectResponse,
)
from krafts.services.projects import ProjectService

router = APIRouter()


@router.get("", response_model=CursorPage[ProjectResponse])
async def list_projects(
    db: DbSession,
    _: CurrentProfile,
    profile_id: UUID | None = Query(None, alias="profileId"),
    cursor: str | None = Query(None),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
) -> CursorPage[ProjectResponse]:
    projects, next_cursor = await ProjectService(db).list_projects(profile_id, cursor, limit)
    return CursorPage(
        data=[ProjectResponse.model_validate(p) for p in projects],
        next_cursor=next_cursor,
    )


@router.get("/{project_id}", response_model=ProjectResponse)
async def get_project(project_id: UUID, db: DbSession, _: CurrentProfile) -> ProjectResponse:
    project = await ProjectService(db).get_project(project_id)
    return ProjectResponse.model_validate(project)


@router.post("", response_model=ProjectResponse, status_code=status.HTTP_201_CREATED)
async def create_project(
    body: ProjectCreate,
    db: DbSession,
    current_profile: CurrentProfile,
    photos: Photos,
) -> ProjectResponse:
    """Create a project; the creator joins as owner."""
    project = await ProjectService(db, photos=photos).create_project(current_profile, body)
    return ProjectResponse.model_validate(project)


@router.post(
    "/{project_id}/members",
    response_model=ProjectMemberResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_project_member(
    project_id: UUID,
    body: ProjectMemberCreate,
    db: DbSession,
    current_profile: CurrentProfile,
) -> ProjectMemberResponse:
    member = await ProjectService(db).add_member(project_id, current_profile, body)
    return ProjectMemberResponse.model_validate(member)


@router.get("/{project_id}/members", response_model=list[ProjectMemberResponse])
async def list_project_members(
    project_id: UUID,
    db: DbSession,
    _: CurrentProfile,
) -> list[ProjectMemberResponse]:
    members = await ProjectService(db).list_members(project_id)
    return [ProjectMemberResponse.model_validate(m) for m in members]
