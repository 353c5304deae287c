"""Project and schedule schemas."""

from datetime import date, datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from krafts.schemas.common import BaseSchema
from krafts.schemas.profile import ProfileSummary


class ProjectCreate(BaseModel):
    """New production project."""

    title: str = Field(min_length=1, max_length=255)
    description: str | None = None
    image: str | None = None
    start_date: date | None = None
    end_date: date | None = None

    @model_validator(mode="after")
    def check_dates(self) -> "ProjectCreate":
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class ProjectResponse(BaseSchema):
    """Production project."""

    id: UUID
    created_by: UUID
    title: str
    description: str | None = None
    poster_url: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    created_at: datetime


class ProjectMemberCreate(BaseModel):
    """Add a profile to a project."""

    profile_id: UUID
    role_in_project: str | None = None


class ProjectMemberResponse(BaseSchema):
    """Project membership."""

    id: UUID
    project_id: UUID
    profile_id: UUID
    role_in_project: str | None = None
    joined_at: datetime
    profile: ProfileSummary | None = None


class ScheduleCreate(BaseModel):
    """New schedule for a post."""

    project_id: UUID
    title: str | None = None
    description: str | None = None
    date: date
    start_time: str | None = None
    end_time: str | None = None
    location: str | None = None


class ScheduleResponse(BaseSchema):
    """Schedule entry."""

    id: UUID
    project_id: UUID
    created_by: UUID
    title: str | None = None
    description: str | None = None
    date: date
    start_time: str | None = None
    end_time: str | None = None
    location: str | None = None
    created_at: datetime
    project_title: str | None = None
    creator: ProfileSummary | None = None
    member_status: str | None = None


class ScheduleMemberCreate(BaseModel):
    """Invite a profile to a schedule."""

    profile_id: UUID


class ScheduleMemberStatusUpdate(BaseModel):
    """Member's response to a schedule invite."""

    status: Literal["accepted", "declined", "pending"]


class ScheduleMemberProfile(ProfileSummary):
    """Member profile with role-row department flattened in."""

    department: str | None = None


class ScheduleMemberResponse(BaseSchema):
    """Schedule membership."""

    id: UUID
    schedule_id: UUID
    profile_id: UUID
    status: str
    created_at: datetime
    profile: ScheduleMemberProfile | None = None


class RecruiterPostSummary(BaseSchema):
    """Post listed on the recruiter's schedule planner."""

    id: UUID
    title: str
    description: str
    status: str
    applications_count: int
    created_at: datetime
