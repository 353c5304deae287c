"""Post (casting call) and application schemas."""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field

from krafts.schemas.common import BaseSchema
from krafts.schemas.profile import ProfileSummary

PostStatusLiteral = Literal["open", "closed", "in_progress", "completed"]
ApplicationStatusLiteral = Literal["pending", "accepted", "rejected", "withdrawn"]


class PostCreate(BaseModel):
    """New casting call."""

    title: str = Field(min_length=1, max_length=255)
    description: str = Field(min_length=1)
    requirements: str | None = None
    location: str | None = None
    department: str | None = None
    departments: list[str] | None = None
    deadline: datetime | None = None
    # URL or base64 (optionally a data URL)
    image: str | None = None
    caption: str | None = None
    status: PostStatusLiteral | None = None


class PostUpdate(BaseModel):
    """Partial post update."""

    title: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    requirements: str | None = None
    location: str | None = None
    department: str | None = None
    departments: list[str] | None = None
    deadline: datetime | None = None
    status: PostStatusLiteral | None = None


class PostResponse(BaseSchema):
    """Casting call."""

    id: UUID
    author_profile_id: UUID
    title: str
    description: str
    requirements: str | None = None
    location: str | None = None
    department: str | None = None
    deadline: datetime | None = None
    image_url: str | None = None
    caption: str | None = None
    status: str
    applications_count: int = 0
    created_at: datetime
    updated_at: datetime
    author: ProfileSummary | None = None


class CommentCreate(BaseModel):
    """Comment body (comments are disabled)."""

    content: str


class ApplyRequest(BaseModel):
    """Artist application."""

    cover_letter: str | None = None
    portfolio_link: str | None = None


class ApplicationStatusUpdate(BaseModel):
    """Application status change."""

    status: ApplicationStatusLiteral


class ApplicationResponse(BaseSchema):
    """Application with flattened artist fields."""

    id: UUID
    project_id: UUID
    artist_profile_id: UUID
    cover_letter: str | None = None
    portfolio_link: str | None = None
    status: str
    applied_at: datetime
    updated_at: datetime | None = None
    artist_first_name: str | None = None
    artist_last_name: str | None = None
    artist_photo_url: str | None = None
    artist_department: str | None = None
    artist_city: str | None = None
    project_title: str | None = None


class ApplicationStatusResponse(BaseModel):
    """Whether the caller applied to a post."""

    has_applied: bool = Field(serialization_alias="hasApplied")
    application: ApplicationResponse | None = None
