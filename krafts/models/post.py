"""Casting call (post) and application models."""

import enum
import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from krafts.models.base import BaseModel

if TYPE_CHECKING:
    from krafts.models.profile import Profile


class PostStatus(str, enum.Enum):
    """Lifecycle of a casting call."""

    OPEN = "open"
    CLOSED = "closed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class ApplicationStatus(str, enum.Enum):
    """Status of an artist's application to a post."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"


class Post(BaseModel):
    """Casting call published by a recruiter."""

    __tablename__ = "posts"

    author_profile_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    requirements: Mapped[str | None] = mapped_column(Text, nullable=True)
    location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    # Comma separated when the post targets several departments
    department: Mapped[str | None] = mapped_column(Text, nullable=True)
    deadline: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    image_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    caption: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        String(32),
        default=PostStatus.OPEN.value,
        nullable=False,
        index=True,
    )
    applications_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Relationships
    author: Mapped["Profile"] = relationship("Profile")
    applications: Mapped[list["ProjectApplication"]] = relationship(
        "ProjectApplication",
        back_populates="post",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Post {self.title}>"


class ProjectApplication(BaseModel):
    """An artist applying to a post."""

    __tablename__ = "project_applications"
    __table_args__ = (
        UniqueConstraint("project_id", "artist_profile_id", name="uq_application_project_artist"),
    )

    project_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("posts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    artist_profile_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    cover_letter: Mapped[str | None] = mapped_column(Text, nullable=True)
    portfolio_link: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        String(32),
        default=ApplicationStatus.PENDING.value,
        nullable=False,
    )
    applied_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    # Relationships
    post: Mapped["Post"] = relationship("Post", back_populates="applications")
    artist: Mapped["Profile"] = relationship("Profile")

    def __repr__(self) -> str:
        return f"<ProjectApplication {self.artist_profile_id} -> {self.project_id}>"
