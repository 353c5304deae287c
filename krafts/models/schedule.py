"""Shoot schedule models."""

import enum
import uuid
from datetime import date as date_type
from typing import TYPE_CHECKING

from sqlalchemy import Date, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from krafts.models.base import BaseModel

if TYPE_CHECKING:
    from krafts.models.post import Post
    from krafts.models.profile import Profile


class ScheduleMemberStatus(str, enum.Enum):
    """Response of a crew member to a schedule invite."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"


class Schedule(BaseModel):
    """A dated call sheet attached to a post."""

    __tablename__ = "schedules"

    project_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("posts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    created_by: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    date: Mapped[date_type] = mapped_column(Date, nullable=False, index=True)
    # Free-form "HH:MM" strings as entered in the app
    start_time: Mapped[str | None] = mapped_column(String(16), nullable=True)
    end_time: Mapped[str | None] = mapped_column(String(16), nullable=True)
    location: Mapped[str | None] = mapped_column(String(255), nullable=True)

    post: Mapped["Post"] = relationship("Post")
    creator: Mapped["Profile"] = relationship("Profile")
    members: Mapped[list["ScheduleMember"]] = relationship(
        "ScheduleMember",
        back_populates="schedule",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Schedule {self.date} {self.title}>"


class ScheduleMember(BaseModel):
    """Crew member invited to a schedule."""

    __tablename__ = "schedule_members"
    __table_args__ = (
        UniqueConstraint("schedule_id", "profile_id", name="uq_schedule_member"),
    )

    schedule_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("schedules.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    profile_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    status: Mapped[str] = mapped_column(
        String(32),
        default=ScheduleMemberStatus.PENDING.value,
        nullable=False,
    )

    schedule: Mapped["Schedule"] = relationship("Schedule", back_populates="members")
    profile: Mapped["Profile"] = relationship("Profile")
