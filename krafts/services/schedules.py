"""Shoot schedules attached to posts."""

import logging
import uuid

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from krafts.core.errors import ConflictError, ForbiddenError, NotFoundError
from krafts.core.pagination import decode_cursor, paginate
from krafts.models.post import ApplicationStatus, Post, ProjectApplication
from krafts.models.profile import RECRUITER_ROLES, Profile
from krafts.models.schedule import Schedule, ScheduleMember, ScheduleMemberStatus
from krafts.schemas.profile import ProfileSummary
from krafts.schemas.project import (
    ScheduleCreate,
    ScheduleMemberProfile,
    ScheduleMemberResponse,
    ScheduleResponse,
)

logger = logging.getLogger(__name__)


def _schedule_query() -> Select[tuple[Schedule]]:
    return select(Schedule).options(
        selectinload(Schedule.creator),
        selectinload(Schedule.post),
    )


def build_schedule_response(
    schedule: Schedule,
    member_status: str | None = None,
) -> ScheduleResponse:
    return ScheduleResponse(
        id=schedule.id,
        project_id=schedule.project_id,
        created_by=schedule.created_by,
        title=schedule.title,
        description=schedule.description,
        date=schedule.date,
        start_time=schedule.start_time,
        end_time=schedule.end_time,
        location=schedule.location,
        created_at=schedule.created_at,
        project_title=schedule.post.title if schedule.post else None,
        creator=ProfileSummary.model_validate(schedule.creator) if schedule.creator else None,
        member_status=member_status,
    )


def build_member_response(member: ScheduleMember) -> ScheduleMemberResponse:
    """Flatten the role-row department into the member's profile."""
    profile = member.profile
    member_profile = None
    if profile is not None:
        artist = profile.artist_profile
        recruiter = profile.recruiter_profile
        department = (artist.department if artist else None) or (
            recruiter.department if recruiter else None
        )
        member_profile = ScheduleMemberProfile(
            id=profile.id,
            first_name=profile.first_name,
            last_name=profile.last_name,
            profile_photo_url=profile.profile_photo_url,
            role=profile.role,
            department=department,
        )
    return ScheduleMemberResponse(
        id=member.id,
        schedule_id=member.schedule_id,
        profile_id=member.profile_id,
        status=member.status,
        created_at=member.created_at,
        profile=member_profile,
    )


class ScheduleService:
    """Schedules, member invitations and member responses."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_schedules(
        self,
        *,
        profile_id: uuid.UUID | None,
        project_id: uuid.UUID | None,
        cursor: str | None,
        limit: int,
    ) -> tuple[list[tuple[Schedule, str | None]], str | None]:
        """Upcoming-first listing.

        With a profile and no project, only schedules the profile was invited
        to, each paired with that member's status.
        """
        query = _schedule_query().order_by(Schedule.date.asc(), Schedule.id.asc())
        status_by_schedule: dict[uuid.UUID, str] = {}

        if profile_id and not project_id:
            result = await self.db.execute(
                select(ScheduleMember.schedule_id, ScheduleMember.status).where(
                    ScheduleMember.profile_id == profile_id
                )
            )
            status_by_schedule = {row.schedule_id: row.status for row in result.all()}
            if not status_by_schedule:
                return [], None
            query = query.where(Schedule.id.in_(list(status_by_schedule)))
        elif project_id:
            query = query.where(Schedule.project_id == project_id)

        decoded = decode_cursor(cursor)
        if decoded:
            query = query.where(Schedule.date > decoded.timestamp.date())

        result = await self.db.execute(query.limit(limit + 1))
        rows = list(result.scalars().all())
        page, next_cursor = paginate(rows, limit, key=lambda s: (s.date, s.id))

        if status_by_schedule:
            return [
                (s, status_by_schedule.get(s.id, ScheduleMemberStatus.PENDING.value))
                for s in page
            ], next_cursor
        return [(s, None) for s in page], next_cursor

    async def get_schedule(self, schedule_id: uuid.UUID) -> Schedule:
        result = await self.db.execute(_schedule_query().where(Schedule.id == schedule_id))
        schedule = result.scalar_one_or_none()
        if schedule is None:
            raise NotFoundError("Schedule not found")
        return schedule

    async def create_schedule(self, creator: Profile, data: ScheduleCreate) -> Schedule:
        """Create a schedule and invite every accepted applicant of the post."""
        if creator.role not in RECRUITER_ROLES:
            raise ForbiddenError("Only recruiters can create schedules")

        result = await self.db.execute(select(Post).where(Post.id == data.project_id))
        post = result.scalar_one_or_none()
        if post is None:
            raise NotFoundError("Project not found")
        if post.author_profile_id != creator.id:
            raise ForbiddenError("You can only create schedules for your own projects")

        schedule = Schedule(created_by=creator.id, **data.model_dump())
        accepted = await self.db.execute(
            select(ProjectApplication.artist_profile_id).where(
                ProjectApplication.project_id == post.id,
                ProjectApplication.status == ApplicationStatus.ACCEPTED.value,
            )
        )
        schedule.members = [
            ScheduleMember(profile_id=profile_id, status=ScheduleMemberStatus.PENDING.value)
            for profile_id in accepted.scalars().all()
        ]
        self.db.add(schedule)
        await self.db.flush()
        logger.info(
            f"Schedule {schedule.id} created for post {post.id} "
            f"with {len(schedule.members)} invited members"
        )
        return await self.get_schedule(schedule.id)

    async def add_member(
        self,
        schedule_id: uuid.UUID,
        caller: Profile,
        profile_id: uuid.UUID,
    ) -> ScheduleMember:
        schedule = await self.get_schedule(schedule_id)
        if schedule.created_by != caller.id:
            raise ForbiddenError("Only the schedule creator can add members")

        existing = await self._find_member(schedule_id, profile_id)
        if existing is not None:
            raise ConflictError("Profile is already a member of this schedule")

        member = ScheduleMember(
            schedule_id=schedule_id,
            profile_id=profile_id,
            status=ScheduleMemberStatus.PENDING.value,
        )
        self.db.add(member)
        await self.db.flush()
        return await self._load_member(member.id)

    async def _find_member(
        self,
        schedule_id: uuid.UUID,
        profile_id: uuid.UUID,
    ) -> ScheduleMember | None:
        result = await self.db.execute(
            select(ScheduleMember).where(
                ScheduleMember.schedule_id == schedule_id,
                ScheduleMember.profile_id == profile_id,
            )
        )
        return result.scalar_one_or_none()

    def _member_query(self) -> Select[tuple[ScheduleMember]]:
        return select(ScheduleMember).options(
            selectinload(ScheduleMember.profile).options(
                selectinload(Profile.artist_profile),
                selectinload(Profile.recruiter_profile),
            )
        )

    async def _load_member(self, member_id: uuid.UUID) -> ScheduleMember:
        result = await self.db.execute(self._member_query().where(ScheduleMember.id == member_id))
        return result.scalar_one()

    async def update_member_status(
        self,
        schedule_id: uuid.UUID,
        caller: Profile,
        status: str,
    ) -> ScheduleMember:
        member = await self._find_member(schedule_id, caller.id)
        if member is None:
            raise NotFoundError("You are not a member of this schedule")
        member.status = status
        await self.db.flush()
        return await self._load_member(member.id)

    async def list_members(self, schedule_id: uuid.UUID) -> list[ScheduleMember]:
        await self.get_schedule(schedule_id)
        result = await self.db.execute(
            self._member_query()
            .where(ScheduleMember.schedule_id == schedule_id)
            .order_by(ScheduleMember.created_at)
        )
        return list(result.scalars().all())

    async def recruiter_posts(self, recruiter: Profile) -> list[Post]:
        result = await self.db.execute(
            select(Post)
            .where(Post.author_profile_id == recruiter.id)
            .order_by(Post.created_at.desc())
        )
        return list(result.scalars().all())
