"""Production projects and their members."""

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from krafts.core.errors import (
    BadGatewayError,
    BadRequestError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
)
from krafts.core.pagination import decode_cursor, paginate
from krafts.models.profile import RECRUITER_ROLES, Profile
from krafts.models.project import Project, ProjectMember
from krafts.schemas.project import ProjectCreate, ProjectMemberCreate
from krafts.services.object_storage import ObjectStorageError
from krafts.services.photo import PhotoProcessingError, PhotoService

logger = logging.getLogger(__name__)

OWNER_ROLE = "owner"


class ProjectService:
    """Project CRUD; only recruiters create and only creators manage members."""

    def __init__(self, db: AsyncSession, photos: PhotoService | None = None):
        self.db = db
        self.photos = photos

    async def list_projects(
        self,
        created_by: uuid.UUID | None,
        cursor: str | None,
        limit: int,
    ) -> tuple[list[Project], str | None]:
        query = select(Project).order_by(Project.created_at.desc(), Project.id.desc())
        if created_by:
            query = query.where(Project.created_by == created_by)
        decoded = decode_cursor(cursor)
        if decoded:
            query = query.where(Project.created_at < decoded.timestamp)
        result = await self.db.execute(query.limit(limit + 1))
        rows = list(result.scalars().all())
        return paginate(rows, limit, key=lambda p: (p.created_at, p.id))

    async def get_project(self, project_id: uuid.UUID) -> Project:
        result = await self.db.execute(select(Project).where(Project.id == project_id))
        project = result.scalar_one_or_none()
        if project is None:
            raise NotFoundError("Project not found")
        return project

    async def create_project(self, creator: Profile, data: ProjectCreate) -> Project:
        if creator.role not in RECRUITER_ROLES:
            raise ForbiddenError("Only recruiters can create projects")

        project = Project(
            id=uuid.uuid4(),
            created_by=creator.id,
            title=data.title,
            description=data.description,
            start_date=data.start_date,
            end_date=data.end_date,
        )
        if data.image:
            if self.photos is None:
                raise BadRequestError("Photo uploads are not available")
            try:
                project.poster_url = await self.photos.store_image_field(
                    data.image, prefix="projects", owner_id=str(project.id)
                )
            except PhotoProcessingError as e:
                raise BadRequestError(str(e)) from e
            except ObjectStorageError as e:
                logger.error(f"Failed to store poster for project {project.id}: {e}")
                raise BadGatewayError("Failed to store file") from e

        project.members = [ProjectMember(profile_id=creator.id, role_in_project=OWNER_ROLE)]
        self.db.add(project)
        await self.db.flush()
        logger.info(f"Profile {creator.id} created project {project.id}")
        return project

    async def add_member(
        self,
        project_id: uuid.UUID,
        caller: Profile,
        data: ProjectMemberCreate,
    ) -> ProjectMember:
        project = await self.get_project(project_id)
        if project.created_by != caller.id:
            raise ForbiddenError("Only the project creator can add members")

        result = await self.db.execute(
            select(ProjectMember.id).where(
                ProjectMember.project_id == project_id,
                ProjectMember.profile_id == data.profile_id,
            )
        )
        if result.scalar_one_or_none() is not None:
            raise ConflictError("Profile is already a member of this project")

        result = await self.db.execute(select(Profile.id).where(Profile.id == data.profile_id))
        if result.scalar_one_or_none() is None:
            raise NotFoundError("Profile not found")

        member = ProjectMember(
            project_id=project_id,
            profile_id=data.profile_id,
            role_in_project=data.role_in_project,
        )
        self.db.add(member)
        await self.db.flush()
        return await self._load_member(member.id)

    async def _load_member(self, member_id: uuid.UUID) -> ProjectMember:
        result = await self.db.execute(
            select(ProjectMember)
            .options(selectinload(ProjectMember.profile))
            .where(ProjectMember.id == member_id)
        )
        return result.scalar_one()

    async def list_members(self, project_id: uuid.UUID) -> list[ProjectMember]:
        await self.get_project(project_id)
        result = await self.db.execute(
            select(ProjectMember)
            .options(selectinload(ProjectMember.profile))
            .where(ProjectMember.project_id == project_id)
            .order_by(ProjectMember.joined_at)
        )
        return list(result.scalars().all())
