"""Casting calls and artist applications."""

import logging
import uuid

from sqlalchemy import Select, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from krafts.core.errors import BadGatewayError, BadRequestError, ForbiddenError, NotFoundError
from krafts.core.pagination import decode_cursor, paginate
from krafts.models.post import ApplicationStatus, Post, PostStatus, ProjectApplication
from krafts.models.profile import ADMIN_ROLES, RECRUITER_ROLES, Profile, ProfileRole
from krafts.schemas.post import (
    ApplicationResponse,
    ApplyRequest,
    PostCreate,
    PostResponse,
    PostUpdate,
)
from krafts.services.object_storage import ObjectStorageError
from krafts.services.photo import PhotoProcessingError, PhotoService

logger = logging.getLogger(__name__)


def join_departments(department: str | None, departments: list[str] | None) -> str | None:
    """Departments list wins over the single field; stored comma separated."""
    if departments:
        cleaned = [d.strip() for d in departments if d and d.strip()]
        return ", ".join(cleaned) or None
    return department


def build_post_response(post: Post) -> PostResponse:
    return PostResponse.model_validate(post)


def build_application_response(application: ProjectApplication) -> ApplicationResponse:
    """Flatten the artist's profile and role row into the application."""
    artist = application.artist
    details = artist.artist_profile if artist is not None else None
    return ApplicationResponse(
        id=application.id,
        project_id=application.project_id,
        artist_profile_id=application.artist_profile_id,
        cover_letter=application.cover_letter,
        portfolio_link=application.portfolio_link,
        status=application.status,
        applied_at=application.applied_at,
        artist_first_name=artist.first_name if artist else None,
        artist_last_name=artist.last_name if artist else None,
        artist_photo_url=artist.profile_photo_url if artist else None,
        artist_department=details.department if details else None,
        artist_city=details.city if details else None,
        project_title=application.post.title if application.post else None,
    )


def _application_query() -> Select[tuple[ProjectApplication]]:
    return select(ProjectApplication).options(
        selectinload(ProjectApplication.artist).selectinload(Profile.artist_profile),
        selectinload(ProjectApplication.post),
    )


class PostService:
    """Post CRUD and the application workflow."""

    def __init__(self, db: AsyncSession, photos: PhotoService | None = None):
        self.db = db
        self.photos = photos

    # =========================================================================
    # Posts
    # =========================================================================

    async def list_posts(
        self,
        *,
        profile_id: uuid.UUID | None,
        role: str | None,
        department: str | None,
        cursor: str | None,
        limit: int,
    ) -> tuple[list[Post], str | None]:
        query = (
            select(Post)
            .options(selectinload(Post.author))
            .order_by(Post.created_at.desc(), Post.id.desc())
        )
        if profile_id:
            query = query.where(Post.author_profile_id == profile_id)
        if role:
            query = query.join(Profile, Profile.id == Post.author_profile_id).where(
                Profile.role == role
            )
        if department:
            query = query.where(Post.department.ilike(f"%{department}%"))
        decoded = decode_cursor(cursor)
        if decoded:
            query = query.where(Post.created_at < decoded.timestamp)

        result = await self.db.execute(query.limit(limit + 1))
        rows = list(result.scalars().all())
        return paginate(rows, limit, key=lambda p: (p.created_at, p.id))

    async def get_post(self, post_id: uuid.UUID) -> Post:
        result = await self.db.execute(
            select(Post).options(selectinload(Post.author)).where(Post.id == post_id)
        )
        post = result.scalar_one_or_none()
        if post is None:
            raise NotFoundError("Post not found")
        return post

    async def create_post(self, author: Profile, data: PostCreate) -> Post:
        if author.role not in RECRUITER_ROLES:
            raise ForbiddenError("Only recruiters can create projects")

        post = Post(
            id=uuid.uuid4(),
            author_profile_id=author.id,
            title=data.title,
            description=data.description,
            requirements=data.requirements,
            location=data.location,
            department=join_departments(data.department, data.departments),
            deadline=data.deadline,
            caption=data.caption,
            status=data.status or PostStatus.OPEN.value,
            applications_count=0,
        )
        if data.image:
            if self.photos is None:
                raise BadRequestError("Photo uploads are not available")
            try:
                post.image_url = await self.photos.store_image_field(
                    data.image, prefix="posts", owner_id=str(post.id)
                )
            except PhotoProcessingError as e:
                raise BadRequestError(str(e)) from e
            except ObjectStorageError as e:
                logger.error(f"Failed to store image for post {post.id}: {e}")
                raise BadGatewayError("Failed to store file") from e

        self.db.add(post)
        await self.db.flush()
        logger.info(f"Profile {author.id} created post {post.id}")
        return await self.get_post(post.id)

    async def _owned_post(self, post_id: uuid.UUID, caller: Profile, action: str) -> Post:
        post = await self.get_post(post_id)
        if post.author_profile_id != caller.id:
            raise ForbiddenError(f"You can only {action} your own projects")
        return post

    async def update_post(self, post_id: uuid.UUID, caller: Profile, data: PostUpdate) -> Post:
        post = await self._owned_post(post_id, caller, "update")
        changes = data.model_dump(exclude_unset=True)
        departments = changes.pop("departments", None)
        if departments is not None:
            changes["department"] = join_departments(None, departments)
        for field, value in changes.items():
            setattr(post, field, value)
        await self.db.flush()
        return await self.get_post(post.id)

    async def delete_post(self, post_id: uuid.UUID, caller: Profile) -> None:
        """Delete the post, then its stored image once the delete is committed."""
        post = await self._owned_post(post_id, caller, "delete")
        image_url = post.image_url
        await self.db.delete(post)
        await self.db.commit()
        logger.info(f"Deleted post {post_id}")
        if image_url and self.photos is not None:
            await self.photos.delete_photo(image_url)

    # =========================================================================
    # Applications
    # =========================================================================

    async def _find_application(
        self,
        post_id: uuid.UUID,
        artist_profile_id: uuid.UUID,
    ) -> ProjectApplication | None:
        result = await self.db.execute(
            _application_query().where(
                ProjectApplication.project_id == post_id,
                ProjectApplication.artist_profile_id == artist_profile_id,
            )
        )
        return result.scalar_one_or_none()

    async def apply(
        self,
        post_id: uuid.UUID,
        artist: Profile,
        data: ApplyRequest,
    ) -> tuple[ProjectApplication, bool]:
        """Apply to an open post.

        Returns:
            (application, created) - created is False when the artist had
            already applied and the existing application is returned.
        """
        if artist.role != ProfileRole.ARTIST.value:
            raise ForbiddenError("Only artists can apply to projects")

        post = await self.get_post(post_id)
        if post.status != PostStatus.OPEN.value:
            raise BadRequestError("This project is not accepting applications")

        existing = await self._find_application(post_id, artist.id)
        if existing is not None:
            return existing, False

        application = ProjectApplication(
            project_id=post.id,
            artist_profile_id=artist.id,
            cover_letter=data.cover_letter,
            portfolio_link=data.portfolio_link,
            status=ApplicationStatus.PENDING.value,
        )
        try:
            async with self.db.begin_nested():
                self.db.add(application)
                await self.db.flush()
        except IntegrityError:
            # Concurrent apply by the same artist won the insert
            existing = await self._find_application(post_id, artist.id)
            if existing is None:
                raise
            return existing, False

        await self._adjust_applications_count(post.id, 1)
        logger.info(f"Artist {artist.id} applied to post {post_id}")

        created = await self._find_application(post_id, artist.id)
        return created or application, True

    async def _adjust_applications_count(self, post_id: uuid.UUID, delta: int) -> None:
        """Atomic counter update; never drops below zero."""
        await self.db.execute(
            update(Post)
            .where(Post.id == post_id)
            .values(applications_count=func.greatest(Post.applications_count + delta, 0))
            .execution_options(synchronize_session="fetch")
        )

    async def list_applications(
        self,
        caller: Profile,
        *,
        project_id: uuid.UUID | None,
        artist_profile_id: uuid.UUID | None,
        status: str | None,
        cursor: str | None,
        limit: int,
    ) -> tuple[list[ProjectApplication], str | None]:
        """Artists only see their own applications; recruiters only those to their posts."""
        query = _application_query().order_by(
            ProjectApplication.applied_at.desc(),
            ProjectApplication.id.desc(),
        )
        if caller.role == ProfileRole.ARTIST.value:
            artist_profile_id = caller.id
        elif caller.role not in ADMIN_ROLES:
            query = query.join(Post, Post.id == ProjectApplication.project_id).where(
                Post.author_profile_id == caller.id
            )

        if project_id:
            query = query.where(ProjectApplication.project_id == project_id)
        if artist_profile_id:
            query = query.where(ProjectApplication.artist_profile_id == artist_profile_id)
        if status:
            query = query.where(ProjectApplication.status == status)
        decoded = decode_cursor(cursor)
        if decoded:
            query = query.where(ProjectApplication.applied_at < decoded.timestamp)

        result = await self.db.execute(query.limit(limit + 1))
        rows = list(result.scalars().all())
        return paginate(rows, limit, key=lambda a: (a.applied_at, a.id))

    async def get_application(self, application_id: uuid.UUID) -> ProjectApplication:
        result = await self.db.execute(
            _application_query().where(ProjectApplication.id == application_id)
        )
        application = result.scalar_one_or_none()
        if application is None:
            raise NotFoundError("Application not found")
        return application

    async def update_application_status(
        self,
        application_id: uuid.UUID,
        caller: Profile,
        status: str,
    ) -> ProjectApplication:
        """Post owner decides; the applicant may only withdraw."""
        application = await self.get_application(application_id)
        is_owner = application.post.author_profile_id == caller.id
        is_applicant = application.artist_profile_id == caller.id

        if not is_owner:
            if not (is_applicant and status == ApplicationStatus.WITHDRAWN.value):
                raise ForbiddenError("Only the project owner can update application status")

        application.status = status
        await self.db.flush()
        logger.info(f"Application {application_id} set to {status} by {caller.id}")
        return await self.get_application(application_id)

    async def remove_application(self, application_id: uuid.UUID, caller: Profile) -> None:
        application = await self.get_application(application_id)
        post = application.post
        is_owner = post.author_profile_id == caller.id
        is_applicant = application.artist_profile_id == caller.id
        if not (is_owner or is_applicant):
            raise ForbiddenError("You cannot remove this application")

        await self.db.delete(application)
        await self.db.flush()
        await self._adjust_applications_count(post.id, -1)

    async def application_status(
        self,
        post_id: uuid.UUID,
        caller: Profile,
    ) -> ProjectApplication | None:
        return await self._find_application(post_id, caller.id)
