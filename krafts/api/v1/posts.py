"""Post (casting call) and application endpoints."""

import logging
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, Response, status

from krafts.api.deps import CurrentProfile, DbSession, Photos
from krafts.core.pagination import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from krafts.schemas.common import CursorPage, SuccessResponse
from krafts.schemas.post import (
    ApplicationResponse,
    ApplicationStatusResponse,
    ApplicationStatusUpdate,
    ApplyRequest,
    CommentCreate,
    PostCreate,
    PostResponse,
    PostUpdate,
)
from krafts.services.posts import PostService, build_application_response, build_post_response

logger = logging.getLogger(__name__)
router = APIRouter()


# =============================================================================
# Applications (fixed paths are registered before /{post_id})
# =============================================================================


@router.get("/applications", response_model=CursorPage[ApplicationResponse])
async def list_applications(
    db: DbSession,
    current_profile: CurrentProfile,
    project_id: UUID | None = Query(None, alias="projectId"),
    artist_profile_id: UUID | None = Query(None, alias="artistProfileId"),
    status_filter: str | None = Query(None, alias="status"),
    cursor: str | None = Query(None),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
) -> CursorPage[ApplicationResponse]:
    """Applications visible to the caller, newest first."""
    applications, next_cursor = await PostService(db).list_applications(
        current_profile,
        project_id=project_id,
        artist_profile_id=artist_profile_id,
        status=status_filter,
        cursor=cursor,
        limit=limit,
    )
    return CursorPage(
        data=[build_application_response(a) for a in applications],
        next_cursor=next_cursor,
    )


@router.get("/my-applications", response_model=CursorPage[ApplicationResponse])
async def my_applications(
    db: DbSession,
    current_profile: CurrentProfile,
    cursor: str | None = Query(None),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
) -> CursorPage[ApplicationResponse]:
    """The caller's own applications."""
    applications, next_cursor = await PostService(db).list_applications(
        current_profile,
        project_id=None,
        artist_profile_id=current_profile.id,
        status=None,
        cursor=cursor,
        limit=limit,
    )
    return CursorPage(
        data=[build_application_response(a) for a in applications],
        next_cursor=next_cursor,
    )


@router.patch("/applications/{application_id}/status", response_model=ApplicationResponse)
async def update_application_status(
    application_id: UUID,
    body: ApplicationStatusUpdate,
    db: DbSession,
    current_profile: CurrentProfile,
) -> ApplicationResponse:
    """Accept/reject (post author) or withdraw (applicant) an application."""
    application = await PostService(db).update_application_status(
        application_id, current_profile, body.status
    )
    return build_application_response(application)


@router.delete("/applications/{application_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_application(
    application_id: UUID,
    db: DbSession,
    current_profile: CurrentProfile,
) -> Response:
    await PostService(db).remove_application(application_id, current_profile)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# =============================================================================
# Posts
# =============================================================================


@router.get("", response_model=CursorPage[PostResponse])
async def list_posts(
    db: DbSession,
    _: CurrentProfile,
    profile_id: UUID | None = Query(None, alias="profileId"),
    role: str | None = Query(None),
    department: str | None = Query(None),
    cursor: str | None = Query(None),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
) -> CursorPage[PostResponse]:
    """Casting calls, newest first."""
    posts, next_cursor = await PostService(db).list_posts(
        profile_id=profile_id,
        role=role,
        department=department,
        cursor=cursor,
        limit=limit,
    )
    return CursorPage(data=[build_post_response(p) for p in posts], next_cursor=next_cursor)


@router.post("", response_model=PostResponse, status_code=status.HTTP_201_CREATED)
async def create_post(
    body: PostCreate,
    db: DbSession,
    current_profile: CurrentProfile,
    photos: Photos,
) -> PostResponse:
    post = await PostService(db, photos=photos).create_post(current_profile, body)
    return build_post_response(post)


@router.get("/{post_id}", response_model=PostResponse)
async def get_post(post_id: UUID, db: DbSession, _: CurrentProfile) -> PostResponse:
    post = await PostService(db).get_post(post_id)
    return build_post_response(post)


@router.patch("/{post_id}", response_model=PostResponse)
async def update_post(
    post_id: UUID,
    body: PostUpdate,
    db: DbSession,
    current_profile: CurrentProfile,
) -> PostResponse:
    post = await PostService(db).update_post(post_id, current_profile, body)
    return build_post_response(post)


@router.delete("/{post_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_post(
    post_id: UUID,
    db: DbSession,
    current_profile: CurrentProfile,
    photos: Photos,
) -> Response:
    await PostService(db, photos=photos).delete_post(post_id, current_profile)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{post_id}/like")
async def like_post(post_id: UUID, _: CurrentProfile) -> dict[str, bool]:
    """Likes are disabled."""
    return {"liked": False}


@router.post("/{post_id}/comment", response_model=SuccessResponse)
async def add_comment(post_id: UUID, body: CommentCreate, _: CurrentProfile) -> SuccessResponse:
    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail="Comments are disabled",
    )


@router.get("/{post_id}/comments")
async def list_comments(post_id: UUID, _: CurrentProfile) -> dict:
    """Comments are disabled; always an empty page."""
    return {"data": [], "nextCursor": None}


@router.post("/{post_id}/apply")
async def apply_to_post(
    post_id: UUID,
    body: ApplyRequest,
    response: Response,
    db: DbSession,
    current_profile: CurrentProfile,
) -> ApplicationResponse:
    """Apply to an open post. Re-applying returns the existing application."""
    application, created = await PostService(db).apply(post_id, current_profile, body)
    response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
    return build_application_response(application)


@router.get("/{post_id}/applications", response_model=CursorPage[ApplicationResponse])
async def list_post_applications(
    post_id: UUID,
    db: DbSession,
    current_profile: CurrentProfile,
    cursor: str | None = Query(None),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
) -> CursorPage[ApplicationResponse]:
    """Applications to one post."""
    applications, next_cursor = await PostService(db).list_applications(
        current_profile,
        project_id=post_id,
        artist_profile_id=None,
        status=None,
        cursor=cursor,
        limit=limit,
    )
    return CursorPage(
        data=[build_application_response(a) for a in applications],
        next_cursor=next_cursor,
    )


@router.get("/{post_id}/application-status", response_model=ApplicationStatusResponse)
async def application_status(
    post_id: UUID,
    db: DbSession,
    current_profile: CurrentProfile,
) -> ApplicationStatusResponse:
    application = await PostService(db).application_status(post_id, current_profile)
    return ApplicationStatusResponse(
        has_applied=application is not None,
        application=build_application_response(application) if application else None,
    )
