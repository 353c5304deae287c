"""File upload endpoint."""

import logging

from fastapi import APIRouter, File, HTTPException, Request, UploadFile, status

from krafts.api.deps import CurrentUser, Photos
from krafts.core.config import settings
from krafts.core.rate_limit import enforce_rate_limit
from krafts.services.object_storage import ObjectStorageError
from krafts.services.photo import ALLOWED_CONTENT_TYPES, build_path

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("")
async def upload_file(
    request: Request,
    current_user: CurrentUser,
    photos: Photos,
    file: UploadFile = File(...),
) -> dict:
    """Store an image for the caller and return its public URL."""
    enforce_rate_limit(
        request,
        user_id=str(current_user.id),
        limit_per_minute=settings.rate_limit_upload_per_minute,
        scope="upload",
    )

    if file.content_type not in ALLOWED_CONTENT_TYPES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Unsupported file type",
        )

    # Read at most one byte past the limit
    data = await file.read(settings.upload_max_bytes + 1)
    if len(data) > settings.upload_max_bytes:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="File too large",
        )
    if not data:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No file uploaded",
        )

    path = build_path("profiles", str(current_user.id), file.filename or "upload")
    try:
        url = await photos.upload_photo(data, path, content_type=file.content_type)
    except ObjectStorageError as e:
        logger.error(f"Upload failed for user {current_user.id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Failed to store file",
        ) from e

    return {"success": True, "publicUrl": url, "url": url}
