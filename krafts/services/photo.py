"""Photo processing and storage.

Images are normalised with Pillow before upload: EXIF orientation applied,
converted to RGB and re-encoded as JPEG. Object keys follow a fixed prefix
per owner type so photos can be cleaned up per resource.
"""

import asyncio
import base64
import binascii
import logging
import re
import time
from io import BytesIO

from PIL import Image, ImageOps, UnidentifiedImageError

from krafts.core.config import settings
from krafts.services.object_storage import (
    MinIOClient,
    ObjectStorageError,
    get_object_storage_client,
)

logger = logging.getLogger(__name__)

PATH_PREFIXES = frozenset({
    "profiles",
    "posts",
    "projects",
    "chats",
    "artist_profiles",
    "recruiter_profiles",
})

ALLOWED_CONTENT_TYPES = frozenset({
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/gif",
    "image/webp",
})

DEFAULT_MAX_DIMENSION = 1200
DEFAULT_JPEG_QUALITY = 85
AVATAR_SIZE = 400
AVATAR_JPEG_QUALITY = 90

_DATA_URL_RE = re.compile(r"^data:(?P<mime>[\w/+.-]+);base64,(?P<data>.+)$", re.DOTALL)


class PhotoProcessingError(ValueError):
    """Raised when image bytes cannot be decoded or are out of bounds."""


def is_remote_url(value: str) -> bool:
    return value.startswith(("http://", "https://"))


def decode_base64_image(value: str) -> bytes:
    """Decode a data URL or bare base64 string into bytes."""
    match = _DATA_URL_RE.match(value.strip())
    payload = match.group("data") if match else value.strip()
    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise PhotoProcessingError("Invalid base64 image data") from e
    if not data:
        raise PhotoProcessingError("Empty image data")
    return data


def _check_size(data: bytes) -> None:
    if len(data) > settings.upload_max_bytes:
        raise PhotoProcessingError(
            f"Image exceeds {settings.upload_max_bytes // (1024 * 1024)}MB limit"
        )


def _open(data: bytes) -> Image.Image:
    try:
        image = Image.open(BytesIO(data))
        image.load()
    except (UnidentifiedImageError, OSError) as e:
        raise PhotoProcessingError("Unsupported or corrupt image") from e
    image = ImageOps.exif_transpose(image)
    if image.mode != "RGB":
        image = image.convert("RGB")
    return image


def _encode_jpeg(image: Image.Image, quality: int) -> bytes:
    buffer = BytesIO()
    image.save(buffer, format="JPEG", quality=quality, optimize=True)
    return buffer.getvalue()


def process_image(
    data: bytes,
    max_size: int = DEFAULT_MAX_DIMENSION,
    quality: int = DEFAULT_JPEG_QUALITY,
) -> bytes:
    """Fit an image inside max_size x max_size without enlarging it."""
    _check_size(data)
    image = _open(data)
    if image.width > max_size or image.height > max_size:
        image.thumbnail((max_size, max_size), Image.Resampling.LANCZOS)
    return _encode_jpeg(image, quality)


def process_avatar(data: bytes, size: int = AVATAR_SIZE) -> bytes:
    """Center-crop and scale to a size x size square."""
    _check_size(data)
    image = _open(data)
    image = ImageOps.fit(image, (size, size), Image.Resampling.LANCZOS)
    return _encode_jpeg(image, AVATAR_JPEG_QUALITY)


def build_path(prefix: str, owner_id: str, filename: str | None = None) -> str:
    """Object key: <prefix>/<owner_id>/<timestamp>[_<filename>|.jpg]."""
    if prefix not in PATH_PREFIXES:
        raise ValueError(f"Unknown photo prefix: {prefix}")
    ts = int(time.time() * 1000)
    if filename:
        safe = re.sub(r"[^A-Za-z0-9._-]", "_", filename)[-100:]
        return f"{prefix}/{owner_id}/{ts}_{safe}"
    return f"{prefix}/{owner_id}/{ts}.jpg"


class PhotoService:
    """Uploads processed photos to the photo bucket."""

    def __init__(self, storage: MinIOClient | None = None, bucket: str | None = None):
        self.storage = storage or get_object_storage_client()
        self.bucket = bucket or settings.minio_bucket

    async def upload_photo(
        self,
        data: bytes,
        path: str,
        content_type: str = "image/jpeg",
    ) -> str:
        """Store bytes at path and return the public URL."""
        await self.storage.put_object(self.bucket, path, data, content_type=content_type)
        logger.info(f"Stored photo {path} ({len(data)} bytes)")
        return self.storage.public_url(self.bucket, path)

    async def store_image_field(
        self,
        value: str | None,
        prefix: str,
        owner_id: str,
        avatar: bool = False,
    ) -> str | None:
        """Resolve an image field that may be a URL or base64 data.

        URLs are stored as given; base64 is processed and uploaded.
        """
        if not value:
            return None
        if is_remote_url(value):
            return value
        raw = decode_base64_image(value)
        # Pillow runs in a worker thread
        processed = await asyncio.to_thread(process_avatar if avatar else process_image, raw)
        return await self.upload_photo(processed, build_path(prefix, owner_id))

    async def delete_photo(self, url_or_path: str) -> bool:
        """Delete a photo by public URL or object key.

        Returns False for URLs that do not point into the photo bucket.
        """
        key = url_or_path
        if is_remote_url(url_or_path):
            key = self.storage.key_from_public_url(self.bucket, url_or_path)
            if key is None:
                return False
        try:
            await self.storage.delete_object(self.bucket, key)
        except ObjectStorageError as e:
            logger.warning(f"Failed to delete photo {key}: {e}")
            return False
        return True


_photo_service: PhotoService | None = None


def get_photo_service() -> PhotoService:
    """FastAPI dependency returning the shared PhotoService."""
    global _photo_service
    if _photo_service is None:
        _photo_service = PhotoService()
    return _photo_service
