"""Object storage for user photos.

MinIO locally, any S3 compatible endpoint in production. The minio SDK is
synchronous, so calls run in a thread pool and are awaited from handlers.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from io import BytesIO

from minio import Minio
from minio.error import S3Error

from krafts.core.config import settings

logger = logging.getLogger(__name__)

# Thread pool for running sync MinIO operations in async context
_executor = ThreadPoolExecutor(max_workers=10, thread_name_prefix="minio_")


class ObjectStorageError(Exception):
    """Base exception for object storage operations."""
    pass


class ObjectStorageClient(ABC):
    """Abstract interface for object storage operations."""

    @abstractmethod
    async def put_object(
        self,
        bucket: str,
        key: str,
        data: bytes,
        content_type: str = "application/octet-stream",
    ) -> None:
        """Upload object to storage.

        Raises:
            ObjectStorageError: If upload fails
        """
        ...

    @abstractmethod
    async def delete_object(self, bucket: str, key: str) -> None:
        """Delete object from storage. Missing objects are ignored."""
        ...

    @abstractmethod
    def public_url(self, bucket: str, key: str) -> str:
        """URL clients use to fetch a publicly readable object."""
        ...


class MinIOClient(ObjectStorageClient):
    """MinIO implementation of ObjectStorageClient.

    Uses sync minio SDK with async wrappers via ThreadPoolExecutor.
    """

    def __init__(
        self,
        endpoint: str | None = None,
        access_key: str | None = None,
        secret_key: str | None = None,
        secure: bool | None = None,
        public_base_url: str | None = None,
    ):
        self._client = Minio(
            endpoint or settings.minio_endpoint,
            access_key=access_key or settings.minio_access_key,
            secret_key=secret_key or settings.minio_secret_key,
            secure=secure if secure is not None else settings.minio_secure,
        )
        self._public_base_url = (public_base_url or settings.storage_public_url).rstrip("/")

    def _run_sync(self, func, *args, **kwargs):
        """Run a sync function in the thread pool."""
        loop = asyncio.get_running_loop()
        return loop.run_in_executor(_executor, partial(func, *args, **kwargs))

    async def put_object(
        self,
        bucket: str,
        key: str,
        data: bytes,
        content_type: str = "application/octet-stream",
    ) -> None:
        """Upload object to MinIO."""
        try:
            await self._run_sync(
                self._client.put_object,
                bucket,
                key,
                BytesIO(data),
                len(data),
                content_type=content_type,
            )
            logger.debug(f"Uploaded object: {bucket}/{key} ({len(data)} bytes)")
        except S3Error as e:
            logger.error(f"Failed to upload {bucket}/{key}: {e}")
            raise ObjectStorageError(f"Failed to upload object: {e}") from e
        except Exception as e:
            logger.error(f"Unexpected error uploading {bucket}/{key}: {e}")
            raise ObjectStorageError(f"Failed to upload object: {e}") from e

    async def delete_object(self, bucket: str, key: str) -> None:
        """Delete object from MinIO (idempotent)."""
        try:
            await self._run_sync(self._client.remove_object, bucket, key)
            logger.debug(f"Deleted object: {bucket}/{key}")
        except S3Error as e:
            if e.code == "NoSuchKey":
                logger.debug(f"Object already deleted: {bucket}/{key}")
                return
            logger.error(f"Failed to delete {bucket}/{key}: {e}")
            raise ObjectStorageError(f"Failed to delete object: {e}") from e
        except Exception as e:
            logger.error(f"Unexpected error deleting {bucket}/{key}: {e}")
            raise ObjectStorageError(f"Failed to delete object: {e}") from e

    def public_url(self, bucket: str, key: str) -> str:
        return f"{self._public_base_url}/{bucket}/{key}"

    def key_from_public_url(self, bucket: str, url: str) -> str | None:
        """Object key for a URL produced by public_url, None for foreign URLs."""
        prefix = f"{self._public_base_url}/{bucket}/"
        if url.startswith(prefix):
            return url[len(prefix):] or None
        return None


# Singleton instance for convenience
_default_client: MinIOClient | None = None


def get_object_storage_client() -> MinIOClient:
    """Get the default object storage client (singleton)."""
    global _default_client
    if _default_client is None:
        _default_client = MinIOClient()
    return _default_client
