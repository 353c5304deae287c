"""Unit tests for ObjectStorageClient and MinIOClient.

Tests cover:
- put_object and delete_object operations
- Public URL mapping used for stored photos
- Error handling for unavailable MinIO
"""

from unittest.mock import MagicMock, patch

import pytest
from minio.error import S3Error

from krafts.services.object_storage import (
    MinIOClient,
    ObjectStorageError,
)


def _s3_error(code: str, message: str = "error") -> S3Error:
    return S3Error(
        code=code,
        message=message,
        resource="/photos/profiles/key.jpg",
        request_id="test-request-id",
        host_id="test-host-id",
        response=MagicMock(),
    )


# =============================================================================
# Test Fixtures
# =============================================================================


@pytest.fixture
def mock_minio_client():
    """Create a mock Minio client."""
    with patch("krafts.services.object_storage.Minio") as mock_minio_class:
        mock_client = MagicMock()
        mock_minio_class.return_value = mock_client
        yield mock_client


@pytest.fixture
def minio_client(mock_minio_client):
    """Create a MinIOClient with mocked underlying Minio client."""
    client = MinIOClient(
        endpoint="localhost:9000",
        access_key="test_access",
        secret_key="test_secret",
        secure=False,
        public_base_url="https://cdn.example.com/",
    )
    client._client = mock_minio_client
    return client


# =============================================================================
# Test put_object
# =============================================================================


class TestPutObject:
    """Tests for MinIOClient.put_object operation."""

    @pytest.mark.asyncio
    async def test_put_object_success(self, minio_client, mock_minio_client):
        """Test successful object upload."""
        await minio_client.put_object(
            bucket="photos",
            key="profiles/u1/1.jpg",
            data=b"jpeg bytes",
            content_type="image/jpeg",
        )

        mock_minio_client.put_object.assert_called_once()
        call_args = mock_minio_client.put_object.call_args
        assert call_args[0][0] == "photos"
        assert call_args[0][1] == "profiles/u1/1.jpg"
        assert call_args[0][2].read() == b"jpeg bytes"
        assert call_args[0][3] == 10
        assert call_args[1]["content_type"] == "image/jpeg"

    @pytest.mark.asyncio
    async def test_put_object_default_content_type(self, minio_client, mock_minio_client):
        await minio_client.put_object(bucket="photos", key="k.bin", data=b"\x00\x01")

        assert mock_minio_client.put_object.call_args[1]["content_type"] == "application/octet-stream"

    @pytest.mark.asyncio
    async def test_put_object_s3_error(self, minio_client, mock_minio_client):
        mock_minio_client.put_object.side_effect = _s3_error("InternalError")

        with pytest.raises(ObjectStorageError) as exc_info:
            await minio_client.put_object(bucket="photos", key="k.jpg", data=b"x")

        assert "Failed to upload object" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_put_object_minio_unavailable(self, minio_client, mock_minio_client):
        """Upload fails with ObjectStorageError when MinIO is unreachable."""
        mock_minio_client.put_object.side_effect = Exception(
            "Failed to establish a new connection: [Errno 111] Connection refused"
        )

        with pytest.raises(ObjectStorageError) as exc_info:
            await minio_client.put_object(bucket="photos", key="k.jpg", data=b"x")

        assert "Failed to upload object" in str(exc_info.value)


# =============================================================================
# Test delete_object
# =============================================================================


class TestDeleteObject:
    """Tests for MinIOClient.delete_object operation."""

    @pytest.mark.asyncio
    async def test_delete_object_success(self, minio_client, mock_minio_client):
        await minio_client.delete_object(bucket="photos", key="posts/p1/1.jpg")

        mock_minio_client.remove_object.assert_called_once_with("photos", "posts/p1/1.jpg")

    @pytest.mark.asyncio
    async def test_delete_object_not_found_is_idempotent(self, minio_client, mock_minio_client):
        """Deleting a missing object does not raise."""
        mock_minio_client.remove_object.side_effect = _s3_error("NoSuchKey")

        await minio_client.delete_object(bucket="photos", key="posts/p1/1.jpg")

    @pytest.mark.asyncio
    async def test_delete_object_s3_error(self, minio_client, mock_minio_client):
        mock_minio_client.remove_object.side_effect = _s3_error("AccessDenied")

        with pytest.raises(ObjectStorageError) as exc_info:
            await minio_client.delete_object(bucket="photos", key="posts/p1/1.jpg")

        assert "Failed to delete object" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_delete_object_connection_error(self, minio_client, mock_minio_client):
        mock_minio_client.remove_object.side_effect = Exception("Connection refused")

        with pytest.raises(ObjectStorageError):
            await minio_client.delete_object(bucket="photos", key="posts/p1/1.jpg")


# =============================================================================
# Test public URLs
# =============================================================================


class TestPublicUrl:
    """Tests for public URL construction and reverse mapping."""

    def test_public_url_strips_trailing_slash(self, minio_client):
        assert (
            minio_client.public_url("photos", "profiles/u1/1.jpg")
            == "https://cdn.example.com/photos/profiles/u1/1.jpg"
        )

    def test_key_from_own_url(self, minio_client):
        url = minio_client.public_url("photos", "posts/p1/2.jpg")

        assert minio_client.key_from_public_url("photos", url) == "posts/p1/2.jpg"

    def test_key_from_foreign_url_is_none(self, minio_client):
        assert minio_client.key_from_public_url("photos", "https://images.example.org/a.jpg") is None

    def test_key_from_bucket_root_is_none(self, minio_client):
        assert minio_client.key_from_public_url("photos", "https://cdn.example.com/photos/") is None


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
