"""Tests for photo processing and storage."""

import base64
import re
import threading
from io import BytesIO
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from PIL import Image

from krafts.services.object_storage import ObjectStorageError
from krafts.services.photo import (
    AVATAR_SIZE,
    PhotoProcessingError,
    PhotoService,
    build_path,
    decode_base64_image,
    is_remote_url,
    process_avatar,
    process_image,
)


def _png(width: int, height: int, mode: str = "RGBA") -> bytes:
    buffer = BytesIO()
    Image.new(mode, (width, height), color=(200, 10, 10, 255) if mode == "RGBA" else 128).save(
        buffer, format="PNG"
    )
    return buffer.getvalue()


def _dimensions(data: bytes) -> tuple[str, tuple[int, int]]:
    image = Image.open(BytesIO(data))
    return image.format, image.size


@pytest.fixture
def storage():
    client = MagicMock()
    client.put_object = AsyncMock()
    client.delete_object = AsyncMock()
    client.public_url.side_effect = lambda bucket, key: f"https://cdn.example.com/{bucket}/{key}"
    client.key_from_public_url.side_effect = (
        lambda bucket, url: url.split(f"/{bucket}/", 1)[1] if url.startswith("https://cdn.example.com/") else None
    )
    return client


@pytest.fixture
def service(storage):
    return PhotoService(storage=storage, bucket="photos")


# =============================================================================
# Image processing
# =============================================================================


class TestProcessImage:
    """Tests for process_image and process_avatar."""

    def test_large_image_fits_inside_bounds(self):
        fmt, size = _dimensions(process_image(_png(2400, 1200), max_size=1200))

        assert fmt == "JPEG"
        assert size == (1200, 600)

    def test_small_image_not_enlarged(self):
        _, size = _dimensions(process_image(_png(300, 200)))

        assert size == (300, 200)

    def test_transparency_flattened_to_rgb(self):
        image = Image.open(BytesIO(process_image(_png(50, 50, mode="RGBA"))))

        assert image.mode == "RGB"

    def test_avatar_is_square(self):
        fmt, size = _dimensions(process_avatar(_png(800, 500)))

        assert fmt == "JPEG"
        assert size == (AVATAR_SIZE, AVATAR_SIZE)

    def test_corrupt_bytes_rejected(self):
        with pytest.raises(PhotoProcessingError):
            process_image(b"definitely not an image")

    def test_oversized_payload_rejected(self):
        with patch("krafts.services.photo.settings") as mock_settings:
            mock_settings.upload_max_bytes = 10
            with pytest.raises(PhotoProcessingError):
                process_image(_png(20, 20))


class TestDecodeBase64:
    """Tests for decode_base64_image."""

    def test_data_url(self):
        raw = _png(4, 4)
        value = "data:image/png;base64," + base64.b64encode(raw).decode()

        assert decode_base64_image(value) == raw

    def test_bare_base64(self):
        raw = _png(4, 4)

        assert decode_base64_image(base64.b64encode(raw).decode()) == raw

    def test_invalid_base64(self):
        with pytest.raises(PhotoProcessingError):
            decode_base64_image("data:image/png;base64,@@@not-base64@@@")

    def test_empty_payload(self):
        with pytest.raises(PhotoProcessingError):
            decode_base64_image("")


class TestPaths:
    """Tests for object key construction."""

    def test_generated_name(self):
        assert re.fullmatch(r"posts/abc/\d+\.jpg", build_path("posts", "abc"))

    def test_filename_is_sanitised(self):
        path = build_path("profiles", "u1", "my photo (1).png")

        assert re.fullmatch(r"profiles/u1/\d+_my_photo__1_\.png", path)

    def test_unknown_prefix_rejected(self):
        with pytest.raises(ValueError):
            build_path("secrets", "u1")

    def test_remote_url_detection(self):
        assert is_remote_url("https://example.com/a.jpg")
        assert is_remote_url("http://example.com/a.jpg")
        assert not is_remote_url("data:image/png;base64,AAAA")


# =============================================================================
# PhotoService
# =============================================================================


class TestPhotoService:
    """Tests for PhotoService upload and delete."""

    @pytest.mark.asyncio
    async def test_upload_returns_public_url(self, service, storage):
        url = await service.upload_photo(b"jpeg", "profiles/u1/1.jpg")

        storage.put_object.assert_awaited_once_with("photos", "profiles/u1/1.jpg", b"jpeg", content_type="image/jpeg")
        assert url == "https://cdn.example.com/photos/profiles/u1/1.jpg"

    @pytest.mark.asyncio
    async def test_store_image_field_keeps_urls(self, service, storage):
        url = "https://images.example.org/poster.jpg"

        assert await service.store_image_field(url, prefix="posts", owner_id="p1") == url
        storage.put_object.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_store_image_field_empty(self, service):
        assert await service.store_image_field(None, prefix="posts", owner_id="p1") is None
        assert await service.store_image_field("", prefix="posts", owner_id="p1") is None

    @pytest.mark.asyncio
    async def test_store_image_field_uploads_base64(self, service, storage):
        value = "data:image/png;base64," + base64.b64encode(_png(64, 64)).decode()

        url = await service.store_image_field(value, prefix="posts", owner_id="p1")

        key = storage.put_object.await_args.args[1]
        assert key.startswith("posts/p1/")
        assert url.endswith(key)

    @pytest.mark.asyncio
    async def test_store_avatar_is_cropped(self, service, storage):
        value = base64.b64encode(_png(900, 300)).decode()

        await service.store_image_field(value, prefix="profiles", owner_id="u1", avatar=True)

        uploaded = storage.put_object.await_args.args[2]
        assert _dimensions(uploaded)[1] == (AVATAR_SIZE, AVATAR_SIZE)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("avatar, processor", [(False, "process_image"), (True, "process_avatar")])
    async def test_processing_runs_off_the_event_loop(self, service, storage, avatar, processor):
        value = base64.b64encode(_png(32, 32)).decode()
        loop_thread = threading.get_ident()
        worker_threads = []

        def record_thread(raw: bytes) -> bytes:
            worker_threads.append(threading.get_ident())
            return b"processed"

        with patch(f"krafts.services.photo.{processor}", record_thread):
            await service.store_image_field(value, prefix="posts", owner_id="p1", avatar=avatar)

        assert len(worker_threads) == 1
        assert worker_threads[0] != loop_thread
        assert storage.put_object.await_args.args[2] == b"processed"

    @pytest.mark.asyncio
    async def test_delete_by_url(self, service, storage):
        assert await service.delete_photo("https://cdn.example.com/photos/posts/p1/1.jpg")
        storage.delete_object.assert_awaited_once_with("photos", "posts/p1/1.jpg")

    @pytest.mark.asyncio
    async def test_delete_foreign_url_is_noop(self, service, storage):
        assert not await service.delete_photo("https://images.example.org/a.jpg")
        storage.delete_object.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_delete_failure_is_reported(self, service, storage):
        storage.delete_object.side_effect = ObjectStorageError("boom")

        assert not await service.delete_photo("posts/p1/1.jpg")
