"""Tests for casting calls and the application workflow."""

import uuid
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import IntegrityError

from krafts.core.errors import BadGatewayError, BadRequestError, ForbiddenError, NotFoundError
from krafts.models.post import Post, ProjectApplication
from krafts.models.profile import ArtistProfile, Profile
from krafts.schemas.post import ApplyRequest, PostCreate, PostUpdate
from krafts.services.object_storage import ObjectStorageError
from krafts.services.posts import (
    PostService,
    build_application_response,
    join_departments,
)


def _profile(role: str) -> Profile:
    return Profile(id=uuid.uuid4(), user_id=uuid.uuid4(), role=role, first_name=role.title())


def _post(author: Profile, status: str = "open", count: int = 0) -> Post:
    return Post(
        id=uuid.uuid4(),
        author_profile_id=author.id,
        title="Lead actor",
        description="Feature film",
        status=status,
        applications_count=count,
    )


def _result(value) -> MagicMock:
    result = MagicMock()
    result.scalar_one_or_none.return_value = value
    return result


@asynccontextmanager
async def _savepoint():
    yield


def _db(*values) -> AsyncMock:
    """Session whose successive execute() calls return the given rows."""
    db = AsyncMock()
    db.add = MagicMock()
    db.begin_nested = MagicMock(side_effect=lambda: _savepoint())
    db.execute.side_effect = [_result(v) for v in values]
    return db


# =============================================================================
# Helpers
# =============================================================================


class TestJoinDepartments:
    """Tests for join_departments."""

    def test_list_wins(self):
        assert join_departments("Camera", ["Direction", " Editing "]) == "Direction, Editing"

    def test_blank_entries_dropped(self):
        assert join_departments(None, ["", "  ", "Sound"]) == "Sound"

    def test_all_blank_is_none(self):
        assert join_departments(None, ["", " "]) is None

    def test_single_field_fallback(self):
        assert join_departments("Camera", None) == "Camera"
        assert join_departments("Camera", []) == "Camera"


class TestBuildApplicationResponse:
    """Tests for flattening applicant details."""

    def test_flattens_artist_fields(self):
        recruiter = _profile("recruiter")
        artist = _profile("artist")
        artist.last_name = "Rao"
        artist.artist_profile = ArtistProfile(id=uuid.uuid4(), department="Dance", city="Kochi")
        post = _post(recruiter)
        application = ProjectApplication(
            id=uuid.uuid4(),
            project_id=post.id,
            artist_profile_id=artist.id,
            status="pending",
            applied_at=datetime(2025, 5, 1, tzinfo=UTC),
        )
        application.artist = artist
        application.post = post

        response = build_application_response(application)

        assert response.artist_first_name == "Artist"
        assert response.artist_last_name == "Rao"
        assert response.artist_department == "Dance"
        assert response.artist_city == "Kochi"
        assert response.project_title == "Lead actor"


# =============================================================================
# Posts
# =============================================================================


class TestCreatePost:
    """Tests for PostService.create_post."""

    @pytest.mark.asyncio
    async def test_artist_cannot_create(self):
        db = _db()

        with pytest.raises(ForbiddenError):
            await PostService(db).create_post(_profile("artist"), PostCreate(title="T", description="D"))

        db.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_recruiter_creates_open_post(self):
        recruiter = _profile("recruiter")
        db = AsyncMock()
        db.add = MagicMock()
        db.execute.side_effect = lambda *_: _result(db.add.call_args.args[0])

        post = await PostService(db).create_post(
            recruiter,
            PostCreate(title="Cinematographer", description="Ad shoot", departments=["Camera", "Lighting"]),
        )

        assert post.author_profile_id == recruiter.id
        assert post.status == "open"
        assert post.department == "Camera, Lighting"
        assert post.applications_count == 0

    @pytest.mark.asyncio
    async def test_image_uploaded_through_photo_service(self):
        recruiter = _profile("recruiter")
        photos = MagicMock()
        photos.store_image_field = AsyncMock(return_value="https://cdn.example.com/photos/posts/x/1.jpg")
        db = AsyncMock()
        db.add = MagicMock()
        db.execute.side_effect = lambda *_: _result(db.add.call_args.args[0])

        post = await PostService(db, photos).create_post(
            recruiter,
            PostCreate(title="T", description="D", image="data:image/png;base64,AAAA"),
        )

        assert post.image_url == "https://cdn.example.com/photos/posts/x/1.jpg"
        assert photos.store_image_field.await_args.kwargs["prefix"] == "posts"


    @pytest.mark.asyncio
    async def test_storage_failure_is_bad_gateway(self):
        photos = MagicMock()
        photos.store_image_field = AsyncMock(side_effect=ObjectStorageError("MinIO unavailable"))
        db = _db()

        with pytest.raises(BadGatewayError) as exc_info:
            await PostService(db, photos).create_post(
                _profile("recruiter"),
                PostCreate(title="T", description="D", image="data:image/png;base64,AAAA"),
            )

        assert exc_info.value.status_code == 502
        assert exc_info.value.message == "Failed to store file"
        db.add.assert_not_called()


class TestUpdateAndDeletePost:
    """Ownership checks on post mutation."""

    @pytest.mark.asyncio
    async def test_non_owner_cannot_update(self):
        post = _post(_profile("recruiter"))
        db = _db(post)

        with pytest.raises(ForbiddenError):
            await PostService(db).update_post(post.id, _profile("recruiter"), PostUpdate(title="New"))

    @pytest.mark.asyncio
    async def test_admin_cannot_update_others_post(self):
        post = _post(_profile("recruiter"))
        db = _db(post)

        with pytest.raises(ForbiddenError):
            await PostService(db).update_post(post.id, _profile("admin"), PostUpdate(status="closed"))

        assert post.status == "open"

    @pytest.mark.asyncio
    async def test_admin_cannot_delete_others_post(self):
        post = _post(_profile("recruiter"))
        db = _db(post)

        with pytest.raises(ForbiddenError):
            await PostService(db).delete_post(post.id, _profile("superadmin"))

        db.delete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_post(self):
        with pytest.raises(NotFoundError):
            await PostService(_db(None)).delete_post(uuid.uuid4(), _profile("recruiter"))

    @pytest.mark.asyncio
    async def test_delete_removes_image(self):
        owner = _profile("recruiter")
        post = _post(owner)
        post.image_url = "https://cdn.example.com/photos/posts/p/1.jpg"
        photos = MagicMock()
        photos.delete_photo = AsyncMock(return_value=True)
        db = _db(post)

        await PostService(db, photos).delete_post(post.id, owner)

        db.delete.assert_awaited_once_with(post)
        photos.delete_photo.assert_awaited_once_with(post.image_url)

    @pytest.mark.asyncio
    async def test_image_deleted_after_commit(self):
        owner = _profile("recruiter")
        post = _post(owner)
        post.image_url = "https://cdn.example.com/photos/posts/p/1.jpg"
        calls = []
        photos = MagicMock()
        photos.delete_photo = AsyncMock(side_effect=lambda url: calls.append("delete_photo"))
        db = _db(post)
        db.commit.side_effect = lambda: calls.append("commit")

        await PostService(db, photos).delete_post(post.id, owner)

        assert calls == ["commit", "delete_photo"]

    @pytest.mark.asyncio
    async def test_failed_commit_keeps_image(self):
        owner = _profile("recruiter")
        post = _post(owner)
        post.image_url = "https://cdn.example.com/photos/posts/p/1.jpg"
        photos = MagicMock()
        photos.delete_photo = AsyncMock(return_value=True)
        db = _db(post)
        db.commit.side_effect = IntegrityError("DELETE", {}, Exception("fk violation"))

        with pytest.raises(IntegrityError):
            await PostService(db, photos).delete_post(post.id, owner)

        photos.delete_photo.assert_not_awaited()


# =============================================================================
# Applications
# =============================================================================


class TestApply:
    """Tests for PostService.apply."""

    @pytest.mark.asyncio
    async def test_only_artists_apply(self):
        with pytest.raises(ForbiddenError):
            await PostService(_db()).apply(uuid.uuid4(), _profile("recruiter"), ApplyRequest())

    @pytest.mark.asyncio
    async def test_closed_post_rejects(self):
        post = _post(_profile("recruiter"), status="closed")

        with pytest.raises(BadRequestError):
            await PostService(_db(post)).apply(post.id, _profile("artist"), ApplyRequest())

    @pytest.mark.asyncio
    async def test_new_application_increments_count(self):
        post = _post(_profile("recruiter"), count=2)
        artist = _profile("artist")
        stored = ProjectApplication(id=uuid.uuid4(), project_id=post.id, artist_profile_id=artist.id)
        db = _db(post, None, None, stored)

        application, created = await PostService(db).apply(
            post.id, artist, ApplyRequest(cover_letter="Hire me")
        )

        assert created is True
        assert application is stored
        db.begin_nested.assert_called_once()
        counter_update = db.execute.await_args_list[2].args[0]
        assert counter_update.is_update
        assert counter_update.table.name == "posts"
        # Incremented in SQL, not from the loaded value
        assert post.applications_count == 2
        added = db.add.call_args.args[0]
        assert added.status == "pending"
        assert added.cover_letter == "Hire me"

    @pytest.mark.asyncio
    async def test_duplicate_returns_existing(self):
        post = _post(_profile("recruiter"), count=1)
        artist = _profile("artist")
        existing = ProjectApplication(id=uuid.uuid4(), project_id=post.id, artist_profile_id=artist.id)
        db = _db(post, existing)

        application, created = await PostService(db).apply(post.id, artist, ApplyRequest())

        assert created is False
        assert application is existing
        assert post.applications_count == 1
        db.add.assert_not_called()


    @pytest.mark.asyncio
    async def test_concurrent_duplicate_returns_winner(self):
        post = _post(_profile("recruiter"), count=1)
        artist = _profile("artist")
        winner = ProjectApplication(id=uuid.uuid4(), project_id=post.id, artist_profile_id=artist.id)
        db = _db(post, None, winner)
        db.flush.side_effect = IntegrityError("INSERT", {}, Exception("duplicate key"))

        application, created = await PostService(db).apply(post.id, artist, ApplyRequest())

        assert created is False
        assert application is winner
        # No counter update for the losing insert
        assert db.execute.await_count == 3

    @pytest.mark.asyncio
    async def test_integrity_error_without_winner_propagates(self):
        post = _post(_profile("recruiter"))
        db = _db(post, None, None)
        db.flush.side_effect = IntegrityError("INSERT", {}, Exception("fk violation"))

        with pytest.raises(IntegrityError):
            await PostService(db).apply(post.id, _profile("artist"), ApplyRequest())


class TestApplicationStatus:
    """Tests for status changes and removal."""

    @staticmethod
    def _application(owner: Profile, artist: Profile) -> ProjectApplication:
        post = _post(owner, count=1)
        application = ProjectApplication(
            id=uuid.uuid4(),
            project_id=post.id,
            artist_profile_id=artist.id,
            status="pending",
        )
        application.post = post
        return application

    @pytest.mark.asyncio
    async def test_owner_accepts(self):
        owner, artist = _profile("recruiter"), _profile("artist")
        application = self._application(owner, artist)
        db = _db(application, application)

        await PostService(db).update_application_status(application.id, owner, "accepted")

        assert application.status == "accepted"

    @pytest.mark.asyncio
    async def test_applicant_can_withdraw(self):
        owner, artist = _profile("recruiter"), _profile("artist")
        application = self._application(owner, artist)
        db = _db(application, application)

        await PostService(db).update_application_status(application.id, artist, "withdrawn")

        assert application.status == "withdrawn"

    @pytest.mark.asyncio
    async def test_applicant_cannot_accept_self(self):
        owner, artist = _profile("recruiter"), _profile("artist")
        application = self._application(owner, artist)

        with pytest.raises(ForbiddenError):
            await PostService(_db(application)).update_application_status(application.id, artist, "accepted")

        assert application.status == "pending"

    @pytest.mark.asyncio
    async def test_stranger_cannot_remove(self):
        owner, artist = _profile("recruiter"), _profile("artist")
        application = self._application(owner, artist)

        with pytest.raises(ForbiddenError):
            await PostService(_db(application)).remove_application(application.id, _profile("artist"))

    @pytest.mark.asyncio
    async def test_remove_decrements_count(self):
        owner, artist = _profile("recruiter"), _profile("artist")
        application = self._application(owner, artist)
        db = _db(application, None)

        await PostService(db).remove_application(application.id, artist)

        db.delete.assert_awaited_once_with(application)
        counter_update = db.execute.await_args.args[0]
        assert counter_update.is_update
        assert counter_update.table.name == "posts"
