"""Tests for JWT token expiration handling.

Expired or mistyped tokens must produce 401 responses so the mobile app
sends the user back through OTP login.
"""

import uuid
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import HTTPException, status
from jose import jwt

from krafts.core.config import settings
from krafts.core.security import (
    create_access_token,
    create_signup_token,
    verify_signup_token,
    verify_token,
)


def _expired_token(subject: str, token_type: str = "access") -> str:
    to_encode = {
        "sub": subject,
        "exp": datetime.now(UTC) - timedelta(hours=1),
        "iat": datetime.now(UTC) - timedelta(hours=2),
        "type": token_type,
    }
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.jwt_algorithm)


class TestJWTExpiration:
    """Test JWT token expiration behavior."""

    def test_create_token_with_custom_expiration(self):
        """Test creating a token with custom expiration time."""
        user_id = str(uuid.uuid4())

        token = create_access_token(subject=user_id, expires_delta=timedelta(hours=1))

        payload = verify_token(token)
        assert payload is not None
        assert payload["sub"] == user_id
        assert payload["type"] == "access"

    def test_expired_token_returns_none(self):
        """An expired token is rejected by verify_token."""
        payload = verify_token(_expired_token(str(uuid.uuid4())))
        assert payload is None, "Expired token should return None"

    def test_invalid_token_returns_none(self):
        assert verify_token("invalid.token.here") is None

    def test_tampered_token_returns_none(self):
        """Test that a tampered token returns None."""
        token = create_access_token(subject=str(uuid.uuid4()))

        parts = token.split(".")
        parts[1] = parts[1] + "tampered"

        assert verify_token(".".join(parts)) is None

    def test_additional_claims_are_embedded(self):
        token = create_access_token(subject="abc", additional_claims={"phone": "+919876543210"})

        payload = verify_token(token)
        assert payload["phone"] == "+919876543210"
        assert payload["type"] == "access"


class TestSignupToken:
    """Short-lived token issued after OTP verification for new numbers."""

    def test_signup_token_carries_phone(self):
        token = create_signup_token("+919876543210")

        assert verify_signup_token(token) == "+919876543210"

    def test_access_token_is_not_a_signup_token(self):
        token = create_access_token(subject=str(uuid.uuid4()))

        assert verify_signup_token(token) is None

    def test_expired_signup_token_rejected(self):
        token = create_signup_token("+919876543210", expires_delta=timedelta(seconds=-5))

        assert verify_signup_token(token) is None


class TestGetCurrentUserWithExpiredToken:
    """Test get_current_user dependency with expired tokens."""

    @pytest.mark.asyncio
    async def test_expired_token_raises_401(self):
        from krafts.api.deps import get_current_user

        mock_credentials = MagicMock()
        mock_credentials.credentials = _expired_token(str(uuid.uuid4()))
        mock_db = AsyncMock()

        with pytest.raises(HTTPException) as exc_info:
            await get_current_user(credentials=mock_credentials, db=mock_db)

        assert exc_info.value.status_code == status.HTTP_401_UNAUTHORIZED
        assert "Invalid or expired token" in exc_info.value.detail
        mock_db.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_valid_token_with_nonexistent_user_raises_401(self):
        from krafts.api.deps import get_current_user

        mock_credentials = MagicMock()
        mock_credentials.credentials = create_access_token(subject=str(uuid.uuid4()))

        mock_db = AsyncMock()
        mock_result = MagicMock()
        mock_result.scalar_one_or_none.return_value = None
        mock_db.execute.return_value = mock_result

        with pytest.raises(HTTPException) as exc_info:
            await get_current_user(credentials=mock_credentials, db=mock_db)

        assert exc_info.value.status_code == status.HTTP_401_UNAUTHORIZED
        assert "User not found" in exc_info.value.detail

    @pytest.mark.asyncio
    async def test_signup_token_used_as_access_token_raises_401(self):
        """A signup token must not authenticate API calls."""
        from krafts.api.deps import get_current_user

        mock_credentials = MagicMock()
        mock_credentials.credentials = create_signup_token("+919876543210")
        mock_db = AsyncMock()

        with pytest.raises(HTTPException) as exc_info:
            await get_current_user(credentials=mock_credentials, db=mock_db)

        assert exc_info.value.status_code == status.HTTP_401_UNAUTHORIZED
        assert "Invalid token type" in exc_info.value.detail

    @pytest.mark.asyncio
    async def test_non_uuid_subject_raises_401(self):
        from krafts.api.deps import get_current_user

        mock_credentials = MagicMock()
        mock_credentials.credentials = create_access_token(subject="not-a-uuid")
        mock_db = AsyncMock()

        with pytest.raises(HTTPException) as exc_info:
            await get_current_user(credentials=mock_credentials, db=mock_db)

        assert exc_info.value.status_code == status.HTTP_401_UNAUTHORIZED
        assert "Invalid token payload" in exc_info.value.detail

    @pytest.mark.asyncio
    async def test_valid_token_returns_user(self):
        from krafts.api.deps import get_current_user

        user_id = uuid.uuid4()
        user = MagicMock()
        user.id = user_id

        mock_credentials = MagicMock()
        mock_credentials.credentials = create_access_token(subject=str(user_id))

        mock_db = AsyncMock()
        mock_result = MagicMock()
        mock_result.scalar_one_or_none.return_value = user
        mock_db.execute.return_value = mock_result

        assert await get_current_user(credentials=mock_credentials, db=mock_db) is user


class TestProfileDependencies:
    """Tests for get_current_profile and require_roles."""

    @pytest.mark.asyncio
    async def test_user_without_profile_raises_401(self):
        from krafts.api.deps import get_current_profile

        user = MagicMock()
        user.profiles = []

        with pytest.raises(HTTPException) as exc_info:
            await get_current_profile(user)

        assert exc_info.value.status_code == status.HTTP_401_UNAUTHORIZED
        assert exc_info.value.detail == "User profile not found"

    @pytest.mark.asyncio
    async def test_first_profile_is_primary(self):
        from krafts.api.deps import get_current_profile

        first, second = MagicMock(), MagicMock()
        user = MagicMock()
        user.profiles = [first, second]

        assert await get_current_profile(user) is first

    @pytest.mark.asyncio
    async def test_require_roles_rejects_other_roles(self):
        from krafts.api.deps import require_roles

        checker = require_roles("admin", "superadmin")
        profile = MagicMock()
        profile.role = "artist"

        with pytest.raises(HTTPException) as exc_info:
            await checker(profile)

        assert exc_info.value.status_code == status.HTTP_403_FORBIDDEN

    @pytest.mark.asyncio
    async def test_require_roles_accepts_listed_role(self):
        from krafts.api.deps import require_roles

        checker = require_roles("admin", "superadmin")
        profile = MagicMock()
        profile.role = "superadmin"

        assert await checker(profile) is profile


class TestTokenLifetimeConfiguration:
    """Test token lifetime configuration."""

    def test_created_token_has_correct_expiration(self):
        token = create_access_token(subject=str(uuid.uuid4()))

        payload = verify_token(token)
        assert payload is not None

        expected_lifetime_seconds = settings.jwt_access_token_expire_days * 24 * 60 * 60
        actual_lifetime_seconds = payload["exp"] - payload["iat"]

        # Allow 5 second tolerance for test execution time
        assert abs(actual_lifetime_seconds - expected_lifetime_seconds) < 5

    def test_signup_token_is_short_lived(self):
        payload = verify_token(create_signup_token("+919876543210"))

        lifetime = payload["exp"] - payload["iat"]
        assert abs(lifetime - settings.jwt_signup_token_expire_minutes * 60) < 5


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
