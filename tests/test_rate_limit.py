"""Tests for the in-memory fixed-window rate limiter."""

from unittest.mock import MagicMock, patch

import pytest
from fastapi import HTTPException, status

from krafts.core import rate_limit


@pytest.fixture(autouse=True)
def clean_buckets():
    rate_limit.reset()
    yield
    rate_limit.reset()


def _request(ip: str = "10.0.0.1", forwarded: str | None = None) -> MagicMock:
    request = MagicMock()
    request.headers = {"x-forwarded-for": forwarded} if forwarded else {}
    request.client.host = ip
    return request


class TestHit:
    """Tests for the window counter."""

    def test_allows_up_to_limit(self):
        for _ in range(3):
            assert rate_limit.hit("k", limit=3, window_seconds=60) is None

        retry_after = rate_limit.hit("k", limit=3, window_seconds=60)
        assert retry_after is not None
        assert 0 < retry_after <= 60

    def test_window_resets(self):
        with patch("krafts.core.rate_limit._now", return_value=1000.0):
            rate_limit.hit("k", limit=1, window_seconds=10)
            assert rate_limit.hit("k", limit=1, window_seconds=10) is not None

        with patch("krafts.core.rate_limit._now", return_value=1010.0):
            assert rate_limit.hit("k", limit=1, window_seconds=10) is None

    def test_keys_are_independent(self):
        rate_limit.hit("a", limit=1, window_seconds=60)

        assert rate_limit.hit("b", limit=1, window_seconds=60) is None


class TestAllow:
    """Tests for the non-raising gateway variant."""

    def test_allow_returns_false_when_exceeded(self):
        assert rate_limit.allow("chat:1", limit=2, window_seconds=1)
        assert rate_limit.allow("chat:1", limit=2, window_seconds=1)
        assert not rate_limit.allow("chat:1", limit=2, window_seconds=1)

    def test_disabled_limiter_always_allows(self):
        with patch.object(rate_limit.settings, "rate_limit_enabled", False):
            for _ in range(5):
                assert rate_limit.allow("chat:1", limit=1, window_seconds=1)


class TestEnforceRateLimit:
    """Tests for the HTTP dependency helper."""

    def test_raises_429_with_retry_after(self):
        request = _request()
        rate_limit.enforce_rate_limit(request, user_id=None, limit_per_minute=1, scope="auth")

        with pytest.raises(HTTPException) as exc_info:
            rate_limit.enforce_rate_limit(request, user_id=None, limit_per_minute=1, scope="auth")

        assert exc_info.value.status_code == status.HTTP_429_TOO_MANY_REQUESTS
        assert int(exc_info.value.headers["Retry-After"]) >= 1

    def test_user_id_preferred_over_ip(self):
        rate_limit.enforce_rate_limit(_request("1.1.1.1"), user_id="u1", limit_per_minute=1, scope="upload")

        # Same user from another address is still limited
        with pytest.raises(HTTPException):
            rate_limit.enforce_rate_limit(_request("2.2.2.2"), user_id="u1", limit_per_minute=1, scope="upload")

    def test_forwarded_for_header_is_used(self):
        rate_limit.enforce_rate_limit(
            _request("10.0.0.1", forwarded="203.0.113.5, 10.0.0.1"),
            user_id=None,
            limit_per_minute=1,
            scope="auth",
        )

        with pytest.raises(HTTPException):
            rate_limit.enforce_rate_limit(
                _request("10.0.0.2", forwarded="203.0.113.5"),
                user_id=None,
                limit_per_minute=1,
                scope="auth",
            )

    def test_scopes_do_not_share_buckets(self):
        request = _request()
        rate_limit.enforce_rate_limit(request, user_id=None, limit_per_minute=1, scope="auth")

        rate_limit.enforce_rate_limit(request, user_id=None, limit_per_minute=1, scope="upload")
