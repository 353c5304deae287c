"""Basic in-memory rate limiting utilities.

Notes:
- This is per-process memory. In multi-instance deployments each process
  enforces its own window.
- Keys should be stable and privacy-safe (user id preferred; fallback to IP).
"""

from __future__ import annotations

import time
from dataclasses import dataclass

from fastapi import HTTPException, Request, status

from krafts.core.config import settings


@dataclass
class _Bucket:
    window_start: float
    count: int


# (key, window_seconds) -> bucket
_BUCKETS: dict[tuple[str, int], _Bucket] = {}


def _now() -> float:
    return time.time()


def _get_client_key(request: Request, user_id: str | None) -> str:
    if user_id:
        return f"user:{user_id}"
    # Best-effort IP extraction (works behind proxies if X-Forwarded-For is set)
    xff = request.headers.get("x-forwarded-for")
    if xff:
        ip = xff.split(",")[0].strip()
    else:
        ip = request.client.host if request.client else "unknown"
    return f"ip:{ip}"


def hit(key: str, *, limit: int, window_seconds: int) -> float | None:
    """Count one hit against a fixed window.

    Returns:
        None when the hit is allowed, otherwise seconds until the window resets.
    """
    bucket_key = (key, window_seconds)
    now = _now()
    bucket = _BUCKETS.get(bucket_key)
    if bucket is None or now - bucket.window_start >= window_seconds:
        _BUCKETS[bucket_key] = _Bucket(window_start=now, count=1)
        return None

    if bucket.count >= limit:
        return window_seconds - (now - bucket.window_start)

    bucket.count += 1
    return None


def allow(key: str, *, limit: int, window_seconds: int) -> bool:
    """Non-raising variant for the WebSocket gateway."""
    if not settings.rate_limit_enabled:
        return True
    return hit(key, limit=limit, window_seconds=window_seconds) is None


def enforce_rate_limit(
    request: Request,
    *,
    user_id: str | None,
    limit_per_minute: int | None = None,
    scope: str,
) -> None:
    """Enforce a fixed-window rate limit.

    Raises:
        HTTPException(429) when exceeded.
    """
    if not settings.rate_limit_enabled:
        return

    limit = limit_per_minute or settings.rate_limit_per_minute
    key = f"{scope}:{_get_client_key(request, user_id)}"
    retry_after = hit(key, limit=limit, window_seconds=60)
    if retry_after is not None:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Rate limit exceeded",
            headers={"Retry-After": str(max(1, int(retry_after)))},
        )


def reset() -> None:
    """Drop all buckets."""
    _BUCKETS.clear()
