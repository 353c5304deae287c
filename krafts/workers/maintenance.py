"""Periodic database housekeeping.

Both tasks run from Celery Beat on the maintenance queue and use the sync
session.
"""

import logging
from datetime import UTC, datetime, timedelta

from sqlalchemy import delete, update
from sqlalchemy.orm import Session

from krafts.core.celery import celery_app
from krafts.core.database import get_sync_session
from krafts.models.chat import Presence
from krafts.models.user import OtpVerification

logger = logging.getLogger(__name__)


# =============================================================================
# Configuration
# =============================================================================

# Typing flags older than this are treated as left over from dead sockets
STALE_TYPING_THRESHOLD = timedelta(minutes=2)


# =============================================================================
# Cleanup Functions
# =============================================================================


def delete_expired_otps(db: Session, now: datetime | None = None) -> int:
    """Delete OTP rows past their expiry.

    Returns:
        Number of rows deleted
    """
    now = now or datetime.now(UTC)
    result = db.execute(delete(OtpVerification).where(OtpVerification.expires_at < now))
    return result.rowcount or 0


def clear_stale_typing(db: Session, now: datetime | None = None) -> int:
    """Reset is_typing on presence rows not refreshed within the threshold.

    Returns:
        Number of rows updated
    """
    cutoff = (now or datetime.now(UTC)) - STALE_TYPING_THRESHOLD
    result = db.execute(
        update(Presence)
        .where(Presence.is_typing.is_(True), Presence.last_seen_at < cutoff)
        .values(is_typing=False)
    )
    return result.rowcount or 0


# =============================================================================
# Celery Tasks
# =============================================================================


@celery_app.task(name="krafts.workers.maintenance.cleanup_expired_otps")
def cleanup_expired_otps() -> dict:
    """Hourly purge of expired OTP verifications."""
    with get_sync_session() as db:
        deleted = delete_expired_otps(db)
    logger.info(f"Deleted {deleted} expired OTP rows")
    return {"deleted": deleted}


@celery_app.task(name="krafts.workers.maintenance.cleanup_stale_presence")
def cleanup_stale_presence() -> dict:
    """Clear typing indicators left behind by sockets that never disconnected cleanly."""
    with get_sync_session() as db:
        cleared = clear_stale_typing(db)
    if cleared:
        logger.info(f"Cleared {cleared} stale typing indicators")
    return {"cleared": cleared}
