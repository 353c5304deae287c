"""Health check endpoints."""

import logging
from datetime import UTC, datetime

from fastapi import APIRouter, HTTPException, status
from sqlalchemy import text

from krafts.api.deps import DbSession
from krafts.core.config import settings

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("")
async def health_check() -> dict[str, str]:
    """Basic health check endpoint."""
    return {
        "status": "ok",
        "timestamp": datetime.now(UTC).isoformat(),
        "service": settings.service_name,
    }


@router.get("/ready")
async def readiness_check(db: DbSession) -> dict[str, str]:
    """Readiness check - verifies the database is reachable."""
    try:
        await db.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Readiness check failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database unavailable",
        ) from e
    return {"status": "ready"}
