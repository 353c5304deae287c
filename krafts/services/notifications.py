"""Expo push tokens and push delivery."""

import logging
import uuid
from datetime import UTC, datetime
from typing import Any

import httpx
from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from krafts.core.config import settings
from krafts.core.errors import NotFoundError
from krafts.models.notification import ExpoPushToken
from krafts.schemas.notification import SaveTokenRequest, SendNotificationRequest

logger = logging.getLogger(__name__)

INVALID_TOKEN_MARKERS = (
    "DeviceNotRegistered",
    "MessageRateExceeded",
    "InvalidCredentials",
    "NotRegistered",
    "invalid token",
)


def is_invalid_token_error(error: str | None) -> bool:
    """True when an Expo ticket error means the token should not be used again."""
    if not error:
        return False
    return any(marker in error for marker in INVALID_TOKEN_MARKERS)


def build_messages(
    tokens: list[str],
    title: str,
    body: str,
    data: dict[str, Any] | None = None,
) -> list[dict[str, Any]]:
    return [
        {"to": token, "title": title, "body": body, "data": data or {}, "sound": "default"}
        for token in tokens
    ]


def chunked(items: list[Any], size: int) -> list[list[Any]]:
    return [items[i : i + size] for i in range(0, len(items), size)]


class NotificationService:
    """Device registry and Expo push sender."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def save_token(self, user_id: uuid.UUID, data: SaveTokenRequest) -> ExpoPushToken:
        """Register a device token, reviving it if it was revoked."""
        now = datetime.now(UTC)
        values = {
            "platform": data.platform,
            "device_name": data.device_name,
            "app_version": data.app_version,
            "os_version": data.os_version,
            "timezone": data.timezone,
            "revoked": False,
            "last_seen_at": now,
            "updated_at": now,
        }
        stmt = (
            insert(ExpoPushToken)
            .values(id=uuid.uuid4(), user_id=user_id, token=data.token, **values)
            .on_conflict_do_update(
                constraint="uq_expo_push_tokens_user_token",
                set_=values,
            )
            .returning(ExpoPushToken.id)
        )
        result = await self.db.execute(stmt)
        token_id = result.scalar_one()
        logger.info(f"Saved push token for user {user_id} on {data.platform}")

        result = await self.db.execute(
            select(ExpoPushToken)
            .where(ExpoPushToken.id == token_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()

    async def revoke_token(self, user_id: uuid.UUID, token: str) -> None:
        result = await self.db.execute(
            update(ExpoPushToken)
            .where(ExpoPushToken.user_id == user_id, ExpoPushToken.token == token)
            .values(revoked=True)
            .returning(ExpoPushToken.id)
        )
        if result.scalar_one_or_none() is None:
            raise NotFoundError("Token not found")
        logger.info(f"Revoked push token for user {user_id}")

    async def list_devices(self, user_id: uuid.UUID) -> list[ExpoPushToken]:
        result = await self.db.execute(
            select(ExpoPushToken)
            .where(ExpoPushToken.user_id == user_id, ExpoPushToken.revoked.is_(False))
            .order_by(ExpoPushToken.last_seen_at.desc())
        )
        return list(result.scalars().all())

    async def _target_tokens(self, request: SendNotificationRequest) -> list[str]:
        if request.tokens:
            return list(dict.fromkeys(request.tokens))
        query = select(ExpoPushToken.token).where(ExpoPushToken.revoked.is_(False))
        if request.user_ids:
            query = query.where(ExpoPushToken.user_id.in_(request.user_ids))
        result = await self.db.execute(query)
        return list(dict.fromkeys(result.scalars().all()))

    async def _revoke_tokens(self, tokens: list[str]) -> int:
        if not tokens:
            return 0
        result = await self.db.execute(
            update(ExpoPushToken)
            .where(ExpoPushToken.token.in_(tokens))
            .values(revoked=True)
            .returning(ExpoPushToken.id)
        )
        return len(result.scalars().all())

    async def send(self, request: SendNotificationRequest) -> dict[str, int]:
        """Push to the targeted devices in batches.

        A failing batch is logged and counted as failed; the remaining
        batches are still sent.

        Returns:
            Counts of sent, failed and revoked tokens.
        """
        tokens = await self._target_tokens(request)
        messages = build_messages(tokens, request.title, request.body, request.data)
        sent = failed = 0
        invalid: list[str] = []

        async with httpx.AsyncClient(timeout=settings.expo_push_timeout_seconds) as client:
            for batch in chunked(messages, settings.expo_batch_size):
                try:
                    response = await client.post(
                        settings.expo_push_url,
                        json=batch,
                        headers={"Accept": "application/json"},
                    )
                    response.raise_for_status()
                    tickets = response.json().get("data") or []
                except (httpx.HTTPError, ValueError) as e:
                    logger.error(f"Expo push batch of {len(batch)} failed: {e}")
                    failed += len(batch)
                    continue

                for message, ticket in zip(batch, tickets, strict=False):
                    if ticket.get("status") == "ok":
                        sent += 1
                        continue
                    failed += 1
                    error = (ticket.get("details") or {}).get("error") or ticket.get("message")
                    if is_invalid_token_error(error):
                        logger.warning(f"Revoking invalid push token ({error})")
                        invalid.append(message["to"])
                # Tickets missing from a short response count as failures
                failed += max(0, len(batch) - len(tickets))

        revoked = await self._revoke_tokens(invalid)
        logger.info(f"Push sent={sent} failed={failed} revoked={revoked}")
        return {"sent": sent, "failed": failed, "revoked": revoked}
