"""Redis client for chat fan-out between API processes."""

import json
import logging
from collections.abc import AsyncGenerator
from typing import Any

import redis.asyncio as aioredis

from krafts.core.config import settings

logger = logging.getLogger(__name__)

# Async Redis pool shared by the API process
async_redis_pool = aioredis.ConnectionPool.from_url(
    str(settings.redis_url),
    decode_responses=True,
)


async def close_redis_pool() -> None:
    """Close Redis connection pool on shutdown."""
    await async_redis_pool.aclose()


# =============================================================================
# Chat room fan-out
# =============================================================================

CHAT_ROOM_CHANNEL_PREFIX = "chat:room:"


def get_room_channel(conversation_id: str) -> str:
    """Get Redis channel name for a conversation room."""
    return f"{CHAT_ROOM_CHANNEL_PREFIX}{conversation_id}"


def conversation_id_from_channel(channel: str) -> str | None:
    """Inverse of get_room_channel; None for foreign channels."""
    if not channel.startswith(CHAT_ROOM_CHANNEL_PREFIX):
        return None
    return channel[len(CHAT_ROOM_CHANNEL_PREFIX):] or None


async def publish_room_event(
    conversation_id: str,
    event: str,
    data: dict[str, Any],
) -> bool:
    """
    Publish a chat event to every API process subscribed to the room.

    This is non-blocking - failures are logged but don't raise exceptions,
    so the caller can fall back to local delivery.

    Args:
        conversation_id: Conversation whose room receives the event
        event: Event name (message, receipt_update, user_typing, ...)
        data: Event payload (must be JSON serializable)

    Returns:
        True if event was published successfully, False otherwise.
    """
    try:
        payload = json.dumps(
            {"event": event, "data": data},
            default=str,
        )
        client = aioredis.Redis(connection_pool=async_redis_pool)
        try:
            await client.publish(get_room_channel(conversation_id), payload)
        finally:
            await client.aclose()
        return True
    except Exception as e:
        logger.warning(f"Failed to publish chat event {event} to room {conversation_id}: {e}")
        return False


async def subscribe_room_events() -> AsyncGenerator[tuple[str, dict[str, Any]], None]:
    """
    Pattern-subscribe to all chat rooms.

    Yields:
        (conversation_id, envelope) tuples where envelope is the decoded
        {"event", "data"} message
    """
    client = aioredis.Redis(connection_pool=async_redis_pool)
    pubsub = client.pubsub()
    pattern = f"{CHAT_ROOM_CHANNEL_PREFIX}*"

    try:
        await pubsub.psubscribe(pattern)
        logger.info(f"Subscribed to chat rooms: {pattern}")

        async for message in pubsub.listen():
            if message["type"] != "pmessage":
                continue
            conversation_id = conversation_id_from_channel(message["channel"])
            if conversation_id is None:
                continue
            try:
                envelope = json.loads(message["data"])
            except (TypeError, ValueError):
                logger.warning(f"Dropping malformed chat event on {message['channel']}")
                continue
            yield conversation_id, envelope
    finally:
        await pubsub.punsubscribe(pattern)
        await pubsub.aclose()
        await client.aclose()
