"""Process-local chat rooms with Redis fan-out between processes.

Room events are published to Redis; the listener task delivers every event
it receives, including this process's own, to the local sockets in the room.
When publishing fails the event is delivered to local sockets directly.
"""

import asyncio
import logging
import uuid
from collections import defaultdict
from typing import Any

from fastapi import WebSocket, WebSocketDisconnect
from redis.exceptions import RedisError

from krafts.core.redis import publish_room_event, subscribe_room_events

logger = logging.getLogger(__name__)

LISTENER_RETRY_SECONDS = 2.0


def room_name(conversation_id: uuid.UUID | str) -> str:
    return f"room:{conversation_id}"


class ConnectionManager:
    """Tracks which sockets joined which conversation rooms."""

    def __init__(self) -> None:
        self._rooms: dict[str, set[WebSocket]] = defaultdict(set)
        self._memberships: dict[WebSocket, set[str]] = defaultdict(set)

    def join(self, websocket: WebSocket, conversation_id: uuid.UUID | str) -> None:
        key = str(conversation_id)
        self._rooms[key].add(websocket)
        self._memberships[websocket].add(key)

    def leave(self, websocket: WebSocket, conversation_id: uuid.UUID | str) -> None:
        key = str(conversation_id)
        sockets = self._rooms.get(key)
        if sockets is not None:
            sockets.discard(websocket)
            if not sockets:
                del self._rooms[key]
        joined = self._memberships.get(websocket)
        if joined is not None:
            joined.discard(key)

    def disconnect(self, websocket: WebSocket) -> list[str]:
        """Remove the socket from every room.

        Returns:
            Conversation ids the socket had joined
        """
        joined = list(self._memberships.pop(websocket, set()))
        for key in joined:
            sockets = self._rooms.get(key)
            if sockets is not None:
                sockets.discard(websocket)
                if not sockets:
                    del self._rooms[key]
        return joined

    def room_members(self, conversation_id: uuid.UUID | str) -> set[WebSocket]:
        return set(self._rooms.get(str(conversation_id), set()))

    @staticmethod
    async def send(websocket: WebSocket, event: str, data: dict[str, Any]) -> None:
        await websocket.send_json({"event": event, "data": data})

    async def deliver_local(self, conversation_id: str, event: str, data: dict[str, Any]) -> int:
        """Send an event to this process's sockets in the room.

        Sockets that fail to receive are dropped from all rooms.

        Returns:
            Number of sockets the event was delivered to
        """
        delivered = 0
        for websocket in self.room_members(conversation_id):
            try:
                await self.send(websocket, event, data)
                delivered += 1
            except (RuntimeError, OSError, WebSocketDisconnect) as e:
                logger.warning(f"Dropping socket from {room_name(conversation_id)}: {e}")
                self.disconnect(websocket)
        return delivered

    async def broadcast(self, conversation_id: uuid.UUID | str, event: str, data: dict[str, Any]) -> None:
        """Emit an event to everyone in the room across all API processes."""
        key = str(conversation_id)
        published = await publish_room_event(key, event, data)
        if not published:
            await self.deliver_local(key, event, data)

    async def listen(self) -> None:
        """Forward Redis room events to local sockets until cancelled."""
        while True:
            try:
                async for conversation_id, envelope in subscribe_room_events():
                    event = envelope.get("event")
                    data = envelope.get("data")
                    if not event or not isinstance(data, dict):
                        continue
                    await self.deliver_local(conversation_id, event, data)
            except (RedisError, OSError) as e:
                logger.warning(f"Chat room listener lost Redis, retrying: {e}")
            await asyncio.sleep(LISTENER_RETRY_SECONDS)


manager = ConnectionManager()
