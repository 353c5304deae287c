"""Chat WebSocket endpoint.

Frames in both directions are JSON ``{"event": str, "data": {...}}``.
Failures are reported to the client as ``error {code, message}`` events and
never close the socket, except for authentication on connect.
"""

import json
import logging
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from fastapi import APIRouter, HTTPException, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from krafts.api.deps import load_user, user_id_from_token
from krafts.core.config import settings
from krafts.core.database import session_scope
from krafts.core.errors import RateLimitedError, ServiceError
from krafts.core.rate_limit import allow
from krafts.realtime.connections import ConnectionManager, manager
from krafts.schemas.chat import (
    JoinPayload,
    LeavePayload,
    MarkReadPayload,
    SendMessagePayload,
    TypingPayload,
)
from krafts.services.chat import ChatService, message_event, receipt_event

logger = logging.getLogger(__name__)
router = APIRouter()

WS_CLOSE_UNAUTHORIZED = 4401


@dataclass(frozen=True)
class SocketIdentity:
    user_id: uuid.UUID
    profile_id: uuid.UUID


def extract_token(websocket: WebSocket) -> str | None:
    """Token from the ``token`` query parameter or a Bearer Authorization header."""
    token = websocket.query_params.get("token")
    if token:
        return token
    authorization = websocket.headers.get("authorization", "")
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials:
        return credentials.strip()
    return None


async def authenticate(websocket: WebSocket) -> SocketIdentity | None:
    token = extract_token(websocket)
    if not token:
        return None
    try:
        user_id = user_id_from_token(token)
        async with session_scope() as db:
            user = await load_user(db, user_id)
            if not user.profiles:
                return None
            return SocketIdentity(user_id=user.id, profile_id=user.profiles[0].id)
    except HTTPException:
        return None


class ChatEventHandler:
    """Dispatches client events for one authenticated socket."""

    def __init__(
        self,
        websocket: WebSocket,
        identity: SocketIdentity,
        connections: ConnectionManager = manager,
    ):
        self.websocket = websocket
        self.identity = identity
        self.connections = connections
        self._handlers: dict[str, Callable[[dict[str, Any]], Awaitable[None]]] = {
            "join_conversation": self.on_join,
            "leave_conversation": self.on_leave,
            "send_message": self.on_send_message,
            "mark_read": self.on_mark_read,
            "typing": self.on_typing,
        }

    async def emit(self, event: str, data: dict[str, Any]) -> None:
        await self.connections.send(self.websocket, event, data)

    async def emit_error(self, code: str, message: str) -> None:
        await self.emit("error", {"code": code, "message": message})

    async def handle_frame(self, raw: str) -> None:
        try:
            frame = json.loads(raw)
        except ValueError:
            await self.emit_error("bad_request", "Invalid payload")
            return
        data = (frame.get("data") or {}) if isinstance(frame, dict) else None
        if not isinstance(data, dict):
            await self.emit_error("bad_request", "Invalid payload")
            return

        event = frame.get("event")
        handler = self._handlers.get(event) if isinstance(event, str) else None
        if handler is None:
            await self.emit_error("bad_request", "Unknown event")
            return

        try:
            await handler(data)
        except ValidationError:
            await self.emit_error("bad_request", "Missing fields")
        except ServiceError as e:
            await self.emit_error(e.code, e.message)
        except WebSocketDisconnect:
            raise
        except Exception:
            logger.exception(f"Chat event {event} failed for {self.identity.profile_id}")
            await self.emit_error("internal_error", "Internal server error")

    async def on_join(self, data: dict[str, Any]) -> None:
        payload = JoinPayload.model_validate(data)
        async with session_scope() as db:
            is_member = await ChatService(db).is_member(payload.conversation_id, self.identity.profile_id)
        if not is_member:
            await self.emit_error("forbidden", "Not a member of this conversation")
            return
        self.connections.join(self.websocket, payload.conversation_id)
        await self.emit("joined", {"conversationId": str(payload.conversation_id)})

    async def on_leave(self, data: dict[str, Any]) -> None:
        payload = LeavePayload.model_validate(data)
        self.connections.leave(self.websocket, payload.conversation_id)
        await self.emit("left", {"conversationId": str(payload.conversation_id)})

    async def on_send_message(self, data: dict[str, Any]) -> None:
        if not allow(
            f"chat:{self.identity.profile_id}",
            limit=settings.rate_limit_chat_per_second,
            window_seconds=1,
        ):
            raise RateLimitedError("Too many messages")

        payload = SendMessagePayload.model_validate(data)
        async with session_scope() as db:
            message, duplicate = await ChatService(db).send_message(
                payload.conversation_id,
                self.identity.profile_id,
                payload.content,
                client_msg_id=payload.client_msg_id,
                metadata=payload.metadata,
            )
            event = message_event(message)

        if not duplicate:
            await self.connections.broadcast(payload.conversation_id, "message", event)
        await self.emit(
            "message_ack",
            {
                "clientMsgId": payload.client_msg_id,
                "messageId": message.id,
                "createdAt": event["createdAt"],
                "duplicate": duplicate,
            },
        )

    async def on_mark_read(self, data: dict[str, Any]) -> None:
        payload = MarkReadPayload.model_validate(data)
        async with session_scope() as db:
            message_ids = await ChatService(db).mark_read_up_to(
                payload.conversation_id,
                self.identity.profile_id,
                payload.last_message_id,
            )
        for message_id in message_ids:
            await self.connections.broadcast(
                payload.conversation_id,
                "receipt_update",
                receipt_event(message_id, payload.conversation_id, self.identity.profile_id),
            )

    async def on_typing(self, data: dict[str, Any]) -> None:
        payload = TypingPayload.model_validate(data)
        async with session_scope() as db:
            await ChatService(db).update_typing(
                payload.conversation_id,
                self.identity.profile_id,
                payload.is_typing,
            )
        await self.connections.broadcast(
            payload.conversation_id,
            "user_typing",
            {
                "conversationId": str(payload.conversation_id),
                "userId": str(self.identity.profile_id),
                "isTyping": payload.is_typing,
            },
        )

    async def on_disconnect(self) -> None:
        """Leave all rooms and stop typing in them."""
        joined = self.connections.disconnect(self.websocket)
        if not joined:
            return
        try:
            async with session_scope() as db:
                await ChatService(db).clear_presence(
                    [uuid.UUID(c) for c in joined],
                    self.identity.profile_id,
                )
        except Exception as e:
            logger.warning(f"Failed to clear presence for {self.identity.profile_id}: {e}")


@router.websocket("/ws/chat")
async def chat_socket(websocket: WebSocket) -> None:
    """Authenticated chat connection."""
    await websocket.accept()
    identity = await authenticate(websocket)
    if identity is None:
        await manager.send(
            websocket,
            "error",
            {"code": "unauthorized", "message": "Invalid or expired token"},
        )
        await websocket.close(code=WS_CLOSE_UNAUTHORIZED)
        return

    handler = ChatEventHandler(websocket, identity)
    logger.info(f"Chat socket connected for profile {identity.profile_id}")
    try:
        while True:
            raw = await websocket.receive_text()
            await handler.handle_frame(raw)
    except WebSocketDisconnect:
        logger.info(f"Chat socket disconnected for profile {identity.profile_id}")
    finally:
        await handler.on_disconnect()

