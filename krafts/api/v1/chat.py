"""Chat REST endpoints.

Writes that other members should see live are committed first and then
fanned out to the conversation room, same as the WebSocket gateway.
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Query, Response, status

from krafts.api.deps import CurrentProfile, DbSession
from krafts.core.pagination import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from krafts.realtime.connections import manager
from krafts.schemas.chat import (
    ConversationCreate,
    ConversationListItem,
    ConversationResponse,
    MarkReadRequest,
    MessageCreate,
    MessageResponse,
    ReadReceiptResponse,
    SendMessageResponse,
    TypingUpdate,
)
from krafts.schemas.common import CursorPage, SuccessResponse
from krafts.services.chat import (
    DEFAULT_MESSAGE_PAGE_SIZE,
    ChatService,
    message_event,
    receipt_event,
)

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/conversations", response_model=CursorPage[ConversationListItem])
async def list_conversations(
    db: DbSession,
    current_profile: CurrentProfile,
    cursor: str | None = Query(None),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
) -> CursorPage[ConversationListItem]:
    """The caller's conversations with last message and unread count."""
    items, next_cursor = await ChatService(db).list_conversations(current_profile.id, cursor, limit)
    return CursorPage(data=items, next_cursor=next_cursor)


@router.get("/conversations/{conversation_id}", response_model=ConversationResponse)
async def get_conversation(
    conversation_id: UUID,
    db: DbSession,
    current_profile: CurrentProfile,
) -> ConversationResponse:
    conversation = await ChatService(db).get_conversation(conversation_id, current_profile.id)
    return ConversationResponse.model_validate(conversation)


@router.post("/conversations", response_model=ConversationResponse)
async def create_conversation(
    body: ConversationCreate,
    response: Response,
    db: DbSession,
    current_profile: CurrentProfile,
) -> ConversationResponse:
    """Start a conversation; a direct chat with the same person is reused."""
    conversation, created = await ChatService(db).create_conversation(current_profile.id, body)
    response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
    return ConversationResponse.model_validate(conversation)


@router.get("/conversations/{conversation_id}/messages", response_model=CursorPage[MessageResponse])
async def list_messages(
    conversation_id: UUID,
    db: DbSession,
    current_profile: CurrentProfile,
    cursor: str | None = Query(None),
    limit: int = Query(DEFAULT_MESSAGE_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
) -> CursorPage[MessageResponse]:
    """Message history in ascending order; the cursor walks back in time."""
    messages, next_cursor = await ChatService(db).get_messages(
        conversation_id, current_profile.id, cursor, limit
    )
    return CursorPage(
        data=[MessageResponse.model_validate(m) for m in messages],
        next_cursor=next_cursor,
    )


@router.post("/conversations/{conversation_id}/messages", response_model=SendMessageResponse)
async def send_message(
    conversation_id: UUID,
    body: MessageCreate,
    response: Response,
    db: DbSession,
    current_profile: CurrentProfile,
) -> SendMessageResponse:
    """Send a message. Retries with the same client_msg_id are not re-broadcast."""
    message, duplicate = await ChatService(db).send_message(
        conversation_id,
        current_profile.id,
        body.content,
        client_msg_id=body.client_msg_id,
        metadata=body.metadata,
    )
    payload = MessageResponse.model_validate(message)
    event = message_event(message)
    await db.commit()

    if not duplicate:
        await manager.broadcast(conversation_id, "message", event)
    response.status_code = status.HTTP_200_OK if duplicate else status.HTTP_201_CREATED
    return SendMessageResponse(message=payload, duplicate=duplicate)


@router.post("/conversations/{conversation_id}/typing", response_model=SuccessResponse)
async def update_typing(
    conversation_id: UUID,
    body: TypingUpdate,
    db: DbSession,
    current_profile: CurrentProfile,
) -> SuccessResponse:
    await ChatService(db).update_typing(conversation_id, current_profile.id, body.is_typing)
    await db.commit()
    await manager.broadcast(
        conversation_id,
        "user_typing",
        {
            "conversationId": str(conversation_id),
            "userId": str(current_profile.id),
            "isTyping": body.is_typing,
        },
    )
    return SuccessResponse()


@router.post("/conversations/{conversation_id}/presence", response_model=SuccessResponse)
async def update_presence(
    conversation_id: UUID,
    db: DbSession,
    current_profile: CurrentProfile,
) -> SuccessResponse:
    """Refresh last-seen for the conversation."""
    await ChatService(db).update_presence(conversation_id, current_profile.id)
    return SuccessResponse()


@router.post("/conversations/{conversation_id}/read", response_model=ReadReceiptResponse)
async def mark_read(
    conversation_id: UUID,
    body: MarkReadRequest,
    db: DbSession,
    current_profile: CurrentProfile,
) -> ReadReceiptResponse:
    """Mark messages up to last_message_id as read and notify the room."""
    message_ids = await ChatService(db).mark_read_up_to(
        conversation_id, current_profile.id, body.last_message_id
    )
    await db.commit()
    for message_id in message_ids:
        await manager.broadcast(
            conversation_id,
            "receipt_update",
            receipt_event(message_id, conversation_id, current_profile.id),
        )
    return ReadReceiptResponse(message_ids=message_ids)
