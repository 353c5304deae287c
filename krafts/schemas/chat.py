"""Chat schemas."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from krafts.schemas.common import BaseSchema
from krafts.schemas.profile import ProfileSummary

# messages.id is a Postgres bigint
MAX_MESSAGE_ID = 2**63 - 1


class ConversationCreate(BaseModel):
    """Create a direct or group conversation."""

    is_group: bool = False
    name: str | None = Field(default=None, max_length=255)
    member_ids: list[UUID] = Field(default_factory=list)


class MessageCreate(BaseModel):
    """Send a message over REST."""

    content: str = Field(min_length=1, max_length=10_000)
    client_msg_id: str | None = Field(default=None, max_length=128)
    metadata: dict[str, Any] | None = None


class TypingUpdate(BaseModel):
    """Typing indicator."""

    is_typing: bool


class MarkReadRequest(BaseModel):
    """Read receipt up to and including a message id."""

    last_message_id: int = Field(ge=1, le=MAX_MESSAGE_ID)


class MessageResponse(BaseSchema):
    """Stored chat message."""

    id: int
    conversation_id: UUID
    sender_id: UUID
    content: str
    metadata: dict[str, Any] | None = Field(default=None, validation_alias="meta")
    client_msg_id: str | None = None
    delivered: bool = True
    read_by: list[UUID] = []
    created_at: datetime


class MemberResponse(BaseSchema):
    """Conversation member."""

    profile_id: UUID
    is_admin: bool
    joined_at: datetime
    profile: ProfileSummary | None = None


class ConversationResponse(BaseSchema):
    """Conversation with members."""

    id: UUID
    is_group: bool
    name: str | None = None
    created_by: UUID
    created_at: datetime
    members: list[MemberResponse] = []


class ConversationListItem(BaseSchema):
    """Conversation in the inbox list."""

    id: UUID
    is_group: bool
    name: str | None = None
    created_by: UUID
    created_at: datetime
    joined_at: datetime
    last_message: MessageResponse | None = None
    unread_count: int = 0


class SendMessageResponse(BaseModel):
    """Result of a send; duplicate is true for an idempotent retry."""

    message: MessageResponse
    duplicate: bool = False


class ReadReceiptResponse(BaseModel):
    """Messages newly marked as read."""

    message_ids: list[int] = Field(serialization_alias="messageIds")


# =============================================================================
# Realtime gateway payloads
# =============================================================================


class SocketPayload(BaseModel):
    """Client event payloads use camelCase keys."""

    model_config = ConfigDict(populate_by_name=True)

    conversation_id: UUID = Field(alias="conversationId")


class JoinPayload(SocketPayload):
    pass


class LeavePayload(SocketPayload):
    pass


class SendMessagePayload(SocketPayload):
    client_msg_id: str = Field(alias="clientMsgId", min_length=1, max_length=128)
    content: str = Field(min_length=1, max_length=10_000)
    metadata: dict[str, Any] | None = None


class MarkReadPayload(SocketPayload):
    last_message_id: int = Field(alias="lastMessageId", ge=1, le=MAX_MESSAGE_ID)


class TypingPayload(SocketPayload):
    is_typing: bool = Field(alias="isTyping")
