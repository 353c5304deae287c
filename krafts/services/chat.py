"""Conversations, messages, presence and read receipts.

Shared by the REST router and the WebSocket gateway. Membership in
conversation_members is the only access rule: every read and write checks it.
"""

import logging
import uuid
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import and_, func, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from krafts.core.errors import ForbiddenError, NotFoundError
from krafts.core.pagination import decode_cursor, paginate
from krafts.models.chat import Conversation, ConversationMember, Message, Presence
from krafts.schemas.chat import ConversationCreate, ConversationListItem, MessageResponse

logger = logging.getLogger(__name__)

DEFAULT_MESSAGE_PAGE_SIZE = 40


class NotConversationMemberError(ForbiddenError):
    """Caller is not in conversation_members for the conversation."""

    def __init__(self, message: str = "User is not a member of this conversation"):
        super().__init__(message)


def message_event(message: Message) -> dict[str, Any]:
    """Payload of the realtime ``message`` event."""
    return {
        "messageId": message.id,
        "conversationId": str(message.conversation_id),
        "senderId": str(message.sender_id),
        "content": message.content,
        "metadata": message.meta,
        "createdAt": message.created_at.isoformat() if message.created_at else None,
    }


def receipt_event(message_id: int, conversation_id: uuid.UUID, reader_id: uuid.UUID) -> dict[str, Any]:
    return {
        "messageId": message_id,
        "conversationId": str(conversation_id),
        "readerId": str(reader_id),
        "status": "read",
    }


class ChatService:
    """Chat persistence operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # =========================================================================
    # Membership
    # =========================================================================

    async def is_member(self, conversation_id: uuid.UUID, profile_id: uuid.UUID) -> bool:
        result = await self.db.execute(
            select(ConversationMember.profile_id).where(
                ConversationMember.conversation_id == conversation_id,
                ConversationMember.profile_id == profile_id,
            )
        )
        return result.scalar_one_or_none() is not None

    async def ensure_member(self, conversation_id: uuid.UUID, profile_id: uuid.UUID) -> None:
        if not await self.is_member(conversation_id, profile_id):
            raise NotConversationMemberError()

    # =========================================================================
    # Conversations
    # =========================================================================

    async def list_conversations(
        self,
        profile_id: uuid.UUID,
        cursor: str | None,
        limit: int,
    ) -> tuple[list[ConversationListItem], str | None]:
        """The caller's inbox, most recently joined first.

        Each item carries the newest message and the number of messages from
        other members the caller has not read.
        """
        query = (
            select(ConversationMember, Conversation)
            .join(Conversation, Conversation.id == ConversationMember.conversation_id)
            .where(ConversationMember.profile_id == profile_id)
            .order_by(ConversationMember.joined_at.desc(), Conversation.id.desc())
        )
        decoded = decode_cursor(cursor)
        if decoded:
            query = query.where(ConversationMember.joined_at < decoded.timestamp)

        result = await self.db.execute(query.limit(limit + 1))
        rows = list(result.all())
        page, next_cursor = paginate(rows, limit, key=lambda r: (r[0].joined_at, r[1].id))
        if not page:
            return [], None

        conversation_ids = [conversation.id for _, conversation in page]

        last_result = await self.db.execute(
            select(Message)
            .where(Message.conversation_id.in_(conversation_ids))
            .distinct(Message.conversation_id)
            .order_by(Message.conversation_id, Message.created_at.desc(), Message.id.desc())
        )
        last_messages = {m.conversation_id: m for m in last_result.scalars().all()}

        unread_result = await self.db.execute(
            select(Message.conversation_id, func.count(Message.id))
            .where(
                Message.conversation_id.in_(conversation_ids),
                Message.sender_id != profile_id,
                ~Message.read_by.any(profile_id),
            )
            .group_by(Message.conversation_id)
        )
        unread_counts = {row[0]: row[1] for row in unread_result.all()}

        items = []
        for member, conversation in page:
            last_message = last_messages.get(conversation.id)
            items.append(
                ConversationListItem(
                    id=conversation.id,
                    is_group=conversation.is_group,
                    name=conversation.name,
                    created_by=conversation.created_by,
                    created_at=conversation.created_at,
                    joined_at=member.joined_at,
                    last_message=MessageResponse.model_validate(last_message) if last_message else None,
                    unread_count=unread_counts.get(conversation.id, 0),
                )
            )
        return items, next_cursor

    async def _load_conversation(self, conversation_id: uuid.UUID) -> Conversation | None:
        result = await self.db.execute(
            select(Conversation)
            .options(selectinload(Conversation.members).selectinload(ConversationMember.profile))
            .where(Conversation.id == conversation_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_conversation(
        self,
        conversation_id: uuid.UUID,
        profile_id: uuid.UUID,
    ) -> Conversation:
        conversation = await self._load_conversation(conversation_id)
        if conversation is None:
            raise NotFoundError("Conversation not found")
        if not any(m.profile_id == profile_id for m in conversation.members):
            raise NotConversationMemberError()
        return conversation

    async def _find_direct_conversation(
        self,
        profile_id: uuid.UUID,
        other_id: uuid.UUID,
    ) -> uuid.UUID | None:
        """Existing two-person conversation between the profiles, if any."""
        mine = ConversationMember.__table__.alias("mine")
        theirs = ConversationMember.__table__.alias("theirs")
        member_count = (
            select(func.count())
            .select_from(ConversationMember)
            .where(ConversationMember.conversation_id == Conversation.id)
            .scalar_subquery()
        )
        result = await self.db.execute(
            select(Conversation.id)
            .join(mine, and_(mine.c.conversation_id == Conversation.id, mine.c.profile_id == profile_id))
            .join(theirs, and_(theirs.c.conversation_id == Conversation.id, theirs.c.profile_id == other_id))
            .where(Conversation.is_group.is_(False), member_count == 2)
            .order_by(Conversation.created_at)
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def create_conversation(
        self,
        creator_id: uuid.UUID,
        data: ConversationCreate,
    ) -> tuple[Conversation, bool]:
        """Create a conversation, or reuse the direct one between two profiles.

        Returns:
            (conversation, created)
        """
        member_ids = list(dict.fromkeys([creator_id, *data.member_ids]))

        if not data.is_group and len(member_ids) == 2:
            existing_id = await self._find_direct_conversation(creator_id, member_ids[1])
            if existing_id is not None:
                conversation = await self._load_conversation(existing_id)
                if conversation is not None:
                    return conversation, False

        conversation = Conversation(
            id=uuid.uuid4(),
            is_group=data.is_group,
            name=data.name,
            created_by=creator_id,
        )
        conversation.members = [
            ConversationMember(profile_id=member_id, is_admin=member_id == creator_id)
            for member_id in member_ids
        ]
        self.db.add(conversation)
        await self.db.flush()
        logger.info(f"Profile {creator_id} created conversation {conversation.id} ({len(member_ids)} members)")

        loaded = await self._load_conversation(conversation.id)
        return loaded or conversation, True

    # =========================================================================
    # Messages
    # =========================================================================

    async def get_messages(
        self,
        conversation_id: uuid.UUID,
        profile_id: uuid.UUID,
        cursor: str | None,
        limit: int = DEFAULT_MESSAGE_PAGE_SIZE,
    ) -> tuple[list[Message], str | None]:
        """One page of history, oldest first, walking backwards by cursor."""
        await self.ensure_member(conversation_id, profile_id)

        query = (
            select(Message)
            .where(Message.conversation_id == conversation_id)
            .order_by(Message.created_at.desc(), Message.id.desc())
        )
        decoded = decode_cursor(cursor)
        if decoded:
            query = query.where(Message.created_at < decoded.timestamp)

        result = await self.db.execute(query.limit(limit + 1))
        rows = list(result.scalars().all())
        page, next_cursor = paginate(rows, limit, key=lambda m: (m.created_at, m.id))
        page.reverse()
        return page, next_cursor

    async def _find_by_client_msg_id(
        self,
        conversation_id: uuid.UUID,
        sender_id: uuid.UUID,
        client_msg_id: str,
    ) -> Message | None:
        result = await self.db.execute(
            select(Message).where(
                Message.conversation_id == conversation_id,
                Message.sender_id == sender_id,
                Message.client_msg_id == client_msg_id,
            )
        )
        return result.scalar_one_or_none()

    async def send_message(
        self,
        conversation_id: uuid.UUID,
        sender_id: uuid.UUID,
        content: str,
        client_msg_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> tuple[Message, bool]:
        """Persist a message exactly once per client_msg_id.

        Returns:
            (message, duplicate) - duplicate is True when a message with the
            same client_msg_id from this sender already existed.
        """
        await self.ensure_member(conversation_id, sender_id)

        if client_msg_id:
            existing = await self._find_by_client_msg_id(conversation_id, sender_id, client_msg_id)
            if existing is not None:
                return existing, True

        message = Message(
            conversation_id=conversation_id,
            sender_id=sender_id,
            content=content,
            meta=metadata,
            client_msg_id=client_msg_id,
            delivered=True,
        )
        try:
            async with self.db.begin_nested():
                self.db.add(message)
                await self.db.flush()
        except IntegrityError:
            # Concurrent retry won the insert
            if not client_msg_id:
                raise
            existing = await self._find_by_client_msg_id(conversation_id, sender_id, client_msg_id)
            if existing is None:
                raise
            return existing, True

        await self.db.refresh(message)
        return message, False

    # =========================================================================
    # Presence
    # =========================================================================

    async def _upsert_presence(
        self,
        conversation_id: uuid.UUID,
        profile_id: uuid.UUID,
        is_typing: bool,
    ) -> None:
        now = datetime.now(UTC)
        stmt = insert(Presence).values(
            conversation_id=conversation_id,
            profile_id=profile_id,
            is_typing=is_typing,
            last_seen_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[Presence.conversation_id, Presence.profile_id],
            set_={"is_typing": is_typing, "last_seen_at": now},
        )
        await self.db.execute(stmt)

    async def update_typing(
        self,
        conversation_id: uuid.UUID,
        profile_id: uuid.UUID,
        is_typing: bool,
    ) -> None:
        await self.ensure_member(conversation_id, profile_id)
        await self._upsert_presence(conversation_id, profile_id, is_typing)

    async def update_presence(self, conversation_id: uuid.UUID, profile_id: uuid.UUID) -> None:
        await self.ensure_member(conversation_id, profile_id)
        await self._upsert_presence(conversation_id, profile_id, False)

    async def clear_presence(self, conversation_ids: list[uuid.UUID], profile_id: uuid.UUID) -> None:
        """Stop typing and refresh last-seen in every given conversation."""
        for conversation_id in conversation_ids:
            await self._upsert_presence(conversation_id, profile_id, False)

    # =========================================================================
    # Read receipts
    # =========================================================================

    async def mark_read_up_to(
        self,
        conversation_id: uuid.UUID,
        profile_id: uuid.UUID,
        last_message_id: int,
    ) -> list[int]:
        """Mark every message with id <= last_message_id as read by the profile.

        Uses the mark_messages_read_up_to database function and falls back to
        row-by-row updates when it is unavailable.

        Returns:
            Ids of messages that were not yet read by the profile.
        """
        await self.ensure_member(conversation_id, profile_id)

        try:
            async with self.db.begin_nested():
                result = await self.db.execute(
                    select(
                        func.mark_messages_read_up_to(conversation_id, profile_id, last_message_id)
                    )
                )
                return [row[0] for row in result.all()]
        except DBAPIError as e:
            logger.warning(f"mark_messages_read_up_to failed, updating rows directly: {e}")

        return await self._mark_read_rows(conversation_id, profile_id, last_message_id)

    async def _mark_read_rows(
        self,
        conversation_id: uuid.UUID,
        profile_id: uuid.UUID,
        last_message_id: int,
    ) -> list[int]:
        result = await self.db.execute(
            select(Message)
            .where(
                Message.conversation_id == conversation_id,
                Message.id <= last_message_id,
            )
            .order_by(Message.id)
        )
        updated: list[int] = []
        for message in result.scalars().all():
            read_by = list(message.read_by or [])
            if profile_id in read_by:
                continue
            message.read_by = [*read_by, profile_id]
            updated.append(message.id)
        if updated:
            await self.db.flush()
        return updated
