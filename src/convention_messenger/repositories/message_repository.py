"""
Message repository: read-side aggregates (last message, unread counts) plus the
minimal `post()` write that keeps `Conversation.updated_at` in step.
"""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID
import logging

from sqlalchemy import DateTime, select, func, and_, literal
from sqlalchemy.orm import aliased
from sqlalchemy.ext.asyncio import AsyncSession

from convention_messenger.exceptions.mapper import db_error_handler
from convention_messenger.models import Conversation, ConversationParticipant, Message
from convention_messenger.utils.timestamps import EPOCH, utcnow
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LastMessageRow:
    id: UUID
    conversation_id: UUID
    content: str
    created_at: datetime
    author_id: UUID


class MessageRepository(BaseRepository[Message]):

    def __init__(self, db: AsyncSession):
        super().__init__(Message, db)

    async def post(self, participant: ConversationParticipant, content: str, created_at: datetime | None = None) -> Message:
        """
        Store a message written by `participant` and bump the conversation's activity time.
        """
        created_at = created_at or utcnow()
        message = await self.create(
            conversation_id=participant.conversation_id,
            participant_id=participant.id,
            content=content,
            created_at=created_at,
        )
        conversation = await self.db.get(Conversation, participant.conversation_id)
        if conversation is not None:
            conversation.updated_at = created_at
            async with db_error_handler("Conversation"):
                await self.db.flush()
        return message

    async def last_messages(self, conversation_ids: list[UUID]) -> dict[UUID, LastMessageRow]:
        """
        Latest non-deleted message of each conversation (ties broken by id), keyed by
        conversation id. Conversations without messages are absent.
        """
        if not conversation_ids:
            return {}

        ranked = (
            select(
                Message.id,
                Message.conversation_id,
                Message.content,
                Message.created_at,
                ConversationParticipant.user_id.label("author_id"),
                func.row_number()
                .over(
                    partition_by=Message.conversation_id,
                    order_by=(Message.created_at.desc(), Message.id.desc()),
                )
                .label("position"),
            )
            .join(ConversationParticipant, ConversationParticipant.id == Message.participant_id)
            .where(Message.conversation_id.in_(conversation_ids), Message.deleted_at.is_(None))
            .subquery()
        )
        query = select(ranked).where(ranked.c.position == 1)

        async with db_error_handler("Message"):
            result = await self.db.execute(query)
            rows = result.all()

        return {
            row.conversation_id: LastMessageRow(
                id=row.id,
                conversation_id=row.conversation_id,
                content=row.content,
                created_at=row.created_at,
                author_id=row.author_id,
            )
            for row in rows
        }

    def _unread_query(self, user_id: UUID):
        """
        (conversation_id, unread) for each active participation of `user_id`:
        non-deleted messages newer than the reader's last_read_at (never read = epoch)
        written by someone else.
        """
        reader = aliased(ConversationParticipant, name="reader")
        author = aliased(ConversationParticipant, name="author")
        return (
            select(reader.conversation_id, func.count(Message.id).label("unread"))
            .select_from(reader)
            .join(
                Message,
                and_(
                    Message.conversation_id == reader.conversation_id,
                    Message.deleted_at.is_(None),
                    Message.created_at > func.coalesce(reader.last_read_at, literal(EPOCH, DateTime(timezone=True))),
                ),
            )
            .join(author, author.id == Message.participant_id)
            .where(
                reader.user_id == user_id,
                reader.left_at.is_(None),
                author.user_id != user_id,
            )
            .group_by(reader.conversation_id)
        )

    async def unread_counts(self, user_id: UUID, conversation_ids: list[UUID]) -> dict[UUID, int]:
        """Unread count per conversation; conversations with nothing unread are absent."""
        if not conversation_ids:
            return {}
        query = self._unread_query(user_id).where(Message.conversation_id.in_(conversation_ids))
        async with db_error_handler("Message"):
            result = await self.db.execute(query)
            return {conversation_id: int(unread) for conversation_id, unread in result.all()}

    async def unread_totals(self, user_id: UUID) -> dict[UUID, int]:
        """Unread count of every conversation the user actively participates in."""
        async with db_error_handler("Message"):
            result = await self.db.execute(self._unread_query(user_id))
            return {conversation_id: int(unread) for conversation_id, unread in result.all()}
