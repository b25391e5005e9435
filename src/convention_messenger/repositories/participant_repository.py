"""
Participant rows: who is (or was) in which conversation.
"""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID
import logging

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from convention_messenger.exceptions.mapper import db_error_handler
from convention_messenger.models import Conversation, ConversationParticipant, User
from convention_messenger.utils.timestamps import utcnow
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ActiveParticipantRow:
    conversation_id: UUID
    participant_id: UUID
    user_id: UUID
    pseudo: str
    last_read_at: datetime | None


class ParticipantRepository(BaseRepository[ConversationParticipant]):

    def __init__(self, db: AsyncSession):
        super().__init__(ConversationParticipant, db)

    async def list_rows(self, conversation_id: UUID, user_id: UUID) -> list[ConversationParticipant]:
        """Every row (active and historical) of a user in a conversation."""
        async with db_error_handler("ConversationParticipant"):
            result = await self.db.execute(
                select(ConversationParticipant).where(
                    ConversationParticipant.conversation_id == conversation_id,
                    ConversationParticipant.user_id == user_id,
                )
            )
            return list(result.scalars().all())

    async def get_active(self, conversation_id: UUID, user_id: UUID) -> ConversationParticipant | None:
        async with db_error_handler("ConversationParticipant"):
            result = await self.db.execute(
                select(ConversationParticipant).where(
                    ConversationParticipant.conversation_id == conversation_id,
                    ConversationParticipant.user_id == user_id,
                    ConversationParticipant.left_at.is_(None),
                )
            )
            return result.scalars().first()

    async def add(self, conversation_id: UUID, user_id: UUID) -> ConversationParticipant:
        return await self.create(conversation_id=conversation_id, user_id=user_id)

    async def reactivate(self, participant: ConversationParticipant) -> ConversationParticipant:
        """Clear `left_at` on an existing row. `last_read_at` is left as it was."""
        async with db_error_handler("ConversationParticipant"):
            async with self.db.begin_nested():
                participant.left_at = None
                await self.db.flush()
        return participant

    async def active_user_ids(self, conversation_id: UUID) -> set[UUID]:
        async with db_error_handler("ConversationParticipant"):
            result = await self.db.execute(
                select(ConversationParticipant.user_id).where(
                    ConversationParticipant.conversation_id == conversation_id,
                    ConversationParticipant.left_at.is_(None),
                )
            )
            return set(result.scalars().all())

    async def list_active_with_users(self, conversation_ids: list[UUID]) -> list[ActiveParticipantRow]:
        """Active participants of several conversations, with their display names."""
        if not conversation_ids:
            return []
        query = (
            select(
                ConversationParticipant.conversation_id,
                ConversationParticipant.id,
                ConversationParticipant.user_id,
                User.pseudo,
                ConversationParticipant.last_read_at,
            )
            .join(User, User.id == ConversationParticipant.user_id)
            .where(
                ConversationParticipant.conversation_id.in_(conversation_ids),
                ConversationParticipant.left_at.is_(None),
            )
            .order_by(ConversationParticipant.joined_at, ConversationParticipant.id)
        )
        async with db_error_handler("ConversationParticipant"):
            result = await self.db.execute(query)
            rows = result.all()
        return [
            ActiveParticipantRow(
                conversation_id=row[0], participant_id=row[1], user_id=row[2], pseudo=row[3], last_read_at=row[4]
            )
            for row in rows
        ]

    async def mark_left(
        self,
        user_id: UUID,
        *,
        edition_id: UUID,
        team_id: UUID,
        at: datetime | None = None,
    ) -> int:
        """
        Set `left_at` on every active participation of `user_id` in the team's
        conversations. Returns the number of rows marked.
        """
        team_conversations = select(Conversation.id).where(
            Conversation.edition_id == edition_id,
            Conversation.team_id == team_id,
        )
        stmt = (
            update(ConversationParticipant)
            .where(
                ConversationParticipant.user_id == user_id,
                ConversationParticipant.left_at.is_(None),
                ConversationParticipant.conversation_id.in_(team_conversations),
            )
            .values(left_at=at or utcnow())
            .execution_options(synchronize_session=False)
        )
        async with db_error_handler("ConversationParticipant"):
            result = await self.db.execute(stmt)
        return result.rowcount or 0

    async def mark_left_except(self, conversation_id: UUID, keep_user_ids: set[UUID], at: datetime | None = None) -> int:
        """Mark every active participant not in `keep_user_ids` as left."""
        stmt = (
            update(ConversationParticipant)
            .where(
                ConversationParticipant.conversation_id == conversation_id,
                ConversationParticipant.left_at.is_(None),
                ConversationParticipant.user_id.not_in(keep_user_ids),
            )
            .values(left_at=at or utcnow())
            .execution_options(synchronize_session=False)
        )
        async with db_error_handler("ConversationParticipant"):
            result = await self.db.execute(stmt)
        return result.rowcount or 0

    async def mark_read(self, participant: ConversationParticipant, read_at: datetime | None = None) -> ConversationParticipant:
        async with db_error_handler("ConversationParticipant"):
            participant.last_read_at = read_at or utcnow()
            await self.db.flush()
        return participant
