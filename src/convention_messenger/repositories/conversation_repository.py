"""
Conversation repository: find-or-create lookups used by provisioning and the
per-user conversation query used by the listing view.
"""

from dataclasses import dataclass
from uuid import UUID
import logging

from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from convention_messenger.exceptions.mapper import db_error_handler
from convention_messenger.models import (
    Conversation,
    ConversationParticipant,
    ConversationType,
    ShowApplication,
)
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PrivateConversationCandidate:
    conversation: Conversation
    active_user_ids: frozenset[UUID]


class ConversationRepository(BaseRepository[Conversation]):
    """
    Repository for Conversation entity operations.

    Lookups return None when nothing matches; creation goes through
    `create_with_participants`, which inherits the SAVEPOINT + DuplicateError
    behaviour of BaseRepository.create().
    """

    def __init__(self, db: AsyncSession):
        super().__init__(Conversation, db)

    # =================================================================================================================
    # Create
    # =================================================================================================================

    async def create_with_participants(self, participant_user_ids: list[UUID], **fields) -> Conversation:
        """
        Insert a conversation and one active participant row per user id in the same flush.
        """
        participants = [ConversationParticipant(user_id=user_id) for user_id in participant_user_ids]
        conversation = await self.create(participants=participants, **fields)
        logger.info(
            "conversation.created",
            extra={
                "conversation_id": conversation.id,
                "conversation_type": conversation.type.value,
                "edition_id": conversation.edition_id,
                "team_id": conversation.team_id,
                "participant_count": len(participants),
            },
        )
        return conversation

    # =================================================================================================================
    # Lookups
    # =================================================================================================================

    async def _first(self, query) -> Conversation | None:
        async with db_error_handler("Conversation"):
            result = await self.db.execute(query.order_by(Conversation.created_at, Conversation.id).limit(1))
            return result.scalars().first()

    async def find_team_group(self, edition_id: UUID, team_id: UUID) -> Conversation | None:
        return await self._first(
            select(Conversation).where(
                Conversation.edition_id == edition_id,
                Conversation.team_id == team_id,
                Conversation.type == ConversationType.TEAM_GROUP,
            )
        )

    async def find_leader_private_by_key(self, edition_id: UUID, team_id: UUID, participant_key: str) -> Conversation | None:
        return await self._first(
            select(Conversation).where(
                Conversation.edition_id == edition_id,
                Conversation.team_id == team_id,
                Conversation.type == ConversationType.TEAM_LEADER_PRIVATE,
                Conversation.participant_key == participant_key,
            )
        )

    async def list_leader_private_candidates(self, edition_id: UUID, team_id: UUID) -> list[PrivateConversationCandidate]:
        """
        Every TEAM_LEADER_PRIVATE conversation of the team with its active participant
        ids, oldest first.
        """
        async with db_error_handler("Conversation"):
            result = await self.db.execute(
                select(Conversation)
                .where(
                    Conversation.edition_id == edition_id,
                    Conversation.team_id == team_id,
                    Conversation.type == ConversationType.TEAM_LEADER_PRIVATE,
                )
                .order_by(Conversation.created_at, Conversation.id)
            )
            conversations = list(result.scalars().all())
            if not conversations:
                return []

            members = await self.db.execute(
                select(ConversationParticipant.conversation_id, ConversationParticipant.user_id).where(
                    ConversationParticipant.conversation_id.in_([c.id for c in conversations]),
                    ConversationParticipant.left_at.is_(None),
                )
            )
            rows = members.all()

        active: dict[UUID, set[UUID]] = {c.id: set() for c in conversations}
        for conversation_id, user_id in rows:
            active[conversation_id].add(user_id)

        return [PrivateConversationCandidate(c, frozenset(active[c.id])) for c in conversations]

    async def find_organizers_group(self, edition_id: UUID) -> Conversation | None:
        return await self._first(
            select(Conversation).where(
                Conversation.edition_id == edition_id,
                Conversation.type == ConversationType.ORGANIZERS_GROUP,
            )
        )

    async def find_volunteer_to_organizers(self, edition_id: UUID, participant_key: str) -> Conversation | None:
        return await self._first(
            select(Conversation).where(
                Conversation.edition_id == edition_id,
                Conversation.team_id.is_(None),
                Conversation.type == ConversationType.VOLUNTEER_TO_ORGANIZERS,
                Conversation.participant_key == participant_key,
            )
        )

    async def find_by_show_application(self, show_application_id: UUID) -> Conversation | None:
        return await self._first(
            select(Conversation).where(Conversation.show_application_id == show_application_id)
        )

    # =================================================================================================================
    # Listing
    # =================================================================================================================

    async def list_for_participant(self, edition_id: UUID, user_id: UUID) -> list[Conversation]:
        """
        Conversations where `user_id` is an active participant, belonging to the edition
        directly or through a show application of the edition. Most recent activity first.
        """
        edition_show_applications = select(ShowApplication.id).where(ShowApplication.edition_id == edition_id)
        active_membership = select(ConversationParticipant.conversation_id).where(
            ConversationParticipant.user_id == user_id,
            ConversationParticipant.left_at.is_(None),
        )
        query = (
            select(Conversation)
            .where(
                Conversation.id.in_(active_membership),
                or_(
                    Conversation.edition_id == edition_id,
                    Conversation.show_application_id.in_(edition_show_applications),
                ),
            )
            .order_by(Conversation.updated_at.desc(), Conversation.id)
        )
        async with db_error_handler("Conversation"):
            result = await self.db.execute(query)
            return list(result.scalars().all())
