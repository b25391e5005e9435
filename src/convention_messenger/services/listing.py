"""
Read side of the messenger: which conversations a user sees in an edition,
with last message, participants and unread counts.
"""

from datetime import datetime
from uuid import UUID
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from convention_messenger.config import get_settings
from convention_messenger.exceptions.base import AccessDeniedError, NotFoundError
from convention_messenger.models import Conversation, ConversationParticipant
from convention_messenger.repositories import (
    ConversationRepository,
    MembershipRepository,
    MessageRepository,
    ParticipantRepository,
)
from convention_messenger.schemas.conversation import (
    ConversationSummary,
    MessagePreview,
    ParticipantSummary,
    UnreadTotals,
)

logger = logging.getLogger(__name__)


def make_preview(content: str, max_length: int | None = None) -> str:
    """Content longer than `max_length` is cut to `max_length - 3` characters plus "..."."""
    limit = max_length if max_length is not None else get_settings().MESSAGE_PREVIEW_LENGTH
    if len(content) <= limit:
        return content
    return content[: limit - 3] + "..."


class ConversationListingService:
    """
    Works inside the caller's session (one request = one session); only
    `mark_conversation_read` writes, and it leaves committing to the caller.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.membership = MembershipRepository(db)
        self.conversations = ConversationRepository(db)
        self.participants = ParticipantRepository(db)
        self.messages = MessageRepository(db)

    async def _ensure_can_view(self, edition_id: UUID, user_id: UUID, admin_mode: bool) -> None:
        if await self.membership.get_edition(edition_id) is None:
            raise NotFoundError(f"Edition with ID {edition_id} not found", fields=["edition_id"])

        allowed = (
            await self.membership.is_edition_organizer(edition_id, user_id)
            or await self.membership.is_convention_organizer(edition_id, user_id)
            or await self.membership.is_artist(edition_id, user_id)
            or await self.membership.is_accepted_volunteer(edition_id, user_id)
            or await self.membership.is_admin_mode(user_id, admin_mode)
        )
        if allowed:
            return

        logger.info("listing.access_denied", extra={"edition_id": edition_id, "user_id": user_id})
        raise AccessDeniedError(f"User {user_id} has no access to the conversations of edition {edition_id}")

    async def list_conversations(
        self,
        edition_id: UUID,
        user_id: UUID,
        *,
        admin_mode: bool = False,
    ) -> list[ConversationSummary]:
        """
        Every conversation of the edition (including artist conversations of its
        show applications) in which the user is an active participant, most recent
        activity first.

        Raises:
            NotFoundError: unknown edition.
            AccessDeniedError: the user has no role in the edition.
        """
        await self._ensure_can_view(edition_id, user_id, admin_mode)

        conversations = await self.conversations.list_for_participant(edition_id, user_id)
        if not conversations:
            return []

        conversation_ids = [c.id for c in conversations]
        participants = await self.participants.list_active_with_users(conversation_ids)
        last_messages = await self.messages.last_messages(conversation_ids)
        unread = await self.messages.unread_counts(user_id, conversation_ids)

        team_ids = list({c.team_id for c in conversations if c.team_id is not None})
        leaders_by_team = await self.membership.get_leader_ids_by_team(team_ids)

        by_conversation: dict[UUID, list] = {}
        for row in participants:
            by_conversation.setdefault(row.conversation_id, []).append(row)

        summaries = [
            self._summarize(conversation, by_conversation.get(conversation.id, []), last_messages, unread, leaders_by_team)
            for conversation in conversations
        ]
        logger.debug(
            "listing.conversations",
            extra={"edition_id": edition_id, "user_id": user_id, "count": len(summaries)},
        )
        return summaries

    @staticmethod
    def _summarize(
        conversation: Conversation,
        participant_rows: list,
        last_messages: dict,
        unread: dict[UUID, int],
        leaders_by_team: dict[UUID, set[UUID]],
    ) -> ConversationSummary:
        is_team = conversation.team_id is not None
        leaders = leaders_by_team.get(conversation.team_id, set()) if is_team else set()

        last = last_messages.get(conversation.id)
        last_message = None
        if last is not None:
            last_message = MessagePreview(
                id=last.id,
                preview=make_preview(last.content),
                created_at=last.created_at,
                author_id=last.author_id,
            )

        return ConversationSummary(
            id=conversation.id,
            type=conversation.type,
            team_id=conversation.team_id,
            show_application_id=conversation.show_application_id,
            updated_at=conversation.updated_at,
            last_message=last_message,
            participants=[
                ParticipantSummary(
                    user_id=row.user_id,
                    pseudo=row.pseudo,
                    last_read_at=row.last_read_at,
                    is_leader=(row.user_id in leaders) if is_team else None,
                )
                for row in participant_rows
            ],
            unread_count=unread.get(conversation.id, 0),
        )

    async def get_unread_totals(self, user_id: UUID) -> UnreadTotals:
        """Unread messages across every active participation, and how many conversations have some."""
        per_conversation = await self.messages.unread_totals(user_id)
        counts = [count for count in per_conversation.values() if count > 0]
        return UnreadTotals(unread_count=sum(counts), conversation_count=len(counts))

    async def mark_conversation_read(
        self,
        conversation_id: UUID,
        user_id: UUID,
        read_at: datetime | None = None,
    ) -> ConversationParticipant:
        """
        Move the caller's read position to `read_at` (now by default).

        Raises:
            NotFoundError: unknown conversation.
            AccessDeniedError: the user is not an active participant.
        """
        if not await self.conversations.exists(conversation_id):
            raise NotFoundError(f"Conversation with ID {conversation_id} not found", fields=["conversation_id"])

        participant = await self.participants.get_active(conversation_id, user_id)
        if participant is None:
            raise AccessDeniedError(f"User {user_id} is not a participant of conversation {conversation_id}")

        return await self.participants.mark_read(participant, read_at)
