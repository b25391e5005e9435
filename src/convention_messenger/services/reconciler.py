"""
Membership reconciliation: make sure a user has exactly one active participant
row in a conversation, reusing historical rows instead of inserting new ones.
"""

from enum import Enum
from typing import Sequence
from uuid import UUID
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from convention_messenger.exceptions.base import DuplicateError
from convention_messenger.models import ConversationParticipant
from convention_messenger.repositories import ParticipantRepository

logger = logging.getLogger(__name__)


class ReconcileAction(str, Enum):
    CREATED = "created"
    UNCHANGED = "unchanged"
    REACTIVATED = "reactivated"


def pick_participant(rows: Sequence[ConversationParticipant]) -> ConversationParticipant | None:
    """The row that represents the user: the active one, else the most recently joined."""
    if not rows:
        return None
    for row in rows:
        if row.left_at is None:
            return row
    return max(rows, key=lambda row: (row.joined_at, str(row.id)))


def plan_reconciliation(participant: ConversationParticipant | None) -> ReconcileAction:
    """absent -> CREATED, active -> UNCHANGED, left -> REACTIVATED."""
    if participant is None:
        return ReconcileAction.CREATED
    if participant.left_at is None:
        return ReconcileAction.UNCHANGED
    return ReconcileAction.REACTIVATED


class MembershipReconciler:
    """Idempotent: calling it twice for the same pair changes nothing the second time."""

    def __init__(self, db: AsyncSession):
        self.participants = ParticipantRepository(db)

    async def ensure_active_participant(self, conversation_id: UUID, user_id: UUID) -> ReconcileAction:
        rows = await self.participants.list_rows(conversation_id, user_id)
        participant = pick_participant(rows)
        action = plan_reconciliation(participant)

        try:
            if action is ReconcileAction.CREATED:
                await self.participants.add(conversation_id, user_id)
            elif action is ReconcileAction.REACTIVATED:
                await self.participants.reactivate(participant)
        except DuplicateError:
            # a concurrent run activated the user first
            logger.info(
                "reconcile.participant.conflict",
                extra={"conversation_id": conversation_id, "user_id": user_id},
            )
            return ReconcileAction.UNCHANGED

        if action is not ReconcileAction.UNCHANGED:
            logger.debug(
                "reconcile.participant",
                extra={"conversation_id": conversation_id, "user_id": user_id, "action": action.value},
            )
        return action

    async def ensure_active_participants(self, conversation_id: UUID, user_ids: Sequence[UUID]) -> list[ReconcileAction]:
        return [await self.ensure_active_participant(conversation_id, user_id) for user_id in user_ids]
