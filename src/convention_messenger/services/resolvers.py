"""
Find-or-create resolvers for team conversations.

Both resolvers are idempotent and safe against a concurrent writer: the INSERT
runs in a SAVEPOINT, and losing the race on a unique index (DuplicateError)
turns into a re-read of the row the other writer created.
"""

from dataclasses import dataclass, field
from typing import Iterable
from uuid import UUID
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from convention_messenger.exceptions.base import DuplicateError
from convention_messenger.models import Conversation, ConversationType
from convention_messenger.repositories import ConversationRepository
from convention_messenger.utils.participant_key import canonical_participants, make_participant_key
from .reconciler import MembershipReconciler, ReconcileAction

logger = logging.getLogger(__name__)


@dataclass
class Resolution:
    conversation: Conversation
    created: bool
    # reconciliation performed for the conversation's expected participants
    actions: list[ReconcileAction] = field(default_factory=list)


class TeamGroupResolver:
    """The single TEAM_GROUP conversation of a team."""

    def __init__(self, db: AsyncSession):
        self.conversations = ConversationRepository(db)

    async def resolve(self, edition_id: UUID, team_id: UUID) -> Conversation:
        return (await self.find_or_create(edition_id, team_id)).conversation

    async def find_or_create(self, edition_id: UUID, team_id: UUID) -> Resolution:
        existing = await self.conversations.find_team_group(edition_id, team_id)
        if existing is not None:
            return Resolution(existing, created=False)

        try:
            created = await self.conversations.create_with_participants(
                [],
                edition_id=edition_id,
                team_id=team_id,
                type=ConversationType.TEAM_GROUP,
            )
        except DuplicateError:
            winner = await self.conversations.find_team_group(edition_id, team_id)
            if winner is None:
                raise
            logger.info(
                "resolver.team_group.conflict",
                extra={"edition_id": edition_id, "team_id": team_id, "conversation_id": winner.id},
            )
            return Resolution(winner, created=False)
        return Resolution(created, created=True)


class LeaderPrivateResolver:
    """
    The TEAM_LEADER_PRIVATE conversation between one member and all current
    leaders of the team.

    Matching order:
      1. a conversation whose *active* participants are exactly {member} ∪ leaders
         (oldest first when several match);
      2. the conversation created for that exact set (by participant_key), whose
         members are reactivated;
      3. a new conversation with the whole set active.
    A changed leader set therefore leads to a new conversation; the previous one
    is left as it is.
    """

    def __init__(self, db: AsyncSession, reconciler: MembershipReconciler | None = None):
        self.conversations = ConversationRepository(db)
        self.reconciler = reconciler or MembershipReconciler(db)

    async def resolve(self, edition_id: UUID, team_id: UUID, member_id: UUID, leader_ids: Iterable[UUID]) -> Conversation:
        return (await self.find_or_create(edition_id, team_id, member_id, leader_ids)).conversation

    async def find_or_create(
        self,
        edition_id: UUID,
        team_id: UUID,
        member_id: UUID,
        leader_ids: Iterable[UUID],
    ) -> Resolution:
        leaders = set(leader_ids)
        if not leaders:
            raise ValueError("leader_ids must not be empty; skip private conversations for teams without leaders")

        expected = canonical_participants({member_id, *leaders})
        expected_set = frozenset(expected)

        candidates = await self.conversations.list_leader_private_candidates(edition_id, team_id)
        for candidate in candidates:
            if candidate.active_user_ids == expected_set:
                actions = await self.reconciler.ensure_active_participants(candidate.conversation.id, expected)
                return Resolution(candidate.conversation, created=False, actions=actions)

        key = make_participant_key(expected)
        by_key = await self.conversations.find_leader_private_by_key(edition_id, team_id, key)
        if by_key is not None:
            actions = await self.reconciler.ensure_active_participants(by_key.id, expected)
            logger.debug(
                "resolver.leader_private.reused_by_key",
                extra={"conversation_id": by_key.id, "team_id": team_id, "member_id": member_id},
            )
            return Resolution(by_key, created=False, actions=actions)

        try:
            created = await self.conversations.create_with_participants(
                expected,
                edition_id=edition_id,
                team_id=team_id,
                type=ConversationType.TEAM_LEADER_PRIVATE,
                participant_key=key,
            )
        except DuplicateError:
            winner = await self.conversations.find_leader_private_by_key(edition_id, team_id, key)
            if winner is None:
                raise
            logger.info(
                "resolver.leader_private.conflict",
                extra={"edition_id": edition_id, "team_id": team_id, "conversation_id": winner.id},
            )
            actions = await self.reconciler.ensure_active_participants(winner.id, expected)
            return Resolution(winner, created=False, actions=actions)

        return Resolution(created, created=True, actions=[ReconcileAction.CREATED] * len(expected))
