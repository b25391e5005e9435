"""
Conversation provisioning: derive the conversations of an edition from its
accepted team assignments and keep their membership in step.

Per team (own transaction):
  1. the team group conversation, with every assigned user active;
  2. when the team has leaders, one private conversation per non-leader member
     containing the member and all leaders.

Assignments are read once per run (snapshot) and never re-queried between the
sub-steps of a team. Every step is find-or-create, so a failed run can simply
be repeated.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from uuid import UUID
import logging
import time

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from convention_messenger.exceptions.base import (
    DuplicateError,
    NotFoundError,
    RepositoryError,
    StoreUnavailableError,
)
from convention_messenger.exceptions.mapper import db_error_handler
from convention_messenger.models import ConversationType, ShowApplication
from convention_messenger.repositories import (
    BaseRepository,
    ConversationRepository,
    MembershipRepository,
    ParticipantRepository,
    TeamAssignmentRecord,
)
from convention_messenger.schemas.provisioning import ProvisioningReport, ProvisioningScope
from convention_messenger.utils.participant_key import make_participant_key
from .reconciler import MembershipReconciler, ReconcileAction
from .resolvers import LeaderPrivateResolver, TeamGroupResolver

logger = logging.getLogger(__name__)


@dataclass
class TeamRoster:
    """Members of one team in the snapshot; a user is a leader if any assignment says so."""
    team_id: UUID
    members: dict[UUID, bool] = field(default_factory=dict)

    @property
    def user_ids(self) -> list[UUID]:
        return list(self.members)

    @property
    def leader_ids(self) -> list[UUID]:
        return [user_id for user_id, is_leader in self.members.items() if is_leader]

    @property
    def non_leader_ids(self) -> list[UUID]:
        return [user_id for user_id, is_leader in self.members.items() if not is_leader]


def group_by_team(assignments: list[TeamAssignmentRecord]) -> list[TeamRoster]:
    """Rosters in order of each team's first appearance; users deduplicated per team."""
    rosters: dict[UUID, TeamRoster] = {}
    for record in assignments:
        roster = rosters.setdefault(record.team_id, TeamRoster(record.team_id))
        roster.members[record.user_id] = roster.members.get(record.user_id, False) or record.is_leader
    return list(rosters.values())


@dataclass
class _TeamOutcome:
    conversations_created: int = 0
    participants_added: int = 0
    participants_reactivated: int = 0

    def count(self, created: bool, actions: list[ReconcileAction]) -> None:
        self.conversations_created += int(created)
        self.participants_added += sum(1 for a in actions if a is ReconcileAction.CREATED)
        self.participants_reactivated += sum(1 for a in actions if a is ReconcileAction.REACTIVATED)


class ConversationProvisioningService:
    """
    Entry points for provisioning. Each unit of work opens its own session and
    transaction from `session_factory`.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[AsyncSession]:
        # COMMIT can fail too; map it like any other store call
        async with self.session_factory() as session:
            async with db_error_handler("Conversation"):
                async with session.begin():
                    yield session

    # =================================================================================================================
    # Team conversations
    # =================================================================================================================

    async def provision_all(self, scope: ProvisioningScope, *, isolate_failures: bool = True) -> ProvisioningReport:
        """
        Provision the team conversations of `scope`.

        With `isolate_failures` (batch mode) a RepositoryError in one team rolls back
        that team only, is logged and listed in `failed_teams`, and the run goes on.
        Without it (interactive mode) the error propagates. StoreUnavailableError
        always propagates.

        Raises:
            NotFoundError: unknown edition, team not in the edition, or (user scope)
                the user is not an accepted member of the team.
        """
        started = time.perf_counter()
        logger.info(
            "provisioning.run.start",
            extra={"edition_id": scope.edition_id, "team_id": scope.team_id, "user_id": scope.user_id},
        )

        rosters = await self._load_rosters(scope)
        report = ProvisioningReport()

        for roster in rosters:
            try:
                async with self._transaction() as session:
                    outcome = await self._provision_team(session, scope.edition_id, roster)
            except StoreUnavailableError:
                # the remaining teams would fail the same way
                raise
            except RepositoryError as exc:
                if not isolate_failures:
                    raise
                logger.error(
                    "provisioning.team.failed",
                    extra={
                        "edition_id": scope.edition_id,
                        "team_id": roster.team_id,
                        "error_code": exc.error_code,
                        "error": exc.message,
                    },
                )
                report.failed_teams.append(roster.team_id)
                continue

            report.teams_processed += 1
            report.conversations_created += outcome.conversations_created
            report.participants_added += outcome.participants_added
            report.participants_reactivated += outcome.participants_reactivated

        logger.info(
            "provisioning.run.finished",
            extra={
                "edition_id": scope.edition_id,
                "teams_processed": report.teams_processed,
                "conversations_created": report.conversations_created,
                "participants_added": report.participants_added,
                "participants_reactivated": report.participants_reactivated,
                "failed_teams": len(report.failed_teams),
                "duration_ms": int((time.perf_counter() - started) * 1000),
            },
        )
        return report

    async def ensure_conversations_for_user(self, edition_id: UUID, team_id: UUID, user_id: UUID) -> None:
        """
        Interactive entry point, called when a volunteer is assigned to a team.
        The whole team is reconciled, since the user's arrival can change the
        private conversations of the other members (e.g. a new leader).
        """
        await self.provision_all(
            ProvisioningScope(edition_id=edition_id, team_id=team_id, user_id=user_id),
            isolate_failures=False,
        )

    async def _load_rosters(self, scope: ProvisioningScope) -> list[TeamRoster]:
        async with self._transaction() as session:
            membership = MembershipRepository(session)

            if await membership.get_edition(scope.edition_id) is None:
                raise NotFoundError(f"Edition with ID {scope.edition_id} not found", fields=["edition_id"])
            if scope.team_id is not None and await membership.get_team(scope.edition_id, scope.team_id) is None:
                raise NotFoundError(f"Team with ID {scope.team_id} not found in edition", fields=["team_id"])

            assignments = await membership.get_accepted_team_assignments(scope.edition_id, team_id=scope.team_id)

        if scope.user_id is not None and not any(a.user_id == scope.user_id for a in assignments):
            raise NotFoundError(
                f"User {scope.user_id} is not an accepted member of team {scope.team_id}",
                fields=["user_id"],
            )
        return group_by_team(assignments)

    async def _provision_team(self, session: AsyncSession, edition_id: UUID, roster: TeamRoster) -> _TeamOutcome:
        outcome = _TeamOutcome()
        reconciler = MembershipReconciler(session)

        group = await TeamGroupResolver(session).find_or_create(edition_id, roster.team_id)
        actions = await reconciler.ensure_active_participants(group.conversation.id, roster.user_ids)
        outcome.count(group.created, actions)

        leader_ids = roster.leader_ids
        if leader_ids:
            private = LeaderPrivateResolver(session, reconciler)
            for member_id in roster.non_leader_ids:
                resolution = await private.find_or_create(edition_id, roster.team_id, member_id, leader_ids)
                outcome.count(resolution.created, resolution.actions)

        logger.info(
            "provisioning.team.done",
            extra={
                "edition_id": edition_id,
                "team_id": roster.team_id,
                "group_conversation_id": group.conversation.id,
                "members": len(roster.members),
                "leaders": len(leader_ids),
                "conversations_created": outcome.conversations_created,
                "participants_added": outcome.participants_added,
                "participants_reactivated": outcome.participants_reactivated,
            },
        )
        return outcome

    async def remove_volunteer_from_team_conversations(self, edition_id: UUID, team_id: UUID, user_id: UUID) -> int:
        """
        Mark the user as having left every conversation of the team (group and
        private). Rows are kept so a later re-assignment reactivates them.
        """
        async with self._transaction() as session:
            marked = await ParticipantRepository(session).mark_left(user_id, edition_id=edition_id, team_id=team_id)
        logger.info(
            "provisioning.volunteer.removed",
            extra={"edition_id": edition_id, "team_id": team_id, "user_id": user_id, "participations": marked},
        )
        return marked

    # =================================================================================================================
    # Organizer conversations
    # =================================================================================================================

    async def ensure_organizers_group_conversation(self, edition_id: UUID) -> UUID:
        """
        The ORGANIZERS_GROUP conversation of the edition, with every edition
        organizer active and former organizers marked as left.
        """
        async with self._transaction() as session:
            return await self._sync_organizers_group(session, edition_id, create=True)

    async def sync_organizers_group_participants(self, edition_id: UUID) -> None:
        """Re-sync the organizers group after an organizer change; no-op if it doesn't exist yet."""
        async with self._transaction() as session:
            await self._sync_organizers_group(session, edition_id, create=False)

    async def _sync_organizers_group(self, session: AsyncSession, edition_id: UUID, *, create: bool) -> UUID | None:
        conversations = ConversationRepository(session)
        conversation = await conversations.find_organizers_group(edition_id)
        if conversation is None and not create:
            return None

        organizer_ids = await MembershipRepository(session).get_edition_organizer_user_ids(edition_id)
        if not organizer_ids:
            raise NotFoundError(f"No organizers found for edition {edition_id}", fields=["edition_id"])

        if conversation is None:
            try:
                conversation = await conversations.create_with_participants(
                    organizer_ids, edition_id=edition_id, type=ConversationType.ORGANIZERS_GROUP
                )
                return conversation.id
            except DuplicateError:
                conversation = await conversations.find_organizers_group(edition_id)
                if conversation is None:
                    raise

        await MembershipReconciler(session).ensure_active_participants(conversation.id, organizer_ids)
        left = await ParticipantRepository(session).mark_left_except(conversation.id, set(organizer_ids))
        if left:
            logger.info(
                "provisioning.organizers_group.members_left",
                extra={"edition_id": edition_id, "conversation_id": conversation.id, "participations": left},
            )
        return conversation.id

    async def ensure_volunteer_to_organizers_conversation(self, edition_id: UUID, volunteer_id: UUID) -> UUID:
        """
        The volunteer's private line to the organizers who manage volunteers
        (convention-wide or for this edition). New managers are added, former
        participants who came back are reactivated.
        """
        async with self._transaction() as session:
            membership = MembershipRepository(session)
            if await membership.get_edition(edition_id) is None:
                raise NotFoundError(f"Edition with ID {edition_id} not found", fields=["edition_id"])

            manager_ids = await membership.get_volunteer_manager_user_ids(edition_id)
            if not manager_ids:
                raise NotFoundError("No organizer with volunteer management rights found", fields=["edition_id"])

            participant_ids = list(dict.fromkeys([volunteer_id, *manager_ids]))
            key = make_participant_key([volunteer_id])
            conversations = ConversationRepository(session)

            conversation = await conversations.find_volunteer_to_organizers(edition_id, key)
            if conversation is None:
                try:
                    conversation = await conversations.create_with_participants(
                        participant_ids,
                        edition_id=edition_id,
                        type=ConversationType.VOLUNTEER_TO_ORGANIZERS,
                        participant_key=key,
                    )
                    return conversation.id
                except DuplicateError:
                    conversation = await conversations.find_volunteer_to_organizers(edition_id, key)
                    if conversation is None:
                        raise

            await MembershipReconciler(session).ensure_active_participants(conversation.id, participant_ids)
            return conversation.id

    # =================================================================================================================
    # Artist conversations
    # =================================================================================================================

    async def ensure_show_application_conversation(self, show_application_id: UUID, sender_id: UUID) -> UUID:
        """
        The conversation about a show application: created with the artist and the
        first organizer who writes; later senders are added (or reactivated).
        """
        async with self._transaction() as session:
            application = await BaseRepository(ShowApplication, session).get_by_id_or_raise(show_application_id)
            conversations = ConversationRepository(session)

            conversation = await conversations.find_by_show_application(show_application_id)
            if conversation is None:
                try:
                    conversation = await conversations.create_with_participants(
                        list(dict.fromkeys([application.user_id, sender_id])),
                        edition_id=application.edition_id,
                        show_application_id=show_application_id,
                        type=ConversationType.ARTIST_APPLICATION,
                    )
                    return conversation.id
                except DuplicateError:
                    conversation = await conversations.find_by_show_application(show_application_id)
                    if conversation is None:
                        raise

            await MembershipReconciler(session).ensure_active_participant(conversation.id, sender_id)
            return conversation.id
