"""
Read-only access to who belongs where: accepted team assignments, organizers,
artists. The messenger never writes these tables.
"""

from dataclasses import dataclass
from uuid import UUID
import logging

from sqlalchemy import select, or_, exists
from sqlalchemy.ext.asyncio import AsyncSession

from convention_messenger.exceptions.mapper import db_error_handler
from convention_messenger.models import (
    ApplicationStatus,
    ApplicationTeamAssignment,
    ConventionOrganizer,
    Edition,
    EditionOrganizer,
    ShowApplication,
    Team,
    User,
    VolunteerApplication,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TeamAssignmentRecord:
    """One accepted volunteer placed in one team."""
    team_id: UUID
    user_id: UUID
    edition_id: UUID
    is_leader: bool


class MembershipRepository:
    """
    Membership source and access predicates.

    Every call reads the current state; nothing is cached between calls, so leader
    sets and access rights always reflect the latest assignments.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    # =================================================================================================================
    # Editions & teams
    # =================================================================================================================

    async def get_edition(self, edition_id: UUID) -> Edition | None:
        async with db_error_handler("Edition"):
            result = await self.db.execute(select(Edition).where(Edition.id == edition_id))
            return result.scalar_one_or_none()

    async def get_team(self, edition_id: UUID, team_id: UUID) -> Team | None:
        """The team, only if it belongs to `edition_id`."""
        async with db_error_handler("Team"):
            result = await self.db.execute(
                select(Team).where(Team.id == team_id, Team.edition_id == edition_id)
            )
            return result.scalar_one_or_none()

    # =================================================================================================================
    # Team assignments
    # =================================================================================================================

    async def get_accepted_team_assignments(
        self,
        edition_id: UUID,
        team_id: UUID | None = None,
        user_id: UUID | None = None,
    ) -> list[TeamAssignmentRecord]:
        """
        Accepted assignments of an edition, optionally narrowed to a team and/or a user,
        in assignment order (oldest first).
        """
        query = (
            select(
                ApplicationTeamAssignment.team_id,
                VolunteerApplication.user_id,
                VolunteerApplication.edition_id,
                ApplicationTeamAssignment.is_leader,
            )
            .join(VolunteerApplication, VolunteerApplication.id == ApplicationTeamAssignment.application_id)
            .join(Team, Team.id == ApplicationTeamAssignment.team_id)
            .where(
                VolunteerApplication.edition_id == edition_id,
                VolunteerApplication.status == ApplicationStatus.ACCEPTED,
                Team.edition_id == edition_id,
            )
            .order_by(ApplicationTeamAssignment.assigned_at, ApplicationTeamAssignment.id)
        )
        if team_id is not None:
            query = query.where(ApplicationTeamAssignment.team_id == team_id)
        if user_id is not None:
            query = query.where(VolunteerApplication.user_id == user_id)

        async with db_error_handler("ApplicationTeamAssignment"):
            result = await self.db.execute(query)
            rows = result.all()

        records = [
            TeamAssignmentRecord(team_id=row.team_id, user_id=row.user_id, edition_id=row.edition_id, is_leader=row.is_leader)
            for row in rows
        ]
        logger.debug(
            "membership.assignments.loaded",
            extra={"edition_id": edition_id, "team_id": team_id, "user_id": user_id, "count": len(records)},
        )
        return records

    async def get_leader_ids_by_team(self, team_ids: list[UUID]) -> dict[UUID, set[UUID]]:
        """Current leader set of each team (teams without leaders are absent from the result)."""
        if not team_ids:
            return {}
        query = (
            select(ApplicationTeamAssignment.team_id, VolunteerApplication.user_id)
            .join(VolunteerApplication, VolunteerApplication.id == ApplicationTeamAssignment.application_id)
            .where(
                ApplicationTeamAssignment.team_id.in_(team_ids),
                ApplicationTeamAssignment.is_leader.is_(True),
                VolunteerApplication.status == ApplicationStatus.ACCEPTED,
            )
        )
        async with db_error_handler("ApplicationTeamAssignment"):
            result = await self.db.execute(query)
            rows = result.all()

        leaders: dict[UUID, set[UUID]] = {}
        for team_id, user_id in rows:
            leaders.setdefault(team_id, set()).add(user_id)
        return leaders

    # =================================================================================================================
    # Organizers
    # =================================================================================================================

    async def get_edition_organizer_user_ids(self, edition_id: UUID) -> list[UUID]:
        query = (
            select(ConventionOrganizer.user_id)
            .join(EditionOrganizer, EditionOrganizer.organizer_id == ConventionOrganizer.id)
            .where(EditionOrganizer.edition_id == edition_id)
            .order_by(EditionOrganizer.id)
        )
        async with db_error_handler("EditionOrganizer"):
            result = await self.db.execute(query)
            return list(dict.fromkeys(result.scalars().all()))

    async def get_volunteer_manager_user_ids(self, edition_id: UUID) -> list[UUID]:
        """
        Organizers allowed to manage the edition's volunteers: convention-wide
        `can_manage_volunteers`, or the same right granted for this edition only.
        """
        edition_grant = exists().where(
            EditionOrganizer.organizer_id == ConventionOrganizer.id,
            EditionOrganizer.edition_id == edition_id,
            EditionOrganizer.can_manage_volunteers.is_(True),
        )
        query = (
            select(ConventionOrganizer.user_id)
            .join(Edition, Edition.convention_id == ConventionOrganizer.convention_id)
            .where(
                Edition.id == edition_id,
                or_(ConventionOrganizer.can_manage_volunteers.is_(True), edition_grant),
            )
            .order_by(ConventionOrganizer.id)
        )
        async with db_error_handler("ConventionOrganizer"):
            result = await self.db.execute(query)
            return list(dict.fromkeys(result.scalars().all()))

    # =================================================================================================================
    # Access predicates
    # =================================================================================================================

    async def _any(self, query, model_name: str) -> bool:
        async with db_error_handler(model_name):
            result = await self.db.execute(select(query.exists()))
            return bool(result.scalar())

    async def is_edition_organizer(self, edition_id: UUID, user_id: UUID) -> bool:
        query = (
            select(EditionOrganizer.id)
            .join(ConventionOrganizer, ConventionOrganizer.id == EditionOrganizer.organizer_id)
            .where(EditionOrganizer.edition_id == edition_id, ConventionOrganizer.user_id == user_id)
        )
        return await self._any(query, "EditionOrganizer")

    async def is_convention_organizer(self, edition_id: UUID, user_id: UUID) -> bool:
        query = (
            select(ConventionOrganizer.id)
            .join(Edition, Edition.convention_id == ConventionOrganizer.convention_id)
            .where(Edition.id == edition_id, ConventionOrganizer.user_id == user_id)
        )
        return await self._any(query, "ConventionOrganizer")

    async def is_artist(self, edition_id: UUID, user_id: UUID) -> bool:
        query = select(ShowApplication.id).where(
            ShowApplication.edition_id == edition_id, ShowApplication.user_id == user_id
        )
        return await self._any(query, "ShowApplication")

    async def is_accepted_volunteer(self, edition_id: UUID, user_id: UUID) -> bool:
        query = select(VolunteerApplication.id).where(
            VolunteerApplication.edition_id == edition_id,
            VolunteerApplication.user_id == user_id,
            VolunteerApplication.status == ApplicationStatus.ACCEPTED,
        )
        return await self._any(query, "VolunteerApplication")

    async def is_admin_mode(self, user_id: UUID, admin_mode: bool) -> bool:
        """A global admin who explicitly asked for admin mode."""
        if not admin_mode:
            return False
        query = select(User.id).where(User.id == user_id, User.is_global_admin.is_(True))
        return await self._any(query, "User")
