import uuid

import pytest

from convention_messenger.models import ApplicationStatus


@pytest.mark.asyncio
class TestTeamAssignments:

    async def test_only_accepted_assignments_in_assignment_order(self, seed, membership_repository):
        edition = await seed.edition()
        logistics = await seed.team(edition, "Logistics")
        leader = await seed.volunteer(edition, logistics, is_leader=True)
        member = await seed.volunteer(edition, logistics)
        await seed.volunteer(edition, logistics, status=ApplicationStatus.PENDING)
        await seed.volunteer(edition, logistics, status=ApplicationStatus.REJECTED)

        records = await membership_repository.get_accepted_team_assignments(edition.id)

        assert [(r.user_id, r.is_leader) for r in records] == [(leader.id, True), (member.id, False)]
        assert all(r.team_id == logistics.id and r.edition_id == edition.id for r in records)

    async def test_filters_by_team_and_user(self, seed, membership_repository):
        edition = await seed.edition()
        logistics = await seed.team(edition, "Logistics")
        kitchen = await seed.team(edition, "Kitchen")
        application = await seed.application(edition)
        await seed.assign(application, logistics)
        await seed.assign(application, kitchen, is_leader=True)
        other = await seed.volunteer(edition, kitchen)

        kitchen_records = await membership_repository.get_accepted_team_assignments(edition.id, team_id=kitchen.id)
        user_records = await membership_repository.get_accepted_team_assignments(
            edition.id, user_id=application.user_id
        )

        assert {r.user_id for r in kitchen_records} == {application.user_id, other.id}
        assert [(r.team_id, r.is_leader) for r in user_records] == [(logistics.id, False), (kitchen.id, True)]

    async def test_other_editions_are_ignored(self, seed, membership_repository):
        edition = await seed.edition()
        other_edition = await seed.edition()
        await seed.volunteer(other_edition, await seed.team(other_edition))

        assert await membership_repository.get_accepted_team_assignments(edition.id) == []

    async def test_leader_ids_by_team(self, seed, membership_repository):
        edition = await seed.edition()
        logistics = await seed.team(edition, "Logistics")
        kitchen = await seed.team(edition, "Kitchen")
        alice = await seed.volunteer(edition, logistics, is_leader=True)
        bob = await seed.volunteer(edition, logistics, is_leader=True)
        await seed.volunteer(edition, logistics)
        await seed.volunteer(edition, kitchen)

        leaders = await membership_repository.get_leader_ids_by_team([logistics.id, kitchen.id])

        assert leaders == {logistics.id: {alice.id, bob.id}}
        assert await membership_repository.get_leader_ids_by_team([]) == {}

    async def test_get_team_checks_edition(self, seed, membership_repository):
        edition = await seed.edition()
        other_edition = await seed.edition()
        team = await seed.team(other_edition)

        assert await membership_repository.get_team(edition.id, team.id) is None
        assert (await membership_repository.get_team(other_edition.id, team.id)).id == team.id


@pytest.mark.asyncio
class TestOrganizers:

    async def test_edition_organizers_exclude_convention_only_organizers(self, seed, membership_repository):
        edition = await seed.edition()
        attached = await seed.organizer(edition)
        await seed.organizer(edition, attach_to_edition=False)

        assert await membership_repository.get_edition_organizer_user_ids(edition.id) == [attached.id]

    async def test_volunteer_managers_convention_wide_or_edition_grant(self, seed, membership_repository):
        edition = await seed.edition()
        convention_wide = await seed.organizer(edition, can_manage_volunteers=True, attach_to_edition=False)
        edition_grant = await seed.organizer(edition, edition_can_manage_volunteers=True)
        await seed.organizer(edition)

        managers = await membership_repository.get_volunteer_manager_user_ids(edition.id)

        assert set(managers) == {convention_wide.id, edition_grant.id}

    async def test_edition_grant_does_not_leak_to_sibling_editions(self, seed, membership_repository):
        edition = await seed.edition()
        sibling = await seed.edition(convention_id=edition.convention_id)
        await seed.organizer(sibling, edition_can_manage_volunteers=True)

        assert await membership_repository.get_volunteer_manager_user_ids(edition.id) == []


@pytest.mark.asyncio
class TestAccessPredicates:

    async def test_each_role_grants_its_own_predicate(self, seed, membership_repository):
        edition = await seed.edition()
        team = await seed.team(edition)
        organizer = await seed.organizer(edition)
        convention_organizer = await seed.organizer(edition, attach_to_edition=False)
        artist = (await seed.show_application(edition)).user_id
        volunteer = await seed.volunteer(edition, team)
        pending = await seed.volunteer(edition, team, status=ApplicationStatus.PENDING)

        assert await membership_repository.is_edition_organizer(edition.id, organizer.id)
        assert not await membership_repository.is_edition_organizer(edition.id, convention_organizer.id)
        assert await membership_repository.is_convention_organizer(edition.id, convention_organizer.id)
        assert await membership_repository.is_artist(edition.id, artist)
        assert await membership_repository.is_accepted_volunteer(edition.id, volunteer.id)
        assert not await membership_repository.is_accepted_volunteer(edition.id, pending.id)
        assert not await membership_repository.is_artist(edition.id, volunteer.id)

    async def test_admin_mode_requires_flag_and_opt_in(self, seed, membership_repository):
        admin = await seed.user(is_global_admin=True)
        regular = await seed.user()

        assert await membership_repository.is_admin_mode(admin.id, True)
        assert not await membership_repository.is_admin_mode(admin.id, False)
        assert not await membership_repository.is_admin_mode(regular.id, True)
        assert not await membership_repository.is_admin_mode(uuid.uuid4(), True)
