from datetime import datetime, timezone

import pytest

from convention_messenger.exceptions.base import DuplicateError
from convention_messenger.models import ConversationType
from convention_messenger.repositories import ConversationRepository


@pytest.fixture
async def team_setup(seed):
    """An edition with two teams and three users; nothing provisioned yet."""
    edition = await seed.edition()
    logistics = await seed.team(edition, "Logistics")
    kitchen = await seed.team(edition, "Kitchen")
    users = [await seed.user() for _ in range(3)]
    return edition, logistics, kitchen, users


@pytest.mark.asyncio
class TestParticipantRows:

    async def test_add_then_get_active(self, db_session, participant_repository, team_setup):
        edition, logistics, _, (alice, bob, _) = team_setup
        conversation = await ConversationRepository(db_session).create_with_participants(
            [alice.id], edition_id=edition.id, team_id=logistics.id, type=ConversationType.TEAM_GROUP
        )

        await participant_repository.add(conversation.id, bob.id)

        assert await participant_repository.active_user_ids(conversation.id) == {alice.id, bob.id}
        active = await participant_repository.get_active(conversation.id, bob.id)
        assert active is not None and active.is_active

    async def test_second_active_row_is_rejected(self, db_session, participant_repository, team_setup):
        """The partial unique index allows one active row per (conversation, user)."""
        edition, logistics, _, (alice, _, _) = team_setup
        conversation = await ConversationRepository(db_session).create_with_participants(
            [alice.id], edition_id=edition.id, team_id=logistics.id, type=ConversationType.TEAM_GROUP
        )

        with pytest.raises(DuplicateError):
            await participant_repository.add(conversation.id, alice.id)

        # savepoint rolled back, transaction still usable
        assert len(await participant_repository.list_rows(conversation.id, alice.id)) == 1

    async def test_left_row_allows_a_new_active_row(self, db_session, participant_repository, team_setup):
        edition, logistics, _, (alice, _, _) = team_setup
        conversation = await ConversationRepository(db_session).create_with_participants(
            [alice.id], edition_id=edition.id, team_id=logistics.id, type=ConversationType.TEAM_GROUP
        )
        conversation_id = conversation.id
        await participant_repository.mark_left(alice.id, edition_id=edition.id, team_id=logistics.id)
        # bulk UPDATE: reload rows already in the identity map
        db_session.expire_all()

        await participant_repository.add(conversation_id, alice.id)

        rows = await participant_repository.list_rows(conversation_id, alice.id)
        assert sorted(row.left_at is None for row in rows) == [False, True]

    async def test_reactivate_keeps_read_position(self, db_session, participant_repository, team_setup):
        edition, logistics, _, (alice, _, _) = team_setup
        conversation = await ConversationRepository(db_session).create_with_participants(
            [alice.id], edition_id=edition.id, team_id=logistics.id, type=ConversationType.TEAM_GROUP
        )
        participant = await participant_repository.get_active(conversation.id, alice.id)
        read_at = datetime(2026, 3, 2, 18, 30, tzinfo=timezone.utc)
        await participant_repository.mark_read(participant, read_at)
        await participant_repository.mark_left(alice.id, edition_id=edition.id, team_id=logistics.id)
        await db_session.refresh(participant)
        assert participant.left_at is not None

        await participant_repository.reactivate(participant)

        await db_session.refresh(participant)
        assert participant.left_at is None
        assert participant.last_read_at.replace(tzinfo=None) == read_at.replace(tzinfo=None)


@pytest.mark.asyncio
class TestMarkLeft:

    async def test_mark_left_is_scoped_to_the_team(self, db_session, participant_repository, team_setup):
        edition, logistics, kitchen, (alice, bob, _) = team_setup
        conversations = ConversationRepository(db_session)
        logistics_group = await conversations.create_with_participants(
            [alice.id, bob.id], edition_id=edition.id, team_id=logistics.id, type=ConversationType.TEAM_GROUP
        )
        kitchen_group = await conversations.create_with_participants(
            [alice.id], edition_id=edition.id, team_id=kitchen.id, type=ConversationType.TEAM_GROUP
        )

        marked = await participant_repository.mark_left(alice.id, edition_id=edition.id, team_id=logistics.id)

        assert marked == 1
        assert await participant_repository.active_user_ids(logistics_group.id) == {bob.id}
        assert await participant_repository.active_user_ids(kitchen_group.id) == {alice.id}

    async def test_mark_left_twice_marks_nothing_the_second_time(self, db_session, participant_repository, team_setup):
        edition, logistics, _, (alice, _, _) = team_setup
        await ConversationRepository(db_session).create_with_participants(
            [alice.id], edition_id=edition.id, team_id=logistics.id, type=ConversationType.TEAM_GROUP
        )

        assert await participant_repository.mark_left(alice.id, edition_id=edition.id, team_id=logistics.id) == 1
        assert await participant_repository.mark_left(alice.id, edition_id=edition.id, team_id=logistics.id) == 0

    async def test_mark_left_except(self, db_session, participant_repository, team_setup):
        edition, _, _, (alice, bob, carol) = team_setup
        conversation = await ConversationRepository(db_session).create_with_participants(
            [alice.id, bob.id, carol.id], edition_id=edition.id, type=ConversationType.ORGANIZERS_GROUP
        )

        left = await participant_repository.mark_left_except(conversation.id, {alice.id})

        assert left == 2
        assert await participant_repository.active_user_ids(conversation.id) == {alice.id}

    async def test_list_active_with_users_carries_pseudo(self, db_session, participant_repository, team_setup):
        edition, logistics, _, (alice, bob, _) = team_setup
        conversation = await ConversationRepository(db_session).create_with_participants(
            [alice.id, bob.id], edition_id=edition.id, team_id=logistics.id, type=ConversationType.TEAM_GROUP
        )
        await participant_repository.mark_left(bob.id, edition_id=edition.id, team_id=logistics.id)

        rows = await participant_repository.list_active_with_users([conversation.id])

        assert [(row.user_id, row.pseudo) for row in rows] == [(alice.id, alice.pseudo)]
        assert await participant_repository.list_active_with_users([]) == []
