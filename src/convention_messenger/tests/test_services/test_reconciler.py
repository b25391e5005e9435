import uuid
from datetime import datetime, timedelta, timezone

import pytest

from convention_messenger.exceptions.base import DuplicateError
from convention_messenger.models import ConversationParticipant, ConversationType
from convention_messenger.repositories import ConversationRepository, ParticipantRepository
from convention_messenger.services.reconciler import (
    MembershipReconciler,
    ReconcileAction,
    pick_participant,
    plan_reconciliation,
)

T0 = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


def row(joined_at=T0, left_at=None) -> ConversationParticipant:
    return ConversationParticipant(
        id=uuid.uuid4(), conversation_id=uuid.uuid4(), user_id=uuid.uuid4(), joined_at=joined_at, left_at=left_at
    )


class TestPlanReconciliation:

    def test_absent_active_left(self):
        assert plan_reconciliation(None) is ReconcileAction.CREATED
        assert plan_reconciliation(row()) is ReconcileAction.UNCHANGED
        assert plan_reconciliation(row(left_at=T0)) is ReconcileAction.REACTIVATED

    def test_pick_prefers_active_row(self):
        old_left = row(joined_at=T0, left_at=T0 + timedelta(hours=1))
        active = row(joined_at=T0 - timedelta(days=1))
        assert pick_participant([old_left, active]) is active

    def test_pick_latest_joined_when_all_left(self):
        first = row(joined_at=T0, left_at=T0 + timedelta(hours=1))
        second = row(joined_at=T0 + timedelta(hours=2), left_at=T0 + timedelta(hours=3))
        assert pick_participant([second, first]) is second
        assert pick_participant([]) is None


@pytest.fixture
async def conversation_id(seed, session_maker):
    edition = await seed.edition()
    team = await seed.team(edition)
    async with session_maker() as session:
        async with session.begin():
            conversation = await ConversationRepository(session).create_with_participants(
                [], edition_id=edition.id, team_id=team.id, type=ConversationType.TEAM_GROUP
            )
    return conversation.id


@pytest.mark.asyncio
class TestMembershipReconciler:

    async def test_is_idempotent(self, seed, db_session, conversation_id):
        user = await seed.user()
        reconciler = MembershipReconciler(db_session)

        assert await reconciler.ensure_active_participant(conversation_id, user.id) is ReconcileAction.CREATED
        assert await reconciler.ensure_active_participant(conversation_id, user.id) is ReconcileAction.UNCHANGED
        assert len(await ParticipantRepository(db_session).list_rows(conversation_id, user.id)) == 1

    async def test_reactivation_reuses_the_row_and_read_position(self, seed, db_session, conversation_id):
        """
        Behavior:
            - A participant who left is reactivated in place: same row id, no new row,
              `last_read_at` untouched (their unread state survives the leave/rejoin).
        """
        user = await seed.user()
        participants = ParticipantRepository(db_session)
        reconciler = MembershipReconciler(db_session)
        await reconciler.ensure_active_participant(conversation_id, user.id)
        original = await participants.get_active(conversation_id, user.id)
        original_id = original.id
        await participants.mark_read(original, T0)
        await participants.mark_left_except(conversation_id, set())
        await db_session.refresh(original)

        action = await reconciler.ensure_active_participant(conversation_id, user.id)

        rows = await participants.list_rows(conversation_id, user.id)
        assert action is ReconcileAction.REACTIVATED
        assert [r.id for r in rows] == [original_id]
        assert rows[0].left_at is None
        assert rows[0].last_read_at.replace(tzinfo=None) == T0.replace(tzinfo=None)

    async def test_conflict_counts_as_unchanged(self, seed, db_session, conversation_id, monkeypatch):
        user = await seed.user()

        async def _lost_race(self, conversation_id, user_id):
            raise DuplicateError("ConversationParticipant already exists")

        monkeypatch.setattr(ParticipantRepository, "add", _lost_race)

        action = await MembershipReconciler(db_session).ensure_active_participant(conversation_id, user.id)

        assert action is ReconcileAction.UNCHANGED

    async def test_ensure_many_reports_per_user(self, seed, db_session, conversation_id):
        alice, bob = await seed.user(), await seed.user()
        reconciler = MembershipReconciler(db_session)
        await reconciler.ensure_active_participant(conversation_id, alice.id)

        actions = await reconciler.ensure_active_participants(conversation_id, [alice.id, bob.id])

        assert actions == [ReconcileAction.UNCHANGED, ReconcileAction.CREATED]
