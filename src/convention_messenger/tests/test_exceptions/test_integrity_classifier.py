from types import SimpleNamespace

import pytest
from sqlalchemy.exc import IntegrityError

from convention_messenger.exceptions.base import DuplicateError, RepositoryError
from convention_messenger.exceptions.integrity_classifier import ViolationKind, classify_integrity_error
from convention_messenger.exceptions.mapper import raise_mapped_integrity_error
from convention_messenger.models import Conversation, ConversationParticipant, ConversationType
from convention_messenger.repositories import ConversationRepository


class FakePostgresError(Exception):
    def __init__(self, message, pgcode, constraint_name=None):
        super().__init__(message)
        self.pgcode = pgcode
        self.diag = SimpleNamespace(constraint_name=constraint_name)


def integrity_error(orig) -> IntegrityError:
    return IntegrityError("INSERT ...", {}, orig)


class TestClassifyIntegrityError:

    def test_postgres_unique_violation_carries_index_and_columns(self):
        orig = FakePostgresError(
            'duplicate key value violates unique constraint "uq_conversations_team_group"\n'
            "DETAIL:  Key (edition_id, team_id)=(1, 2) already exists.",
            "23505",
            "uq_conversations_team_group",
        )

        violation = classify_integrity_error(integrity_error(orig))

        assert violation.kind is ViolationKind.UNIQUE
        assert violation.constraint == "uq_conversations_team_group"
        assert violation.columns == ["edition_id", "team_id"]

    def test_postgres_not_null(self):
        orig = FakePostgresError('null value in column "edition_id" violates not-null constraint', "23502")

        violation = classify_integrity_error(integrity_error(orig))

        assert (violation.kind, violation.columns) == (ViolationKind.NOT_NULL, ["edition_id"])

    def test_sqlite_unique_violation_is_named_from_the_table(self):
        orig = Exception("UNIQUE constraint failed: conversation_participants.conversation_id, conversation_participants.user_id")

        violation = classify_integrity_error(integrity_error(orig), ConversationParticipant.__table__)

        assert violation.kind is ViolationKind.UNIQUE
        assert violation.constraint == "uq_conversation_participants_active"
        assert violation.columns == ["conversation_id", "user_id"]

    def test_sqlite_without_table_has_no_constraint_name(self):
        orig = Exception("UNIQUE constraint failed: conversations.edition_id")

        violation = classify_integrity_error(integrity_error(orig))

        assert violation.constraint is None
        assert violation.columns == ["edition_id"]

    def test_sqlite_other_table_is_not_resolved(self):
        orig = Exception("UNIQUE constraint failed: conversations.edition_id")

        assert classify_integrity_error(integrity_error(orig), ConversationParticipant.__table__).constraint is None

    def test_foreign_key_and_unknown(self):
        assert classify_integrity_error(integrity_error(Exception("FOREIGN KEY constraint failed"))).kind is ViolationKind.FOREIGN_KEY
        assert classify_integrity_error(integrity_error(Exception("something odd"))).kind is ViolationKind.UNKNOWN


class TestRaiseMapped:

    def test_unique_becomes_duplicate(self):
        orig = Exception("UNIQUE constraint failed: conversations.edition_id")

        with pytest.raises(DuplicateError) as exc_info:
            raise_mapped_integrity_error(integrity_error(orig), "Conversation", Conversation.__table__)

        assert exc_info.value.fields == ["edition_id"]
        assert exc_info.value.constraint == "uq_conversations_organizers_group"
        assert exc_info.value.http_status() == 409

    def test_other_violations_stay_repository_errors(self):
        orig = Exception("NOT NULL constraint failed: conversations.type")

        with pytest.raises(RepositoryError) as exc_info:
            raise_mapped_integrity_error(integrity_error(orig), "Conversation")

        assert not isinstance(exc_info.value, DuplicateError)
        assert exc_info.value.fields == ["type"]
        assert "Missing required" in exc_info.value.message


@pytest.mark.asyncio
async def test_second_team_group_is_rejected_by_its_index(seed, db_session):
    edition = await seed.edition()
    team = await seed.team(edition)
    conversations = ConversationRepository(db_session)
    await conversations.create(edition_id=edition.id, team_id=team.id, type=ConversationType.TEAM_GROUP)

    with pytest.raises(DuplicateError) as exc_info:
        await conversations.create(edition_id=edition.id, team_id=team.id, type=ConversationType.TEAM_GROUP)

    assert exc_info.value.constraint == "uq_conversations_team_group"
    # the savepoint was discarded; the session is still usable
    assert await conversations.find_team_group(edition.id, team.id) is not None
