import json
import uuid

import pytest

from convention_messenger import cli
from convention_messenger.exceptions.base import RepositoryError
from convention_messenger.models import ConversationType
from convention_messenger.services import ConversationProvisioningService


@pytest.fixture
def wired(monkeypatch, async_engine, session_maker):
    """Point the CLI at the per-test database."""
    monkeypatch.setattr(cli, "get_session_factory", lambda: session_maker)
    monkeypatch.setattr(cli, "get_engine", lambda: async_engine)


@pytest.fixture
async def team(seed):
    edition = await seed.edition()
    logistics = await seed.team(edition, "Logistics")
    member = await seed.volunteer(edition, logistics)
    await seed.volunteer(edition, logistics, is_leader=True)
    return edition, logistics, member


class TestParser:

    def test_provision_arguments(self):
        edition_id, team_id = uuid.uuid4(), uuid.uuid4()

        args = cli.build_parser().parse_args(["provision", "--edition", str(edition_id), "--team", str(team_id)])

        assert (args.command, args.edition, args.team) == ("provision", edition_id, team_id)

    def test_team_is_optional_for_provision(self):
        args = cli.build_parser().parse_args(["provision", "--edition", str(uuid.uuid4())])
        assert args.team is None

    @pytest.mark.parametrize(
        "argv",
        [
            [],
            ["provision"],
            ["provision", "--edition", "not-a-uuid"],
            ["remove-volunteer", "--edition", str(uuid.uuid4()), "--team", str(uuid.uuid4())],
        ],
    )
    def test_invalid_invocations_exit(self, argv):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args(argv)


@pytest.mark.asyncio
class TestCommands:

    async def test_provision_prints_the_report(self, wired, team, capsys):
        edition, _, _ = team
        args = cli.build_parser().parse_args(["provision", "--edition", str(edition.id)])

        assert await cli.run(args) == 0

        report = json.loads(capsys.readouterr().out)
        assert report["teams_processed"] == 1
        # group + the member's private conversation with the leader
        assert report["conversations_created"] == 2
        assert report["failed_teams"] == []

    async def test_provision_exit_status_reflects_failed_teams(self, wired, team, capsys, monkeypatch):
        edition, logistics, _ = team

        async def explode(self, session, edition_id, roster):
            raise RepositoryError("team exploded")

        monkeypatch.setattr(ConversationProvisioningService, "_provision_team", explode)
        args = cli.build_parser().parse_args(["provision", "--edition", str(edition.id)])

        assert await cli.run(args) == 1
        assert json.loads(capsys.readouterr().out)["failed_teams"] == [str(logistics.id)]

    async def test_organizers_group(self, wired, seed, capsys):
        edition = await seed.edition()
        organizer = await seed.organizer(edition)
        args = cli.build_parser().parse_args(["organizers-group", "--edition", str(edition.id)])

        assert await cli.run(args) == 0

        conversation_id = uuid.UUID(json.loads(capsys.readouterr().out)["conversation_id"])
        assert await seed.conversation_state(edition.id) == {
            (ConversationType.ORGANIZERS_GROUP, None, frozenset({organizer.id}))
        }
        assert await seed.count_conversations(id=conversation_id) == 1

    async def test_remove_volunteer(self, wired, team, capsys):
        edition, logistics, member = team
        await cli.run(cli.build_parser().parse_args(["provision", "--edition", str(edition.id)]))
        capsys.readouterr()
        args = cli.build_parser().parse_args(
            ["remove-volunteer", "--edition", str(edition.id), "--team", str(logistics.id), "--user", str(member.id)]
        )

        assert await cli.run(args) == 0
        assert json.loads(capsys.readouterr().out) == {"participations_left": 2}

    async def test_repository_errors_exit_with_2(self, wired, capsys):
        args = cli.build_parser().parse_args(["provision", "--edition", str(uuid.uuid4())])

        assert await cli._main(args) == 2

        assert json.loads(capsys.readouterr().err)["code"] == "not_found"
