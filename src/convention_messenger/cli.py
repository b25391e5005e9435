"""
Batch entry point.

    convention-messenger provision --edition <uuid> [--team <uuid>]
    convention-messenger organizers-group --edition <uuid>
    convention-messenger remove-volunteer --edition <uuid> --team <uuid> --user <uuid>

`provision` is the backfill job: it (re)creates every team conversation of an
edition and prints the report as JSON. Exit status 1 when some teams failed.
"""
import argparse
import asyncio
import json
import logging
import sys
import uuid
from uuid import UUID

from convention_messenger.config import get_settings
from convention_messenger.core.logging import set_request_id, setup_logging, stop_queue_logging
from convention_messenger.database.session import get_engine, get_session_factory
from convention_messenger.exceptions.base import RepositoryError
from convention_messenger.schemas.provisioning import ProvisioningScope
from convention_messenger.services import ConversationProvisioningService

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="convention-messenger", description="Messenger conversation provisioning")
    subparsers = parser.add_subparsers(dest="command", required=True)

    provision = subparsers.add_parser("provision", help="Create/repair team conversations of an edition")
    provision.add_argument("--edition", type=UUID, required=True, help="Edition id")
    provision.add_argument("--team", type=UUID, default=None, help="Only this team")

    organizers = subparsers.add_parser("organizers-group", help="Create/sync the organizers group conversation")
    organizers.add_argument("--edition", type=UUID, required=True, help="Edition id")

    remove = subparsers.add_parser("remove-volunteer", help="Mark a volunteer as left in a team's conversations")
    remove.add_argument("--edition", type=UUID, required=True, help="Edition id")
    remove.add_argument("--team", type=UUID, required=True, help="Team id")
    remove.add_argument("--user", type=UUID, required=True, help="Volunteer user id")

    return parser


async def run(args: argparse.Namespace) -> int:
    service = ConversationProvisioningService(get_session_factory())

    if args.command == "provision":
        report = await service.provision_all(ProvisioningScope(edition_id=args.edition, team_id=args.team))
        print(report.model_dump_json(indent=2))
        return 0 if report.ok else 1

    if args.command == "organizers-group":
        conversation_id = await service.ensure_organizers_group_conversation(args.edition)
        print(json.dumps({"conversation_id": str(conversation_id)}))
        return 0

    if args.command == "remove-volunteer":
        marked = await service.remove_volunteer_from_team_conversations(args.edition, args.team, args.user)
        print(json.dumps({"participations_left": marked}))
        return 0

    raise ValueError(f"Unknown command {args.command!r}")


async def _main(args: argparse.Namespace) -> int:
    try:
        return await run(args)
    except RepositoryError as exc:
        logger.error("cli.failed", extra={"command": args.command, "error_code": exc.error_code, "error": exc.message})
        print(json.dumps(exc.to_payload()), file=sys.stderr)
        return 2
    finally:
        await get_engine().dispose()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(get_settings())
    # correlate every log line of this run
    set_request_id(f"cli-{uuid.uuid4()}")
    try:
        return asyncio.run(_main(args))
    finally:
        stop_queue_logging()


if __name__ == "__main__":
    sys.exit(main())
