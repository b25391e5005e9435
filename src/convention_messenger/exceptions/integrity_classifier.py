"""
Classification of SQLAlchemy IntegrityError into a `Violation`.

A Violation says *what* failed (kind, constraint, columns). It never leaves the
exceptions package: `mapper.py` turns it into the app-level errors of `base.py`.

The constraint name matters for the conversation tables, whose uniqueness rules
are partial unique indexes (one group per team, one private conversation per
participant set...). Postgres reports the index name directly; SQLite only lists
`table.column` pairs, so the name is looked up from the mapped table's indexes.
"""
import logging
import re
from dataclasses import dataclass, field
from enum import Enum

from sqlalchemy import UniqueConstraint
from sqlalchemy.exc import IntegrityError

logger = logging.getLogger(__name__)


class ViolationKind(str, Enum):
    UNIQUE = "unique"
    NOT_NULL = "not_null"
    FOREIGN_KEY = "foreign_key"
    CHECK = "check"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class Violation:
    kind: ViolationKind
    constraint: str | None = None
    columns: list[str] = field(default_factory=list)


# https://www.postgresql.org/docs/current/errcodes-appendix.html
PGCODE_KINDS = {
    "23505": ViolationKind.UNIQUE,
    "23502": ViolationKind.NOT_NULL,
    "23503": ViolationKind.FOREIGN_KEY,
    "23514": ViolationKind.CHECK,
}

MESSAGE_KINDS = (
    (ViolationKind.UNIQUE, ("unique constraint", "unique failed", "unique violation", "duplicate")),
    (ViolationKind.NOT_NULL, ("not null constraint", "not null", "null value in column")),
    (ViolationKind.FOREIGN_KEY, ("foreign key constraint", "foreign key", "is not present in table")),
    (ViolationKind.CHECK, ("check constraint", "check failed")),
)

_PG_NULL_COLUMN = re.compile(r'null value in column "(?P<col>[^"]+)"', re.IGNORECASE)
_PG_KEY_COLUMNS = re.compile(r'key \((?P<cols>[^)]+)\)=', re.IGNORECASE)
# 'UNIQUE constraint failed: conversations.edition_id, conversations.team_id'
_SQLITE_COLUMNS = re.compile(r'(?:UNIQUE|NOT NULL) constraint failed: (?P<cols>[\w.,\s]+)$', re.IGNORECASE)
# 'UNIQUE constraint failed: index 'uq_conversations_team_group''
_SQLITE_INDEX = re.compile(r"constraint failed: index '(?P<name>[^']+)'", re.IGNORECASE)


def _constraint_name(orig) -> str | None:
    # psycopg exposes orig.diag.constraint_name; asyncpg errors arrive wrapped by
    # SQLAlchemy's adapter with the driver exception as __cause__.
    diag = getattr(orig, "diag", None)
    if diag is not None and getattr(diag, "constraint_name", None):
        return diag.constraint_name
    cause = getattr(orig, "__cause__", None)
    return getattr(cause, "constraint_name", None)


def _postgres_columns(msg: str) -> list[str]:
    m = _PG_NULL_COLUMN.search(msg)
    if m:
        return [m.group("col")]
    m = _PG_KEY_COLUMNS.search(msg)
    if m:
        return [c.strip().strip('"') for c in m.group("cols").split(",")]
    return []


def _sqlite_table_columns(msg: str) -> tuple[str | None, list[str]]:
    m = _SQLITE_COLUMNS.search(msg)
    if not m:
        return None, []
    pairs = [c.strip().split(".") for c in m.group("cols").split(",")]
    table = pairs[0][0] if len(pairs[0]) == 2 else None
    return table, [p[-1] for p in pairs]


def unique_constraint_for(table, columns: list[str]) -> str | None:
    """Name of the unique index/constraint of `table` covering exactly `columns`."""
    wanted = set(columns)
    candidates = [idx for idx in table.indexes if idx.unique]
    candidates += [c for c in table.constraints if isinstance(c, UniqueConstraint)]
    for candidate in candidates:
        if {c.name for c in candidate.columns} == wanted:
            return candidate.name
    return None


def _kind_from_message(msg: str) -> ViolationKind:
    normalized = msg.lower()
    for kind, keywords in MESSAGE_KINDS:
        if any(keyword in normalized for keyword in keywords):
            return kind
    logger.warning("Unknown integrity error message encountered", extra={"message_snippet": msg[:200]})
    return ViolationKind.UNKNOWN


def classify_integrity_error(exc: IntegrityError, table=None) -> Violation:
    """
    Classify `exc`. `table` (the mapped Table the write targeted) lets SQLite
    unique violations be named after the index that rejected the row.
    """
    orig = exc.orig
    msg = str(orig) if orig is not None else str(exc)

    pgcode = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if pgcode:
        kind = PGCODE_KINDS.get(pgcode, ViolationKind.UNKNOWN)
        constraint = _constraint_name(orig)
        if kind is ViolationKind.UNKNOWN:
            logger.warning(
                "Unknown Postgres integrity error code encountered",
                extra={"pgcode": pgcode, "constraint_name": constraint},
            )
        return Violation(kind, constraint, _postgres_columns(msg))

    kind = _kind_from_message(msg)
    m = _SQLITE_INDEX.search(msg)
    if m:
        return Violation(kind, m.group("name"))

    table_name, columns = _sqlite_table_columns(msg)
    constraint = None
    if kind is ViolationKind.UNIQUE and table is not None and table_name == table.name:
        constraint = unique_constraint_for(table, columns)
    return Violation(kind, constraint, columns)
