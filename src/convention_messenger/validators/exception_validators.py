"""
Pre-write checks used by BaseRepository.create().

They turn the most common caller mistakes (unknown kwargs, missing NOT NULL
columns, values already taken by a unique constraint) into app-level errors
before the INSERT reaches the database.
"""
from typing import Iterable

from sqlalchemy import UniqueConstraint, and_, inspect as sa_inspect
from sqlalchemy.sql import select


def find_unknown_model_kwargs(model, kwargs: dict) -> list[str]:
    """
    Return the kwarg keys that are not mapped attributes (columns or relationships) of `model`.
    """
    mapper = sa_inspect(model)
    allowed = {attr.key for attr in mapper.attrs}
    return [k for k in kwargs.keys() if k not in allowed]


def get_required_columns(model) -> list[str]:
    """
    Columns that are NOT NULL, have no client/server default and are not autoincrement PKs.
    """
    cols = []
    for col in model.__table__.columns:
        has_default = col.default is not None or col.server_default is not None
        is_auto_pk = col.autoincrement is True and col.primary_key
        if not col.nullable and not has_default and not is_auto_pk:
            cols.append(col.name)
    return cols


def _is_partial(index) -> bool:
    # Partial indexes only constrain rows matching their WHERE clause; a plain
    # equality pre-check on their columns would report false conflicts.
    for dialect in ("postgresql", "sqlite"):
        options = index.dialect_options.get(dialect)
        if options is not None and options.get("where") is not None:
            return True
    return False


def get_unique_column_sets(model) -> list[Iterable[str]]:
    """
    Return the unconditional unique column sets of `model`:
      - Column(unique=True)
      - UniqueConstraint in the table
      - Index(..., unique=True) without a WHERE clause
    """
    unique_sets = []

    for col in model.__table__.columns:
        if col.unique:
            unique_sets.append([col.name])

    for constraint in model.__table__.constraints:
        if isinstance(constraint, UniqueConstraint):
            unique_sets.append([c.name for c in constraint.columns])

    for idx in model.__table__.indexes:
        if idx.unique and not _is_partial(idx):
            unique_sets.append([c.name for c in idx.columns])

    return unique_sets


async def find_unique_conflicts(db, model, kwargs: dict) -> set[str]:
    """
    Run pre-insert queries to detect existing rows that would violate unique constraints.
    Returns the set of conflicting column names (best-effort; the database stays the
    source of truth and IntegrityError is still mapped afterwards).
    """
    conflicts = set()

    for cols in get_unique_column_sets(model):
        # only check sets fully provided with non-null values (NULLs never collide)
        if not all(kwargs.get(c) is not None for c in cols):
            continue

        conditions = [getattr(model, c) == kwargs[c] for c in cols]
        res = await db.execute(select(model).where(and_(*conditions)).limit(1))
        if res.scalars().first() is not None:
            conflicts.update(cols)

    return conflicts
