import logging
from contextlib import asynccontextmanager

from sqlalchemy.exc import DBAPIError, IntegrityError, InterfaceError, OperationalError

from .base import DuplicateError, RepositoryError, StoreUnavailableError
from .integrity_classifier import Violation, ViolationKind, classify_integrity_error

logger = logging.getLogger(__name__)


def _message(violation: Violation, model: str) -> str:
    columns = ", ".join(violation.columns)
    if violation.kind is ViolationKind.UNIQUE:
        if columns:
            return f"{model} already exists for field(s): {columns}"
        if violation.constraint:
            return f"{model} already exists (constraint: {violation.constraint})"
        return f"{model} already exists (unique constraint)"
    if violation.kind is ViolationKind.NOT_NULL:
        return f"Missing required field(s): {columns} for {model}" if columns else f"Missing required field for {model}"
    if violation.kind is ViolationKind.FOREIGN_KEY:
        if columns:
            return f"{model} referenced entity not found for field(s): {columns}"
        return f"{model} foreign key constraint violated"
    if violation.kind is ViolationKind.CHECK:
        return f"{model} business rule violated (check constraint)."
    return f"{model} database integrity error."


def raise_mapped_integrity_error(exc: IntegrityError, model_name: str | None = None, table=None) -> None:
    """
    Raise the app-level error for `exc`: DuplicateError for unique violations,
    RepositoryError otherwise. `.fields` and `.constraint` are filled when known.
    """
    violation = classify_integrity_error(exc, table)
    model = model_name or "Record"
    extra = {"model": model, "fields": violation.columns, "constraint": violation.constraint}

    if violation.kind is ViolationKind.UNIQUE:
        # Concurrent provisioning hits this routinely; callers re-read.
        logger.info("mapper.duplicate_detected", extra=extra)
        raise DuplicateError(
            _message(violation, model), fields=violation.columns or None, constraint=violation.constraint
        ) from exc

    if violation.kind is ViolationKind.UNKNOWN:
        logger.warning("mapper.unknown_integrity_error", extra=extra)
        logger.debug("mapper.unknown_integrity_raw", extra={"model": model, "raw": str(exc.orig)})
    else:
        logger.info(f"mapper.{violation.kind.value}_violation", extra=extra)
    raise RepositoryError(
        _message(violation, model), fields=violation.columns or None, constraint=violation.constraint
    ) from exc


def _is_store_unavailable(exc: Exception) -> bool:
    if isinstance(exc, (OperationalError, InterfaceError)):
        return True
    return isinstance(exc, DBAPIError) and exc.connection_invalidated


@asynccontextmanager
async def db_error_handler(model_name: str | None = None, table=None):
    """
    Usage:
        async with db_error_handler(self.model.__name__, self.model.__table__):
            async with self.db.begin_nested():
                ... DB ops that may raise IntegrityError ...

    Maps driver errors to app-level exceptions. The session is not rolled back here:
    writes run inside a SAVEPOINT, so a failed INSERT only discards that savepoint and
    the caller's transaction stays usable (a conflict can be followed by a re-read).
    `table` names the unique index behind a duplicate on backends that don't report it.
    """
    try:
        yield
    except RepositoryError:
        raise
    except IntegrityError as exc:
        raise_mapped_integrity_error(exc, model_name, table)
    except Exception as exc:
        if _is_store_unavailable(exc):
            logger.error("mapper.store_unavailable", extra={"model": model_name, "error": type(exc).__name__})
            raise StoreUnavailableError() from exc
        logger.exception("Unexpected DB error for %s", model_name, extra={"model": model_name})
        raise RepositoryError(f"Failed to operate on {model_name or 'database'}") from exc
