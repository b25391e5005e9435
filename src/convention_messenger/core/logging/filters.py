"""
Logging filters.

- RequestIdFilter stamps every LogRecord with the correlation id of the current
  logical flow: the HTTP request (set by RequestIDMiddleware) or a provisioning
  run started from the CLI. The id lives in a ContextVar so it follows awaits.
- RedactFilter masks sensitive attributes passed through `extra=`.

Records without an id get the sentinel "-" so `%(request_id)s` never KeyErrors.
"""

import logging
from logging import LogRecord
import contextvars

_request_id_ctx: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "request_id", default=None
)


def set_request_id(request_id: str | None):
    """
    Set the request id in the current context and return the token to allow reset.
    """
    return _request_id_ctx.set(request_id)


def reset_request_id(token):
    """
    Reset the contextvar to the previously saved token returned by set_request_id().
    """
    _request_id_ctx.reset(token)


def get_request_id() -> str | None:
    return _request_id_ctx.get()


class RequestIdFilter(logging.Filter):
    """
    Guarantees every LogRecord has a `request_id` attribute:
    explicit `extra={"request_id": ...}` first, then the contextvar, then "-".
    Never drops a record.
    """

    def filter(self, record: LogRecord) -> bool:
        record.request_id = (
            getattr(record, "request_id", None) or get_request_id() or "-"
        )
        return True


class RedactFilter(logging.Filter):
    """Mask record attributes whose name is considered sensitive (credentials, contact data)."""

    SENSITIVE = {
        "password", "secret", "token", "access_token", "refresh_token",
        "authorization", "email", "phone",
    }
    MASK = "***REDACTED***"

    def filter(self, record: LogRecord) -> bool:
        for key in list(record.__dict__.keys()):
            if key.lower() in self.SENSITIVE:
                record.__dict__[key] = self.MASK
        return True
