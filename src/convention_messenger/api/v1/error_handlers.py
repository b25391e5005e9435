"""
FastAPI exception handlers mapping app-level exceptions to HTTP responses.

Services and repositories raise convention_messenger.exceptions.* errors; the
payload (`to_payload()`) and status (`http_status()`) are defined on the
exception classes, so these handlers stay tiny.
"""

from fastapi import Request
from fastapi.responses import JSONResponse
import logging
from convention_messenger.exceptions.base import (
    RepositoryError,
    DuplicateError,
    InvalidFieldError,
    NotFoundError,
    AccessDeniedError,
    StoreUnavailableError,
)

logger = logging.getLogger(__name__)


async def duplicate_error_handler(request: Request, exc: DuplicateError) -> JSONResponse:
    logger.info("DuplicateError for %s %s: fields=%s", request.method, request.url.path, exc.fields)
    return JSONResponse(status_code=exc.http_status(), content=exc.to_payload())


async def invalid_field_handler(request: Request, exc: InvalidFieldError) -> JSONResponse:
    logger.info("InvalidFieldError for %s %s: fields=%s", request.method, request.url.path, exc.fields)
    return JSONResponse(status_code=exc.http_status(), content=exc.to_payload())


async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    logger.info("NotFoundError for %s %s: fields=%s", request.method, request.url.path, exc.fields)
    return JSONResponse(status_code=exc.http_status(), content=exc.to_payload())


async def access_denied_handler(request: Request, exc: AccessDeniedError) -> JSONResponse:
    logger.info("AccessDeniedError for %s %s", request.method, request.url.path)
    return JSONResponse(status_code=exc.http_status(), content=exc.to_payload())


async def store_unavailable_handler(request: Request, exc: StoreUnavailableError) -> JSONResponse:
    logger.error("StoreUnavailableError for %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=exc.http_status(),
        content=exc.to_payload(),
        headers={"Retry-After": "5"},
    )


async def repository_error_handler(request: Request, exc: RepositoryError) -> JSONResponse:
    """Fallback for other repository errors (400 unless the error code says otherwise)."""
    logger.warning("RepositoryError for %s %s: %s", request.method, request.url.path, str(exc))
    return JSONResponse(status_code=exc.http_status(), content=exc.to_payload())


def register_exception_handlers(app):
    app.add_exception_handler(DuplicateError, duplicate_error_handler)
    app.add_exception_handler(InvalidFieldError, invalid_field_handler)
    app.add_exception_handler(NotFoundError, not_found_handler)
    app.add_exception_handler(AccessDeniedError, access_denied_handler)
    app.add_exception_handler(StoreUnavailableError, store_unavailable_handler)
    app.add_exception_handler(RepositoryError, repository_error_handler)
