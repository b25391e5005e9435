"""
Core pytest configuration for the entire test suite.

This module provides only the essential database setup and core utilities
needed across ALL types of tests (repositories, services, API, CLI).

Domain-specific fixtures (seeded editions, teams, volunteers, organizers...) live in:
- tests/test_fixtures/repository_fixtures.py

Database strategy:
- Every test gets its own SQLite file (aiosqlite) under pytest's `tmp_path`, with the
  schema created from `Base.metadata`.
- Services open their own sessions/transactions from a session factory, so tests do
  NOT wrap everything in one rolled-back outer transaction: data is committed for real
  and thrown away with the file.
"""

from __future__ import annotations

# -------------------------------
# Standard library imports
# -------------------------------
import os
import logging
from typing import AsyncGenerator

# -------------------------------
# Environment defaults (IMPORTANT)
# -------------------------------
# Settings are cached on first use; set the test defaults before any
# convention_messenger module is imported.
os.environ.setdefault("TESTING", "true")
os.environ.setdefault("ENV", "testing")
os.environ.setdefault("DATABASE_URL_OVERRIDE", "sqlite+aiosqlite:///./test_messenger.db")
os.environ.setdefault("LOG_TO_STDOUT", "true")
os.environ.setdefault("LOG_FORMAT", "text")
os.environ.setdefault("LOG_LEVEL", "INFO")

# -------------------------------
# Early logging tuning
# -------------------------------
# Silence noisy third-party loggers before importing modules that might initialize them.
NOISY_LOGGERS = (
    "faker",
    "faker.factory",
    "sqlalchemy",
    "sqlalchemy.engine",
    "sqlalchemy.engine.Engine",
    "aiosqlite",
    "asyncio",
    "httpx",
)
for _name in NOISY_LOGGERS:
    logging.getLogger(_name).setLevel(logging.WARNING)

# -------------------------------
# Third-party / project imports
# -------------------------------
import pytest
from pytest import FixtureRequest
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from convention_messenger.config import get_settings
from convention_messenger.core.logging.builder import setup_logging, stop_queue_logging
from convention_messenger.database.base import Base
from convention_messenger.database.session import build_engine
from convention_messenger import models  # noqa: F401 – registers every table on Base.metadata

settings = get_settings()
logger = logging.getLogger(__name__)


# ------------------------------------------------------------------------------------------------
# LOGGING
# ------------------------------------------------------------------------------------------------

# `autouse=True`: installed for the whole session without being requested by tests.
@pytest.fixture(scope="session", autouse=True)
def configure_logging(request: FixtureRequest):
    """
    Install application logging for the entire test session, then re-attach pytest's
    capture handler (dictConfig removes it) so `caplog.records` keeps working.
    """
    setup_logging(settings)

    caplog_plugin = request.config.pluginmanager.getplugin("logging-plugin")
    handler = getattr(caplog_plugin, "caplog_handler", None)
    if handler is not None:
        logging.getLogger().addHandler(handler)

    yield

    stop_queue_logging()


# ------------------------------------------------------------------------------------------------
# DATABASE FIXTURES
# ------------------------------------------------------------------------------------------------


@pytest.fixture()
async def async_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """A fresh file-backed SQLite database with the full schema."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'messenger.db'}")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture()
def session_maker(async_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """The factory handed to services (and to the API through dependency overrides)."""
    return async_sessionmaker(bind=async_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture()
async def db_session(session_maker: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncSession, None]:
    """
    A plain session for repository tests. Repositories never commit; whatever the
    test leaves uncommitted is rolled back on close.
    """
    async with session_maker() as session:
        yield session
        await session.rollback()


# Domain fixtures, registered globally (see test_fixtures/repository_fixtures.py)
from .test_fixtures.repository_fixtures import (  # noqa: E402,F401
    seed,
    base_repo,
    participant_repository,
    membership_repository,
    provisioning_service,
)
