from functools import lru_cache

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    create_async_engine,
    async_sessionmaker,
)

from convention_messenger.config import get_settings


def enable_sqlite_savepoints(engine: AsyncEngine) -> None:
    """
    Make SAVEPOINT / nested transactions reliable on pysqlite-based drivers (aiosqlite).

    The driver defers BEGIN until the first DML statement, so a SAVEPOINT issued before
    any write opens (and its RELEASE commits) the outer transaction. Disabling the driver's
    own transaction handling and emitting BEGIN ourselves is the recipe from the SQLAlchemy
    SQLite dialect documentation.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")


def build_engine(url: str, *, echo: bool = False, **kwargs) -> AsyncEngine:
    engine = create_async_engine(url, echo=echo, future=True, **kwargs)
    if engine.dialect.name == "sqlite":
        enable_sqlite_savepoints(engine)
    return engine


@lru_cache()
def get_engine() -> AsyncEngine:
    """Process-wide engine, created on first use so importing this module never connects."""
    settings = get_settings()
    kwargs = {}
    if not settings.DATABASE_URL.startswith("sqlite"):
        kwargs["pool_pre_ping"] = True  # connection health checks
    return build_engine(settings.DATABASE_URL, echo=settings.SQLALCHEMY_ECHO, **kwargs)


@lru_cache()
def get_session_factory() -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=get_engine(),
        class_=AsyncSession,
        expire_on_commit=False,
    )


