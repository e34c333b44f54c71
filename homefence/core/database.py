"""Async engine and session handling.

PostgreSQL through asyncpg in production; SQLite through aiosqlite for
development and tests. ``init_db()`` runs once in the application lifespan
and creates missing tables; schema changes go through Alembic.

Unit of work: one ``get_session()`` block is one transaction. It commits
when the block exits normally and rolls back when it raises.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from homefence.core.config import get_settings
from homefence.core.logging import get_logger, sanitize_error

logger = get_logger(__name__)

# Seconds a SQLite writer waits for the file lock
SQLITE_BUSY_TIMEOUT = 30


class Base(DeclarativeBase):
    pass


_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def get_engine() -> AsyncEngine:
    if _engine is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    if _session_factory is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")
    return _session_factory


def _use_immediate_transactions(engine: AsyncEngine) -> None:
    """Start every SQLite transaction with BEGIN IMMEDIATE.

    SQLite ignores SELECT ... FOR UPDATE, so writers take the file lock up front
    and queue on the busy timeout instead of failing on lock upgrade.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):  # type: ignore[no-untyped-def]
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):  # type: ignore[no-untyped-def]
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def _create_engine(url: str, echo: bool) -> AsyncEngine:
    if url.startswith("sqlite"):
        engine = create_async_engine(
            url, echo=echo, connect_args={"timeout": SQLITE_BUSY_TIMEOUT}
        )
        _use_immediate_transactions(engine)
        return engine
    return create_async_engine(
        url,
        echo=echo,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,
    )


async def init_db() -> None:
    """Create the engine and session factory, then any missing tables."""
    global _engine, _session_factory  # noqa: PLW0603

    settings = get_settings()
    _engine = _create_engine(settings.database_url, settings.debug)
    _session_factory = async_sessionmaker(_engine, expire_on_commit=False, autoflush=False)

    # Registers every table on Base.metadata
    import homefence.models  # noqa: F401

    async with _engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info(f"Database ready ({_engine.dialect.name})")


async def close_db() -> None:
    """Dispose of the engine. Safe to call when init_db() never ran."""
    global _engine, _session_factory  # noqa: PLW0603

    engine, _engine, _session_factory = _engine, None, None
    if engine is not None:
        await engine.dispose()


@asynccontextmanager
async def get_session() -> AsyncGenerator[AsyncSession]:
    """Open a session whose block is one transaction.

    Usage:
        async with get_session() as session:
            member = await MemberRepository(session).get_by_id(member_id)

    Raises:
        RuntimeError: If init_db() has not run.
    """
    async with get_session_factory()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_db() -> AsyncGenerator[AsyncSession]:
    """FastAPI dependency: one transaction per request."""
    async with get_session() as session:
        yield session


async def check_database() -> bool:
    """Return True if the database answers ``SELECT 1``."""
    try:
        async with get_session() as session:
            await session.execute(text("SELECT 1"))
    except Exception as e:
        logger.warning(f"Database check failed: {sanitize_error(e)}")
        return False
    return True
