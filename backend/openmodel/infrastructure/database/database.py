"""
Database configuration and session management for OpenModel.
"""

from typing import AsyncGenerator

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

from openmodel.core.config import DatabaseSettings, get_settings
from openmodel.infrastructure.logging import get_logger

logger = get_logger(__name__)

_engine: AsyncEngine | None = None
_session_maker: async_sessionmaker[AsyncSession] | None = None


class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


def _configure_sqlite_connection(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()
    # The driver would otherwise defer BEGIN past the first SAVEPOINT.
    dbapi_connection.isolation_level = None


def _begin_sqlite_transaction(conn) -> None:
    conn.exec_driver_sql("BEGIN")


def create_engine_from_settings(settings: DatabaseSettings | None = None) -> AsyncEngine:
    """
    Create an async engine for the configured store.

    SQLite URLs get foreign key enforcement and an explicit BEGIN so
    savepoints nest inside the outer transaction; in-memory SQLite shares
    a single connection so every session sees the same database.
    """
    settings = settings or get_settings().database
    url = settings.url

    if url.startswith("sqlite"):
        kwargs = {"echo": settings.echo}
        if ":memory:" in url or url.rstrip("/").endswith("aiosqlite:"):
            kwargs["poolclass"] = StaticPool
            kwargs["connect_args"] = {"check_same_thread": False}
        engine = create_async_engine(url, **kwargs)
        event.listen(engine.sync_engine, "connect", _configure_sqlite_connection)
        event.listen(engine.sync_engine, "begin", _begin_sqlite_transaction)
    else:
        engine = create_async_engine(
            url,
            echo=settings.echo,
            pool_size=settings.pool_size,
            max_overflow=settings.max_overflow,
            pool_pre_ping=True,
        )

    logger.info(f"Database engine created for {engine.url.render_as_string(hide_password=True)}")
    return engine


def create_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create the session factory used by the modeling service."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def init_models(engine: AsyncEngine) -> None:
    """Create all tables that do not exist yet."""
    import openmodel.storage.orm  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info(f"Initialized {len(Base.metadata.tables)} tables")


def get_session_maker() -> async_sessionmaker[AsyncSession]:
    """Get the process-wide session factory, creating the engine on first use."""
    global _engine, _session_maker

    if _session_maker is None:
        _engine = create_engine_from_settings()
        _session_maker = create_session_maker(_engine)
    return _session_maker


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Get database session."""
    async with get_session_maker()() as session:
        yield session


async def dispose_engine() -> None:
    """Dispose the process-wide engine."""
    global _engine, _session_maker

    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_maker = None
