"""Database engine and session factory creation."""

from typing import Any, AsyncGenerator

from fastapi import Request
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from signify.config import Settings
from signify.db.tables import (
    documents_table,
    keystrokes_table,
    kudos_table,
    metadata,
    users_table,
    verifications_table,
)


def create_db_engine(settings: Settings) -> AsyncEngine:
    """Create async database engine.

    Handles SQLite and PostgreSQL with appropriate settings.
    """
    url = settings.database_url
    is_sqlite = url.startswith("sqlite")

    if is_sqlite:
        engine_kwargs: dict[str, Any] = {
            "echo": settings.database_echo,
            # Share one connection so in-memory databases survive across sessions
            "poolclass": StaticPool,
            "connect_args": {"check_same_thread": False},
        }
    else:
        engine_kwargs = {
            "echo": settings.database_echo,
            "pool_pre_ping": True,
            "pool_size": settings.database_pool_size,
            "max_overflow": 10,
        }

    engine = create_async_engine(url, **engine_kwargs)

    if is_sqlite:
        # SQLite leaves foreign keys (and so ON DELETE CASCADE) off by default
        @event.listens_for(engine.sync_engine, "connect")
        def _enable_foreign_keys(dbapi_connection, _record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create session factory for dependency injection."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def init_models(engine: AsyncEngine) -> None:
    """Create all tables that do not exist yet."""
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)


async def get_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency yielding a session from the app's factory."""
    session_factory: async_sessionmaker[AsyncSession] = request.app.state.session_factory
    async with session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


__all__ = [
    "create_db_engine",
    "create_session_factory",
    "documents_table",
    "get_session",
    "init_models",
    "keystrokes_table",
    "kudos_table",
    "metadata",
    "users_table",
    "verifications_table",
]
