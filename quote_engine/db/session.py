"""Database engine and session factory construction."""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from quote_engine.config import Settings

SessionFactory = async_sessionmaker[AsyncSession]


def create_engine_from_settings(settings: Settings) -> AsyncEngine:
    """
    Create the async engine with a bounded connection pool.

    SQLite (used in tests) does not take pool sizing arguments.
    """
    kwargs = {"echo": settings.db_echo}
    if not settings.database_url.startswith("sqlite"):
        kwargs.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_timeout=settings.db_pool_timeout_seconds,
            pool_pre_ping=True,
        )
    return create_async_engine(settings.database_url, **kwargs)


def create_session_factory(engine: AsyncEngine) -> SessionFactory:
    """Create a session factory bound to the engine."""
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
