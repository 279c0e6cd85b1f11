"""Database engine and session factory construction."""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from hcm_webhooks.config.settings import Settings
from hcm_webhooks.db.models import Base


def create_engine(settings: Settings) -> AsyncEngine:
    """Create the async engine for the configured database.

    In-memory SQLite needs a single shared connection, otherwise every
    session would see its own empty database.

    Args:
        settings: Application settings

    Returns:
        Configured async engine
    """
    kwargs: dict = {"echo": settings.DATABASE_ECHO}
    if settings.DATABASE_URL.startswith("sqlite") and ":memory:" in settings.DATABASE_URL:
        kwargs["poolclass"] = StaticPool
        kwargs["connect_args"] = {"check_same_thread": False}
    elif not settings.DATABASE_URL.startswith("sqlite"):
        kwargs["pool_pre_ping"] = True
    return create_async_engine(settings.DATABASE_URL, **kwargs)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create the session factory shared by stores and the pipeline."""
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_db(engine: AsyncEngine, *, create_tables: bool = False) -> None:
    """Verify connectivity and optionally create tables.

    Called during application startup so the pool is ready before
    accepting requests. Deployments that run migrations pass
    ``create_tables=False``.
    """
    async with engine.begin() as conn:
        await conn.execute(text("SELECT 1"))
        if create_tables:
            await conn.run_sync(Base.metadata.create_all)


async def close_db(engine: AsyncEngine) -> None:
    """Release all pooled connections."""
    await engine.dispose()
