"""Database engine and session management."""

import logging
from collections.abc import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from backend.app.config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()


def engine_connect_args(database_url: str) -> dict:
    """Driver options for ``database_url``.

    On PostgreSQL, waits for a preset row lock are bounded so a stuck toggle
    fails with a driver error instead of holding the request open.
    """
    if make_url(database_url).get_backend_name() != "postgresql":
        return {}
    return {
        "server_settings": {
            "application_name": settings.app_name,
            "lock_timeout": f"{settings.db_lock_timeout_ms}ms",
        }
    }


engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    poolclass=NullPool,  # Use NullPool for async
    connect_args=engine_connect_args(settings.database_url),
)

# Objects stay loaded after commit so services can build responses from them
async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def init_db() -> None:
    """Check that the preset database is reachable."""
    logger.info(f"Connecting to {engine.dialect.name} database...")
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        logger.info("Database connection established")
    except Exception as e:
        logger.error(f"Failed to connect to database: {e}")
        raise


async def close_db() -> None:
    """Dispose of the engine."""
    await engine.dispose()
    logger.info("Database connection closed")


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session.

    Mutating services commit their own unit of work; anything left
    uncommitted when the request fails is rolled back.
    """
    async with async_session_maker() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
