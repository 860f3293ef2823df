"""Shared database utilities for worker tasks.

Provides a singleton connection pool for synchronous database operations
in Celery tasks.
"""

import json
import logging
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Generator

from sqlalchemy import DateTime, bindparam, create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.pool import QueuePool

from backend.app.config import get_settings
from backend.app.models.base import JSONType

logger = logging.getLogger(__name__)

# Thread-safe singleton for database engine
_engine: Engine | None = None
_engine_lock = threading.Lock()


def get_db_engine() -> Engine:
    """
    Get the singleton database engine with connection pooling.

    Uses QueuePool sized for a single audit task at a time:
    - pool_size=2: Base number of connections
    - max_overflow=2: Allow a little headroom under load
    - pool_timeout=30: Wait up to 30s for available connection
    - pool_recycle=1800: Recycle connections every 30 minutes

    Returns:
        SQLAlchemy Engine with connection pooling
    """
    global _engine

    if _engine is None:
        with _engine_lock:
            # Double-check after acquiring lock
            if _engine is None:
                db_url = str(get_settings().sync_database_url)
                _engine = create_engine(
                    db_url,
                    poolclass=QueuePool,
                    pool_size=2,
                    max_overflow=2,
                    pool_timeout=30,
                    pool_recycle=1800,
                    pool_pre_ping=True,  # Verify connections before use
                )
                logger.info("Created database connection pool")

    return _engine


@contextmanager
def get_db_connection() -> Generator:
    """
    Context manager for database connections.

    Yields a connection from the pool and ensures proper cleanup.

    Usage:
        with get_db_connection() as conn:
            conn.execute(text("SELECT 1"))
            conn.commit()
    """
    engine = get_db_engine()
    conn = engine.connect()
    try:
        yield conn
    finally:
        conn.close()


def _as_dict(value) -> dict:
    # JSON columns come back as str from some drivers
    if isinstance(value, str):
        return json.loads(value)
    return dict(value or {})


def fetch_stored_counts(conn) -> dict[str, tuple[dict, int]]:
    """
    Read every preset's denormalized counts.

    Returns:
        {preset_id: (reaction_counts, version)}
    """
    result = conn.execute(text("SELECT id, reaction_counts, version FROM presets"))
    return {str(row[0]): (_as_dict(row[1]), row[2]) for row in result}


def fetch_ledger_counts(conn) -> dict[str, dict[str, int]]:
    """
    Aggregate the reaction ledger.

    Returns:
        {preset_id: {symbol: count}}
    """
    result = conn.execute(
        text("""
            SELECT preset_id, reaction, COUNT(*)
            FROM preset_reactions
            GROUP BY preset_id, reaction
        """)
    )
    counts: dict[str, dict[str, int]] = {}
    for preset_id, reaction, n in result:
        counts.setdefault(str(preset_id), {})[reaction] = n
    return counts


def write_counts_if_unchanged(
    conn,
    preset_id: str,
    counts: dict[str, int],
    expected_version: int,
) -> bool:
    """
    Overwrite a preset's counts only if no toggle committed since it was read.

    Bumps ``version`` like an ORM update so an in-flight toggle that read the
    old row loses its compare-and-swap and retries against the repaired counts.

    Args:
        conn: Open connection (caller commits)
        preset_id: Preset UUID
        counts: Ledger-derived counts
        expected_version: Version observed when the drift was detected

    Returns:
        True if the row was updated
    """
    result = conn.execute(
        text("""
            UPDATE presets
            SET reaction_counts = :counts,
                version = version + 1,
                updated_at = :updated_at
            WHERE id = :preset_id AND version = :expected_version
        """).bindparams(
            bindparam("counts", type_=JSONType),
            bindparam("updated_at", type_=DateTime(timezone=True)),
        ),
        {
            "counts": counts,
            "updated_at": datetime.now(timezone.utc),
            "preset_id": preset_id,
            "expected_version": expected_version,
        },
    )
    updated = result.rowcount > 0
    if not updated:
        logger.debug(f"Skipping count repair for preset {preset_id} - changed since audit read")
    return updated


def cleanup_engine() -> None:
    """
    Dispose of the database engine and connection pool.

    Call this during worker shutdown to ensure clean cleanup.
    """
    global _engine

    with _engine_lock:
        if _engine is not None:
            _engine.dispose()
            _engine = None
            logger.info("Database connection pool disposed")
