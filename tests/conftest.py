"""
pytest configuration and shared fixtures.

Every test gets its own SQLite database file; the API and worker are pointed
at it through dependency overrides rather than the configured PostgreSQL.
"""

import os
import tempfile
from pathlib import Path

# Settings are read at import time by the session and Celery modules
_default_db = Path(tempfile.mkdtemp(prefix="preset-store-")) / "default.db"
os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("DEBUG", "false")
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{_default_db}")
os.environ.setdefault("SYNC_DATABASE_URL", f"sqlite:///{_default_db}")
os.environ.setdefault("CELERY_BROKER_URL", "memory://")
os.environ.setdefault("CELERY_RESULT_BACKEND", "cache+memory://")

import httpx  # noqa: E402
import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine  # noqa: E402

from backend.app.db.session import get_db  # noqa: E402
from backend.app.main import app  # noqa: E402
from backend.app.models import Base  # noqa: E402
from backend.app.schemas.auth import CurrentUser  # noqa: E402
from backend.app.services.preset_service import PresetService  # noqa: E402


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "presets.db"


@pytest.fixture
async def engine(db_path):
    """Async engine on a fresh schema."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def db(session_factory):
    """Single session for service-level tests."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def sync_engine(engine, db_path):
    """Synchronous engine on the same file, as used by the worker."""
    engine = create_engine(f"sqlite:///{db_path}")
    yield engine
    engine.dispose()


@pytest.fixture
async def api_client(session_factory):
    """httpx client bound to the app in-process, one session per request."""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver/api") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def alice():
    return CurrentUser(user_id="alice", display_name="Alice", email="alice@example.com")


@pytest.fixture
def bob():
    return CurrentUser(user_id="bob", display_name="Bob")


@pytest.fixture
def create_preset(session_factory, alice):
    """Factory that saves a preset in its own session."""

    async def _create(
        name="Weekly Shuffle",
        owner=None,
        tool_id="team-shuffler",
        parameters=None,
        is_public=False,
    ):
        async with session_factory() as session:
            return await PresetService(session).create(
                owner=owner or alice,
                tool_id=tool_id,
                name=name,
                parameters=parameters if parameters is not None else {"teamSize": 3},
                is_public=is_public,
            )

    return _create
