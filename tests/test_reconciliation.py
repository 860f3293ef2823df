"""
Reaction count audit tests
"""

import uuid

import pytest

from backend.app.models.preset import Preset
from backend.app.services.reaction_service import ReactionService
from backend.app.services.reconciliation_service import compute_count_drift, normalize_counts
import worker.db
from worker.db import get_db_connection, write_counts_if_unchanged
from worker.tasks.reconciliation import audit_reaction_counts

THUMBS_UP = "👍"
HEART = "❤️"


async def react(session_factory, preset_id, *moves):
    for user_id, symbol in moves:
        async with session_factory() as session:
            await ReactionService(session).toggle(user_id, preset_id, symbol)


async def overwrite_counts(session_factory, preset_id, counts):
    """Edit the denormalized counts behind the toggle procedure's back."""
    async with session_factory() as session:
        preset = await session.get(Preset, preset_id)
        preset.reaction_counts = counts
        await session.commit()


class TestDriftComputation:
    """Pure drift comparison"""

    def test_equal_counts_no_drift(self):
        assert compute_count_drift({THUMBS_UP: 2}, {THUMBS_UP: 2}) is None

    def test_zero_entries_ignored(self):
        assert compute_count_drift({THUMBS_UP: 0}, None) is None
        assert compute_count_drift(None, {}) is None

    def test_drift_returns_ledger_counts(self):
        assert compute_count_drift({THUMBS_UP: 5}, {THUMBS_UP: 2, HEART: 1}) == {THUMBS_UP: 2, HEART: 1}

    def test_normalize_drops_negatives(self):
        assert normalize_counts({THUMBS_UP: -1, HEART: 3}) == {HEART: 3}


class TestAuditTask:
    """Celery audit task"""

    @pytest.fixture(autouse=True)
    def worker_engine(self, sync_engine, monkeypatch):
        monkeypatch.setattr(worker.db, "_engine", sync_engine)

    @pytest.mark.asyncio
    async def test_toggles_leave_no_drift(self, session_factory, create_preset):
        preset = await create_preset(is_public=True)
        await react(session_factory, preset.id, ("alice", THUMBS_UP), ("bob", HEART), ("bob", THUMBS_UP))

        summary = audit_reaction_counts(repair=False)

        assert summary["checked"] == 1
        assert summary["drifted"] == []

    @pytest.mark.asyncio
    async def test_only_edited_preset_reported(self, session_factory, create_preset):
        preset = await create_preset(is_public=True)
        other = await create_preset("untouched", is_public=True)
        await react(session_factory, preset.id, ("alice", THUMBS_UP), ("bob", THUMBS_UP))
        await react(session_factory, other.id, ("alice", HEART))
        await overwrite_counts(session_factory, preset.id, {THUMBS_UP: 7})

        summary = audit_reaction_counts(repair=False)

        assert summary["checked"] == 2
        [drift] = summary["drifted"]
        assert uuid.UUID(drift["preset_id"]) == preset.id
        assert drift["stored"] == {THUMBS_UP: 7}
        assert drift["actual"] == {THUMBS_UP: 2}

    @pytest.mark.asyncio
    async def test_soft_deleted_presets_audited(self, session_factory, create_preset):
        preset = await create_preset(is_public=True)
        await react(session_factory, preset.id, ("alice", HEART))
        await overwrite_counts(session_factory, preset.id, {HEART: 3})
        async with session_factory() as session:
            row = await session.get(Preset, preset.id)
            row.is_deleted = True
            await session.commit()

        summary = audit_reaction_counts(repair=True)

        assert summary["repaired"] == 1
        async with session_factory() as session:
            assert (await session.get(Preset, preset.id)).reaction_counts == {HEART: 1}

    @pytest.mark.asyncio
    async def test_repair_skipped_when_row_changed(self, session_factory, create_preset):
        """A toggle committing after the audit read wins over the repair"""
        preset = await create_preset(is_public=True)
        await overwrite_counts(session_factory, preset.id, {THUMBS_UP: 9})
        async with session_factory() as session:
            stale_version = (await session.get(Preset, preset.id)).version
        await react(session_factory, preset.id, ("alice", HEART))

        with get_db_connection() as conn:
            updated = write_counts_if_unchanged(conn, preset.id.hex, {}, stale_version)
            conn.commit()

        assert updated is False
        async with session_factory() as session:
            assert (await session.get(Preset, preset.id)).reaction_counts == {THUMBS_UP: 9, HEART: 1}
    @pytest.mark.asyncio
    async def test_reports_without_repairing(self, session_factory, create_preset):
        preset = await create_preset(is_public=True)
        await react(session_factory, preset.id, ("alice", THUMBS_UP))
        await overwrite_counts(session_factory, preset.id, {THUMBS_UP: 4})

        summary = audit_reaction_counts(repair=False)

        assert summary["checked"] == 1
        assert summary["repaired"] == 0
        assert len(summary["drifted"]) == 1
        assert uuid.UUID(summary["drifted"][0]["preset_id"]) == preset.id
        assert summary["drifted"][0]["actual"] == {THUMBS_UP: 1}
        async with session_factory() as session:
            assert (await session.get(Preset, preset.id)).reaction_counts == {THUMBS_UP: 4}

    @pytest.mark.asyncio
    async def test_repairs_and_bumps_version(self, session_factory, create_preset):
        preset = await create_preset(is_public=True)
        await react(session_factory, preset.id, ("alice", THUMBS_UP), ("bob", HEART))
        await overwrite_counts(session_factory, preset.id, {})
        async with session_factory() as session:
            version_before = (await session.get(Preset, preset.id)).version

        summary = audit_reaction_counts(repair=True)

        assert summary["repaired"] == 1
        async with session_factory() as session:
            repaired = await session.get(Preset, preset.id)
            assert repaired.reaction_counts == {THUMBS_UP: 1, HEART: 1}
            assert repaired.version == version_before + 1

        # Toggles keep working on the repaired row
        await react(session_factory, preset.id, ("carol", HEART))
        async with session_factory() as session:
            assert (await session.get(Preset, preset.id)).reaction_counts == {THUMBS_UP: 1, HEART: 2}
