"""Reaction count audit task."""

import logging

from sqlalchemy.exc import OperationalError

from backend.app.services.reconciliation_service import compute_count_drift, normalize_counts
from worker.celery_app import app
from worker.db import (
    fetch_ledger_counts,
    fetch_stored_counts,
    get_db_connection,
    write_counts_if_unchanged,
)

logger = logging.getLogger(__name__)


@app.task(
    bind=True,
    name="worker.tasks.reconciliation.audit_reaction_counts",
    max_retries=3,
    default_retry_delay=60,
    autoretry_for=(OperationalError, ConnectionError),
    retry_backoff=True,
    retry_backoff_max=300,
    retry_jitter=True,
)
def audit_reaction_counts(self, repair: bool = False) -> dict:
    """
    Compare every preset's stored reaction counts with the reaction ledger.

    Stored counts and the ledger are read separately, so a toggle committing
    between the two reads can show up as drift. Repairs are guarded by the
    row version read with the stored counts, so such a row is left alone and
    picked up again by the next audit.

    Args:
        repair: Rewrite drifted counts from the ledger

    Returns:
        Audit summary with the drifted presets
    """
    logger.info(f"Auditing reaction counts (repair={repair})")

    drifted = []
    repaired = 0

    with get_db_connection() as conn:
        stored = fetch_stored_counts(conn)
        ledger = fetch_ledger_counts(conn)

        for preset_id, (counts, version) in stored.items():
            actual = compute_count_drift(counts, ledger.get(preset_id))
            if actual is None:
                continue

            logger.warning(
                f"Reaction count drift on preset {preset_id}: "
                f"stored={normalize_counts(counts)} ledger={actual}"
            )
            drifted.append({
                "preset_id": preset_id,
                "stored": normalize_counts(counts),
                "actual": actual,
            })

            if repair and write_counts_if_unchanged(conn, preset_id, actual, version):
                repaired += 1

        if repair:
            conn.commit()

    logger.info(
        f"Reaction count audit finished: checked={len(stored)} "
        f"drifted={len(drifted)} repaired={repaired}"
    )
    return {
        "checked": len(stored),
        "drifted": drifted,
        "repaired": repaired,
    }
