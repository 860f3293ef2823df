"""Reaction count drift rules.

``presets.reaction_counts`` is denormalized from ``preset_reactions``. The
toggle procedure keeps the two in step, but nothing at the database level
stops another writer (a manual SQL fix, a bad migration) from editing the
counts directly. The audit task in ``worker.tasks.reconciliation`` uses these
rules to detect that drift and, when asked, rewrite the counts from the
ledger.
"""

from collections.abc import Mapping


def normalize_counts(counts: Mapping[str, int] | None) -> dict[str, int]:
    """Drop zero and negative entries so equal states compare equal."""
    return {symbol: int(n) for symbol, n in (counts or {}).items() if int(n) > 0}


def compute_count_drift(
    stored: Mapping[str, int] | None, ledger: Mapping[str, int] | None
) -> dict[str, int] | None:
    """Return the ledger-derived counts if they differ from ``stored``, else None."""
    actual = normalize_counts(ledger)
    if normalize_counts(stored) == actual:
        return None
    return actual
