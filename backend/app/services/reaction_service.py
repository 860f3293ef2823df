"""Reaction toggle procedure.

Each toggle is one atomic unit scoped to a single preset row:

1. lock the preset (``SELECT ... FOR UPDATE``; the row ``version`` column gives
   compare-and-swap semantics where row locks are unavailable),
2. look up the caller's ledger row,
3. insert, delete or switch it,
4. adjust ``reaction_counts`` to match and write it back.

A lost compare-and-swap or a duplicate ledger insert from a concurrent call
rolls the unit back and reruns it from step 1. This is the only code path
that writes ``reaction_counts``.
"""

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from backend.app.config import get_settings
from backend.app.constants import ReactionSymbol
from backend.app.core.exceptions import (
    PresetNotFoundError,
    PresetValidationError,
    TransientIOError,
)
from backend.app.models.preset import Preset, PresetReaction
from backend.app.schemas.preset import ReactionToggleResponse

logger = logging.getLogger(__name__)


def parse_symbol(symbol: str | ReactionSymbol) -> ReactionSymbol:
    """Validate a client-supplied symbol against the allowed set."""
    try:
        return ReactionSymbol(symbol)
    except ValueError:
        raise PresetValidationError(
            f"Unsupported reaction: {symbol!r}",
            {"allowed": [s.value for s in ReactionSymbol]},
        ) from None


def increment(counts: dict[str, int], symbol: str) -> None:
    counts[symbol] = counts.get(symbol, 0) + 1


def decrement(counts: dict[str, int], symbol: str) -> None:
    """Decrease a count, flooring at zero; zero entries are dropped."""
    remaining = max(0, counts.get(symbol, 0) - 1)
    if remaining:
        counts[symbol] = remaining
    else:
        counts.pop(symbol, None)


class ReactionService:
    """Service for the per-user reaction ledger."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.settings = get_settings()

    async def toggle(
        self, user_id: str, preset_id: UUID, symbol: str | ReactionSymbol
    ) -> ReactionToggleResponse:
        """Toggle ``user_id``'s reaction on a preset.

        No reaction yet: add ``symbol``. Same symbol: remove it. Different
        symbol: switch to ``symbol``.

        Raises:
            PresetNotFoundError: Preset missing or soft-deleted.
            PresetValidationError: Symbol outside the allowed set.
            TransientIOError: Concurrent updates kept winning the race.
        """
        reaction = parse_symbol(symbol).value
        max_attempts = self.settings.toggle_max_attempts

        for attempt in range(1, max_attempts + 1):
            try:
                result = await self._apply(user_id, preset_id, reaction)
                await self.db.commit()
                return result
            except (StaleDataError, IntegrityError) as e:
                await self.db.rollback()
                logger.warning(
                    f"Reaction toggle on preset {preset_id} lost a concurrent update "
                    f"(attempt {attempt}/{max_attempts}): {type(e).__name__}"
                )

        raise TransientIOError(
            "Too many concurrent reactions, please try again",
            {"preset_id": str(preset_id), "attempts": max_attempts},
        )

    async def _apply(self, user_id: str, preset_id: UUID, reaction: str) -> ReactionToggleResponse:
        result = await self.db.execute(
            select(Preset)
            .where(Preset.id == preset_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        preset = result.scalar_one_or_none()
        if preset is None or preset.is_deleted:
            raise PresetNotFoundError(preset_id)

        result = await self.db.execute(
            select(PresetReaction)
            .where(
                PresetReaction.user_id == user_id,
                PresetReaction.preset_id == preset_id,
            )
            .execution_options(populate_existing=True)
        )
        existing = result.scalar_one_or_none()

        counts = dict(preset.reaction_counts or {})
        if existing is None:
            self.db.add(PresetReaction(user_id=user_id, preset_id=preset_id, reaction=reaction))
            increment(counts, reaction)
            user_reaction: str | None = reaction
        elif existing.reaction == reaction:
            await self.db.delete(existing)
            decrement(counts, reaction)
            user_reaction = None
        else:
            decrement(counts, existing.reaction)
            increment(counts, reaction)
            existing.reaction = reaction
            user_reaction = reaction

        # New dict so the JSON column is seen as changed (bumps version)
        preset.reaction_counts = counts
        await self.db.flush()

        logger.debug(f"Toggled {reaction} on preset {preset_id} for {user_id}: {counts}")
        return ReactionToggleResponse(
            preset_id=preset_id,
            reaction_counts=counts,
            user_reaction=user_reaction,
        )
