"""Preset repository service."""

import logging
from collections.abc import Callable, Sequence
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from sqlalchemy import Select, and_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from backend.app.config import get_settings
from backend.app.core.exceptions import (
    PermissionDeniedError,
    PresetNotFoundError,
    PresetValidationError,
    TransientIOError,
)
from backend.app.models.preset import Preset, PresetReaction
from backend.app.schemas.auth import CurrentUser
from backend.app.schemas.preset import PresetPage, PresetResponse
from backend.app.services.pagination import (
    PresetCursor,
    clamp_page_size,
    next_cursor,
    paginate,
    seek,
)

logger = logging.getLogger(__name__)


def to_response(preset: Preset, user_reaction: str | None = None) -> PresetResponse:
    """Convert model to response schema."""
    return PresetResponse(
        id=preset.id,
        tool_id=preset.tool_id,
        name=preset.name,
        parameters=preset.parameters,
        is_public=preset.is_public,
        owner_id=preset.owner_id,
        owner_display_name=preset.owner_display_name,
        owner_email=preset.owner_email,
        owner_avatar_url=preset.owner_avatar_url,
        reaction_counts=dict(preset.reaction_counts or {}),
        user_reaction=user_reaction,
        created_at=preset.created_at,
        updated_at=preset.updated_at,
    )


class PresetService:
    """Service for preset storage, visibility and listings."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.settings = get_settings()

    async def create(
        self,
        owner: CurrentUser,
        tool_id: str,
        name: str,
        parameters: Any,
        is_public: bool = False,
    ) -> PresetResponse:
        """Save a new preset owned by ``owner``.

        Names are not unique; saving the same name twice yields two presets.
        """
        name = (name or "").strip()
        if not name:
            raise PresetValidationError("Preset name must not be empty")
        if len(name) > self.settings.preset_name_max_length:
            raise PresetValidationError(
                f"Preset name must be at most {self.settings.preset_name_max_length} characters",
                {"length": len(name)},
            )
        tool_id = (tool_id or "").strip()
        if not tool_id:
            raise PresetValidationError("tool_id must not be empty")

        preset = Preset(
            owner_id=owner.user_id,
            owner_display_name=owner.display_name,
            owner_email=owner.email,
            owner_avatar_url=owner.avatar_url,
            tool_id=tool_id,
            name=name,
            parameters=parameters,
            is_public=is_public,
            reaction_counts={},
        )
        self.db.add(preset)
        await self.db.commit()

        logger.info(f"Created preset: {preset.name} ({preset.id}) tool={tool_id} owner={owner.user_id}")
        return to_response(preset)

    async def get(self, preset_id: UUID, viewer_id: str | None = None) -> PresetResponse:
        """Load one preset visible to ``viewer_id``.

        Private presets are only visible to their owner; everything else
        (missing, soft-deleted, someone else's private preset) is not found.
        """
        query = self._with_viewer_reaction(select(Preset), viewer_id).where(
            Preset.id == preset_id,
            Preset.is_deleted == False,  # noqa: E712
        )
        result = await self.db.execute(query)
        row = result.first()
        if row is None:
            raise PresetNotFoundError(preset_id)

        preset, user_reaction = self._unpack(row, viewer_id)
        if not preset.is_public and preset.owner_id != viewer_id:
            raise PresetNotFoundError(preset_id)
        return to_response(preset, user_reaction)

    async def set_visibility(
        self, preset_id: UUID, caller_id: str, is_public: bool
    ) -> PresetResponse:
        """Make a preset public or private. Setting the current value is a no-op."""

        def publish(preset: Preset) -> bool:
            if preset.is_public == is_public:
                return False
            preset.is_public = is_public
            return True

        preset, changed = await self._update_owned(preset_id, caller_id, publish)
        if changed:
            logger.info(
                f"Preset {preset.id} visibility -> {'public' if is_public else 'private'}"
            )

        user_reaction = await self._reaction_of(preset.id, caller_id)
        return to_response(preset, user_reaction)

    async def soft_delete(self, preset_id: UUID, caller_id: str) -> None:
        """Mark a preset deleted. The row and its reactions are kept."""

        def mark_deleted(preset: Preset) -> bool:
            preset.is_deleted = True
            preset.deleted_at = datetime.now(timezone.utc)
            return True

        preset, _ = await self._update_owned(preset_id, caller_id, mark_deleted)
        logger.info(f"Soft-deleted preset: {preset.name} ({preset.id})")

    async def list_by_owner(
        self,
        owner_id: str,
        tool_id: str,
        page: int = 0,
        page_size: int | None = None,
        cursor: str | None = None,
    ) -> PresetPage:
        """List an owner's non-deleted presets for one tool, newest first."""
        query = select(Preset).where(
            Preset.owner_id == owner_id,
            Preset.tool_id == tool_id,
            Preset.is_deleted == False,  # noqa: E712
        )
        # The owner is the viewer of their own list
        return await self._window(query, owner_id, page, page_size, cursor)

    async def list_public(
        self,
        tool_id: str | None = None,
        page: int = 0,
        viewer_id: str | None = None,
        page_size: int | None = None,
        cursor: str | None = None,
        search: str | None = None,
    ) -> PresetPage:
        """List public, non-deleted presets, newest first.

        ``tool_id=None`` browses every tool. ``search`` matches names
        case-insensitively.
        """
        query = select(Preset).where(
            Preset.is_public == True,  # noqa: E712
            Preset.is_deleted == False,  # noqa: E712
        )
        if tool_id:
            query = query.where(Preset.tool_id == tool_id)
        if search and search.strip():
            term = (
                search.strip()
                .replace("\\", "\\\\")
                .replace("%", "\\%")
                .replace("_", "\\_")
            )
            query = query.where(Preset.name.ilike(f"%{term}%", escape="\\"))

        return await self._window(query, viewer_id, page, page_size, cursor)

    async def _window(
        self,
        query: Select,
        viewer_id: str | None,
        page: int,
        page_size: int | None,
        cursor: str | None,
    ) -> PresetPage:
        size = clamp_page_size(page_size)
        query = self._with_viewer_reaction(query, viewer_id)
        if cursor is not None:
            query = seek(query, PresetCursor.decode(cursor), size)
            page_index = None
        else:
            query = paginate(query, page, size)
            page_index = page

        result = await self.db.execute(query)
        rows = [self._unpack(row, viewer_id) for row in result.all()]
        presets = [preset for preset, _ in rows]

        return PresetPage(
            items=[to_response(preset, reaction) for preset, reaction in rows],
            page=page_index,
            page_size=size,
            next_cursor=next_cursor(presets, size),
        )

    @staticmethod
    def _with_viewer_reaction(query: Select, viewer_id: str | None) -> Select:
        """Left-join the viewer's own ledger row, if a viewer is known."""
        if viewer_id is None:
            return query
        return query.add_columns(PresetReaction.reaction).outerjoin(
            PresetReaction,
            and_(
                PresetReaction.preset_id == Preset.id,
                PresetReaction.user_id == viewer_id,
            ),
        )

    @staticmethod
    def _unpack(row: Sequence[Any], viewer_id: str | None) -> tuple[Preset, str | None]:
        if viewer_id is None:
            return row[0], None
        return row[0], row[1]

    async def _update_owned(
        self,
        preset_id: UUID,
        caller_id: str,
        change: Callable[[Preset], bool],
    ) -> tuple[Preset, bool]:
        """Apply an owner's change to the locked row and commit it.

        Reaction toggles bump the row version too, so a toggle committing
        between our read and our write makes the commit stale. The change is
        then rerun against the fresh row.
        """
        max_attempts = self.settings.toggle_max_attempts

        for attempt in range(1, max_attempts + 1):
            preset = await self._get_owned(preset_id, caller_id)
            changed = change(preset)
            try:
                await self.db.commit()
                return preset, changed
            except StaleDataError:
                await self.db.rollback()
                logger.warning(
                    f"Owner update on preset {preset_id} raced a concurrent write "
                    f"(attempt {attempt}/{max_attempts})"
                )

        raise TransientIOError(
            "The preset is busy, please try again",
            {"preset_id": str(preset_id), "attempts": max_attempts},
        )

    async def _get_owned(self, preset_id: UUID, caller_id: str) -> Preset:
        result = await self.db.execute(
            select(Preset)
            .where(Preset.id == preset_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        preset = result.scalar_one_or_none()
        if preset is None or preset.is_deleted:
            raise PresetNotFoundError(preset_id)
        if preset.owner_id != caller_id:
            raise PermissionDeniedError(
                "Only the owner can change this preset",
                {"preset_id": str(preset_id)},
            )
        return preset

    async def _reaction_of(self, preset_id: UUID, user_id: str) -> str | None:
        result = await self.db.execute(
            select(PresetReaction.reaction).where(
                PresetReaction.preset_id == preset_id,
                PresetReaction.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()
