"""Preset store API routes."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.api.deps import get_current_user, get_optional_user
from backend.app.constants import REACTION_SYMBOLS
from backend.app.db.session import get_db
from backend.app.schemas.auth import CurrentUser
from backend.app.schemas.preset import (
    PresetCreate,
    PresetPage,
    PresetResponse,
    PresetVisibilityUpdate,
    ReactionToggleRequest,
    ReactionToggleResponse,
)
from backend.app.services.preset_service import PresetService
from backend.app.services.reaction_service import ReactionService

router = APIRouter()


@router.post("", response_model=PresetResponse, status_code=201)
async def save_preset(
    data: PresetCreate,
    user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> PresetResponse:
    """
    Save the caller's current tool parameters as a new preset.
    """
    service = PresetService(db)
    return await service.create(
        owner=user,
        tool_id=data.tool_id,
        name=data.name,
        parameters=data.parameters,
        is_public=data.is_public,
    )


@router.get("/owned", response_model=PresetPage)
async def list_owned_presets(
    user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    tool_id: Annotated[str, Query(min_length=1)],
    page: Annotated[int, Query(ge=0)] = 0,
    page_size: Annotated[int | None, Query(ge=1)] = None,
    cursor: Annotated[str | None, Query()] = None,
) -> PresetPage:
    """
    List the caller's own presets for a tool, newest first.

    Pass either ``page`` (offset paging) or ``cursor`` from a previous
    response's ``next_cursor`` (keyset paging).
    """
    service = PresetService(db)
    return await service.list_by_owner(
        owner_id=user.user_id,
        tool_id=tool_id,
        page=page,
        page_size=page_size,
        cursor=cursor,
    )


@router.get("/public", response_model=PresetPage)
async def list_public_presets(
    viewer: Annotated[CurrentUser | None, Depends(get_optional_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    tool_id: Annotated[str | None, Query()] = None,
    q: Annotated[str | None, Query(max_length=100)] = None,
    page: Annotated[int, Query(ge=0)] = 0,
    page_size: Annotated[int | None, Query(ge=1)] = None,
    cursor: Annotated[str | None, Query()] = None,
) -> PresetPage:
    """
    List public presets, newest first.

    Omit ``tool_id`` to browse every tool. Signed-in callers get their own
    reaction on each item.
    """
    service = PresetService(db)
    return await service.list_public(
        tool_id=tool_id,
        page=page,
        viewer_id=viewer.user_id if viewer else None,
        page_size=page_size,
        cursor=cursor,
        search=q,
    )


@router.get("/reactions/symbols", response_model=list[str])
async def list_reaction_symbols() -> list[str]:
    """
    List the reactions a preset accepts, in display order.
    """
    return REACTION_SYMBOLS


@router.get("/{preset_id}", response_model=PresetResponse)
async def get_preset(
    preset_id: UUID,
    viewer: Annotated[CurrentUser | None, Depends(get_optional_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> PresetResponse:
    """
    Get a preset by ID. Private presets are only visible to their owner.
    """
    service = PresetService(db)
    return await service.get(preset_id, viewer_id=viewer.user_id if viewer else None)


@router.patch("/{preset_id}/visibility", response_model=PresetResponse)
async def set_preset_visibility(
    preset_id: UUID,
    data: PresetVisibilityUpdate,
    user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> PresetResponse:
    """
    Make a preset public or private. Owner only.
    """
    service = PresetService(db)
    return await service.set_visibility(preset_id, user.user_id, data.is_public)


@router.delete("/{preset_id}", status_code=204)
async def delete_preset(
    preset_id: UUID,
    user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> None:
    """
    Soft-delete a preset. Owner only; the preset disappears from all listings.
    """
    service = PresetService(db)
    await service.soft_delete(preset_id, user.user_id)


@router.post("/{preset_id}/reactions", response_model=ReactionToggleResponse)
async def toggle_reaction(
    preset_id: UUID,
    data: ReactionToggleRequest,
    user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> ReactionToggleResponse:
    """
    Toggle the caller's reaction on a preset.

    Sending the active symbol again removes it; a different symbol replaces it.
    """
    service = ReactionService(db)
    return await service.toggle(user.user_id, preset_id, data.symbol)
