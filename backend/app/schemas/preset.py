"""Preset-related Pydantic schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, JsonValue

from backend.app.constants import ReactionSymbol


class PresetCreate(BaseModel):
    """Request schema for saving a preset."""

    tool_id: str = Field(min_length=1, max_length=100)
    name: str = Field(min_length=1, max_length=255)
    # Opaque tool-defined document; shape checks belong to the tool
    parameters: JsonValue = None
    is_public: bool = False


class PresetVisibilityUpdate(BaseModel):
    """Request schema for changing a preset's visibility."""

    is_public: bool


class ReactionToggleRequest(BaseModel):
    """Request schema for toggling a reaction."""

    symbol: ReactionSymbol


class PresetResponse(BaseModel):
    """Response schema for a preset."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    tool_id: str
    name: str
    parameters: JsonValue = None
    is_public: bool
    owner_id: str
    owner_display_name: str | None = None
    owner_email: str | None = None
    owner_avatar_url: str | None = None
    reaction_counts: dict[str, int] = Field(default_factory=dict)
    # The viewer's own active reaction, if a viewer was supplied
    user_reaction: str | None = None
    created_at: datetime
    updated_at: datetime


class PresetPage(BaseModel):
    """One window of a preset listing.

    A page shorter than ``page_size`` means there are no more pages; no total
    count is exposed.
    """

    items: list[PresetResponse]
    page: int | None = None
    page_size: int
    # Keyset token for the window after this one
    next_cursor: str | None = None

    @property
    def has_more(self) -> bool:
        return len(self.items) == self.page_size


class ReactionToggleResponse(BaseModel):
    """Server state of a preset's reactions after a toggle commits."""

    preset_id: UUID
    reaction_counts: dict[str, int]
    user_reaction: str | None = None
