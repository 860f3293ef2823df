"""Preset and reaction ledger models."""

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from backend.app.models.base import Base, JSONType, TimestampMixin, UUIDMixin


class Preset(Base, UUIDMixin, TimestampMixin):
    """A named, saved parameter document for one tool, owned by one user."""

    __tablename__ = "presets"

    # Owner identity as supplied by the auth collaborator (opaque)
    owner_id: Mapped[str] = mapped_column(String(255), nullable=False)
    owner_display_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    owner_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    owner_avatar_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)

    tool_id: Mapped[str] = mapped_column(String(100), nullable=False)
    # Duplicate names are allowed
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Tool-defined document, never interpreted by the store
    parameters: Mapped[Any] = mapped_column(JSONType, nullable=True)

    is_public: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Denormalized {symbol: count}; only written by the toggle procedure.
    # Zero counts are removed rather than stored.
    reaction_counts: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)

    # Row version for compare-and-swap on every UPDATE
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("ix_presets_owner_tool", "owner_id", "tool_id"),
        Index("ix_presets_public_listing", "tool_id", "is_public", "is_deleted", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Preset(id={self.id}, tool='{self.tool_id}', name='{self.name}')>"


class PresetReaction(Base, UUIDMixin, TimestampMixin):
    """Reaction ledger: a user's single active reaction on a preset."""

    __tablename__ = "preset_reactions"

    user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    preset_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("presets.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    reaction: Mapped[str] = mapped_column(String(32), nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "preset_id", name="uq_preset_reactions_user_preset"),
    )

    def __repr__(self) -> str:
        return f"<PresetReaction(user='{self.user_id}', preset={self.preset_id}, reaction='{self.reaction}')>"
