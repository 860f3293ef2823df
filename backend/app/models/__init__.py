"""SQLAlchemy ORM models."""

from backend.app.models.base import Base
from backend.app.models.preset import Preset, PresetReaction

__all__ = [
    "Base",
    "Preset",
    "PresetReaction",
]
