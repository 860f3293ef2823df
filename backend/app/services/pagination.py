"""Ordered, windowed listing of presets.

Listings are ordered by ``created_at`` descending with ties broken by ``id``
descending, so every window is deterministic.

Two windowing strategies are offered:

* ``paginate`` - offset paging by page index. Rows inserted or deleted near
  the current boundary while a client is paging can shift the window, so a
  row may be seen twice or skipped. This is accepted for the page-index API.
* ``seek`` - keyset paging on ``(created_at, id)``. Each window starts
  strictly after the last row of the previous one, which is stable under
  concurrent inserts.

Neither exposes a total count: a window shorter than the page size is the
only end-of-listing signal.
"""

import base64
import binascii
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from sqlalchemy import Select, and_, or_

from backend.app.config import get_settings
from backend.app.core.exceptions import PresetValidationError
from backend.app.models.preset import Preset


@dataclass(frozen=True)
class PresetCursor:
    """Position of the last row of a window."""

    created_at: datetime
    id: UUID

    @classmethod
    def from_preset(cls, preset: Preset) -> "PresetCursor":
        return cls(created_at=preset.created_at, id=preset.id)

    def encode(self) -> str:
        """Encode as an opaque URL-safe token."""
        raw = f"{self.created_at.isoformat()}|{self.id}"
        return base64.urlsafe_b64encode(raw.encode("utf-8")).decode("ascii").rstrip("=")

    @classmethod
    def decode(cls, token: str) -> "PresetCursor":
        """Parse a token produced by ``encode``.

        Raises:
            PresetValidationError: If the token is malformed.
        """
        try:
            padded = token + "=" * (-len(token) % 4)
            raw = base64.urlsafe_b64decode(padded.encode("ascii")).decode("utf-8")
            created_at, sep, preset_id = raw.partition("|")
            if not sep:
                raise ValueError("missing separator")
            return cls(created_at=datetime.fromisoformat(created_at), id=UUID(preset_id))
        except (ValueError, binascii.Error, UnicodeError) as e:
            raise PresetValidationError("Malformed page cursor", {"cursor": token}) from e


def clamp_page_size(page_size: int | None) -> int:
    """Apply the configured default and upper bound to a requested page size."""
    settings = get_settings()
    if page_size is None:
        return settings.preset_page_size
    if page_size < 1:
        raise PresetValidationError("page_size must be at least 1", {"page_size": page_size})
    return min(page_size, settings.preset_page_size_max)


def ordered(query: Select) -> Select:
    return query.order_by(Preset.created_at.desc(), Preset.id.desc())


def paginate(query: Select, page_index: int, page_size: int) -> Select:
    """Offset window ``page_index`` of ``query``."""
    if page_index < 0:
        raise PresetValidationError("page must be >= 0", {"page": page_index})
    return ordered(query).offset(page_index * page_size).limit(page_size)


def seek(query: Select, after: PresetCursor | None, page_size: int) -> Select:
    """Keyset window of ``query`` starting strictly after ``after``."""
    if after is not None:
        query = query.where(
            or_(
                Preset.created_at < after.created_at,
                and_(Preset.created_at == after.created_at, Preset.id < after.id),
            )
        )
    return ordered(query).limit(page_size)


def next_cursor(presets: list[Preset], page_size: int) -> str | None:
    """Token for the window after ``presets``, or None when this was the last one."""
    if len(presets) < page_size or not presets:
        return None
    return PresetCursor.from_preset(presets[-1]).encode()
