"""Local view state for preset lists and the pure transitions over it.

Every function here returns a new value and never touches the network, so
optimistic apply, reconcile and revert can be tested without an event loop.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Literal
from uuid import uuid4

from backend.app.constants import PLACEHOLDER_ID_PREFIX
from backend.app.schemas.preset import PresetResponse, ReactionToggleResponse


@dataclass(frozen=True)
class PresetView:
    """A preset as rendered in a list."""

    id: str
    tool_id: str
    name: str
    parameters: Any
    is_public: bool
    owner_id: str
    created_at: datetime
    owner_display_name: str | None = None
    owner_avatar_url: str | None = None
    reaction_counts: dict[str, int] = field(default_factory=dict)
    user_reaction: str | None = None

    @property
    def is_placeholder(self) -> bool:
        """True until the server has assigned an id."""
        return self.id.startswith(PLACEHOLDER_ID_PREFIX)

    @classmethod
    def from_response(cls, response: PresetResponse) -> "PresetView":
        return cls(
            id=str(response.id),
            tool_id=response.tool_id,
            name=response.name,
            parameters=response.parameters,
            is_public=response.is_public,
            owner_id=response.owner_id,
            created_at=response.created_at,
            owner_display_name=response.owner_display_name,
            owner_avatar_url=response.owner_avatar_url,
            reaction_counts=dict(response.reaction_counts),
            user_reaction=response.user_reaction,
        )

    @classmethod
    def placeholder(
        cls,
        tool_id: str,
        name: str,
        parameters: Any,
        is_public: bool,
        owner_id: str,
        owner_display_name: str | None = None,
        owner_avatar_url: str | None = None,
    ) -> "PresetView":
        """Build the optimistic item shown while a save is in flight."""
        return cls(
            id=f"{PLACEHOLDER_ID_PREFIX}{uuid4().hex}",
            tool_id=tool_id,
            name=name,
            parameters=parameters,
            is_public=is_public,
            owner_id=owner_id,
            created_at=datetime.now(timezone.utc),
            owner_display_name=owner_display_name,
            owner_avatar_url=owner_avatar_url,
        )


@dataclass(frozen=True)
class ListScope:
    """Which listing a store mirrors."""

    kind: Literal["owned", "public"]
    tool_id: str | None = None
    search: str | None = None


@dataclass(frozen=True)
class PresetListState:
    items: tuple[PresetView, ...] = ()
    next_page: int = 0
    has_more: bool = True
    loading: bool = False
    # Bumped by every reset; page loads started under an older value are dropped
    generation: int = 0
    # Ids of items with a mutation awaiting acknowledgment
    in_flight: frozenset[str] = frozenset()

    def index_of(self, item_id: str) -> int | None:
        for index, item in enumerate(self.items):
            if item.id == item_id:
                return index
        return None

    def get(self, item_id: str) -> PresetView | None:
        index = self.index_of(item_id)
        return None if index is None else self.items[index]


@dataclass(frozen=True)
class ItemSnapshot:
    """An item's position and value captured just before an optimistic apply.

    ``item is None`` means the item did not exist yet (a save).
    """

    item_id: str
    index: int
    item: PresetView | None


# Reaction counts


def _bump(counts: dict[str, int], symbol: str, delta: int) -> None:
    value = max(0, counts.get(symbol, 0) + delta)
    if value:
        counts[symbol] = value
    else:
        counts.pop(symbol, None)


def toggle_reaction(item: PresetView, symbol: str) -> PresetView:
    """Mirror the server's toggle: add, remove (same symbol) or switch."""
    counts = dict(item.reaction_counts)
    if item.user_reaction is not None:
        _bump(counts, item.user_reaction, -1)
    new_reaction = None if item.user_reaction == symbol else symbol
    if new_reaction is not None:
        _bump(counts, new_reaction, +1)
    return replace(item, reaction_counts=counts, user_reaction=new_reaction)


def adopt_reaction_state(item: PresetView, ack: ReactionToggleResponse) -> PresetView:
    return replace(item, reaction_counts=dict(ack.reaction_counts), user_reaction=ack.user_reaction)


# List transitions


def snapshot(state: PresetListState, item_id: str) -> ItemSnapshot:
    index = state.index_of(item_id)
    if index is None:
        return ItemSnapshot(item_id=item_id, index=0, item=None)
    return ItemSnapshot(item_id=item_id, index=index, item=state.items[index])


def insert_item(state: PresetListState, item: PresetView, index: int = 0) -> PresetListState:
    items = list(state.items)
    items.insert(min(index, len(items)), item)
    return replace(state, items=tuple(items))


def remove_item(state: PresetListState, item_id: str) -> PresetListState:
    return replace(state, items=tuple(item for item in state.items if item.id != item_id))


def update_item(state: PresetListState, item_id: str, change) -> PresetListState:
    """Apply ``change(item) -> item`` to one item; unknown ids leave state unchanged."""
    return replace(
        state,
        items=tuple(change(item) if item.id == item_id else item for item in state.items),
    )


def restore(state: PresetListState, snap: ItemSnapshot) -> PresetListState:
    """Put one item back the way ``snap`` recorded it, leaving other items alone."""
    state = remove_item(state, snap.item_id)
    if snap.item is None:
        return state
    return insert_item(state, snap.item, snap.index)


def append_page(state: PresetListState, page: list[PresetView], has_more: bool) -> PresetListState:
    """Concatenate a fetched page.

    Items already present (offset windows can overlap when rows are inserted
    concurrently) are skipped. ``has_more`` is the server's verdict on the
    page; a short page ends the listing.
    """
    known = {item.id for item in state.items}
    fresh = tuple(item for item in page if item.id not in known)
    return replace(
        state,
        items=state.items + fresh,
        next_page=state.next_page + 1,
        has_more=has_more,
        loading=False,
    )


def mark_in_flight(state: PresetListState, item_id: str) -> PresetListState:
    return replace(state, in_flight=state.in_flight | {item_id})


def clear_in_flight(state: PresetListState, item_id: str) -> PresetListState:
    return replace(state, in_flight=state.in_flight - {item_id})
