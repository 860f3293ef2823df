"""Owned state container for one preset list."""

import logging
from collections.abc import Callable

from client.state import (
    ItemSnapshot,
    ListScope,
    PresetListState,
    PresetView,
    clear_in_flight,
    mark_in_flight,
    snapshot,
)

logger = logging.getLogger(__name__)

Listener = Callable[[PresetListState], None]
Transition = Callable[[PresetListState], PresetListState]


class PresetListStore:
    """Holds the current ``PresetListState`` of one listing and notifies subscribers.

    State only changes through ``apply`` with a pure transition, so every
    intermediate state a UI can observe is one a reducer produced.
    """

    def __init__(self, scope: ListScope, page_size: int = 15):
        self.scope = scope
        self.page_size = page_size
        self._state = PresetListState()
        self._listeners: list[Listener] = []

    @property
    def state(self) -> PresetListState:
        return self._state

    @property
    def items(self) -> tuple[PresetView, ...]:
        return self._state.items

    def get(self, item_id: str) -> PresetView | None:
        return self._state.get(item_id)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener`` after every change. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def apply(self, transition: Transition) -> PresetListState:
        new_state = transition(self._state)
        if new_state is not self._state:
            self._state = new_state
            for listener in list(self._listeners):
                listener(new_state)
        return self._state

    def reset(self) -> None:
        """Drop everything but in-flight markers and start paging from scratch.

        A page load still running from before the reset is discarded when it
        completes.
        """
        in_flight = self._state.in_flight
        generation = self._state.generation + 1
        self.apply(lambda _: PresetListState(in_flight=in_flight, generation=generation))

    # Per-item mutation bookkeeping

    def is_busy(self, item_id: str) -> bool:
        """Whether a control acting on ``item_id`` should be disabled."""
        return item_id in self._state.in_flight

    def snapshot(self, item_id: str) -> ItemSnapshot:
        return snapshot(self._state, item_id)

    def begin(self, item_id: str) -> None:
        self.apply(lambda s: mark_in_flight(s, item_id))

    def settle(self, item_id: str) -> None:
        self.apply(lambda s: clear_in_flight(s, item_id))
