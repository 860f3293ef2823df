"""Optimistic mutation protocol between a preset list and the store API.

Every user mutation runs in three phases:

1. optimistic apply - the store's state is updated synchronously, before any
   network call, after capturing a snapshot of the affected item;
2. dispatch - the gateway call is awaited with a deadline;
3. reconcile - on success the server's answer replaces optimistic data (a
   save swaps its placeholder id for the real one); on failure the item is
   restored from the snapshot and the user is told.

Per item::

    Idle --mutate--> OptimisticallyApplied --ack--> Idle
                                           --error--> Idle (reverted)

An item with a call in flight is busy: ``store.is_busy(item_id)`` should
disable its controls, and a second mutation raises ``MutationInFlightError``
without touching state. Different items are independent and may be in
flight together; because snapshots are per item, reverting one never undoes
another.
"""

import asyncio
import logging
from dataclasses import replace
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from backend.app.constants import ReactionSymbol
from backend.app.core.exceptions import (
    AuthenticationRequiredError,
    MutationInFlightError,
    PresetValidationError,
    TransientIOError,
)
from backend.app.schemas.preset import PresetPage, PresetResponse, ReactionToggleResponse
from backend.app.services.reaction_service import parse_symbol
from client.config import ClientSettings, get_client_settings
from client.gateway import PresetGateway
from client.notifier import LoggingNotifier, Notifier, report_failure
from client.state import (
    PresetView,
    adopt_reaction_state,
    append_page,
    insert_item,
    remove_item,
    restore,
    toggle_reaction,
    update_item,
)
from client.store import PresetListStore, Transition

logger = logging.getLogger(__name__)

T = TypeVar("T")


class PresetSyncController:
    """Runs user actions against one ``PresetListStore``."""

    def __init__(
        self,
        store: PresetListStore,
        gateway: PresetGateway,
        notifier: Notifier | None = None,
        settings: ClientSettings | None = None,
    ):
        self.store = store
        self.gateway = gateway
        self.notifier = notifier or LoggingNotifier()
        self.settings = settings or get_client_settings()

    # Mutations

    async def save(
        self, tool_id: str, name: str, parameters: Any, is_public: bool = False
    ) -> PresetView:
        """Save the current parameters as a new preset at the top of the list."""
        user = self._require_user("save presets")
        name = name.strip()
        if not name:
            error = PresetValidationError("Preset name must not be empty")
            report_failure(self.notifier, "save preset", error)
            raise error

        placeholder = PresetView.placeholder(
            tool_id=tool_id,
            name=name,
            parameters=parameters,
            is_public=is_public,
            owner_id=user.user_id,
            owner_display_name=user.display_name,
            owner_avatar_url=user.avatar_url,
        )

        def reconcile(response: PresetResponse) -> Transition:
            confirmed = PresetView.from_response(response)
            return lambda s: update_item(s, placeholder.id, lambda _: confirmed)

        response = await self._mutate(
            placeholder.id,
            "save preset",
            optimistic=lambda s: insert_item(s, placeholder, 0),
            call=lambda: self.gateway.save(tool_id, name, parameters, is_public),
            reconcile=reconcile,
        )
        self.notifier.success("Preset saved", f'Your settings have been saved as "{name}".')
        return PresetView.from_response(response)

    async def delete(self, item_id: str) -> None:
        """Soft-delete a preset; it disappears immediately and returns on failure."""
        self._require_user("delete presets")
        self._require_persisted(item_id)
        await self._mutate(
            item_id,
            "delete preset",
            optimistic=lambda s: remove_item(s, item_id),
            call=lambda: self.gateway.soft_delete(item_id),
        )
        self.notifier.success("Preset deleted", "The saved preset has been removed.")

    async def set_visibility(self, item_id: str, is_public: bool) -> None:
        """Make a preset public or private."""
        self._require_user("change visibility")
        self._require_persisted(item_id)

        def reconcile(response: PresetResponse) -> Transition:
            return lambda s: update_item(
                s, item_id, lambda item: replace(item, is_public=response.is_public)
            )

        await self._mutate(
            item_id,
            "change visibility",
            optimistic=lambda s: update_item(
                s, item_id, lambda item: replace(item, is_public=is_public)
            ),
            call=lambda: self.gateway.set_visibility(item_id, is_public),
            reconcile=reconcile,
        )

    async def toggle_reaction(self, item_id: str, symbol: str | ReactionSymbol) -> None:
        """Add, switch or remove the user's reaction on a preset."""
        self._require_user("react")
        self._require_persisted(item_id)
        try:
            value = parse_symbol(symbol).value
        except PresetValidationError as e:
            report_failure(self.notifier, "save your reaction", e)
            raise

        def reconcile(ack: ReactionToggleResponse) -> Transition:
            return lambda s: update_item(s, item_id, lambda item: adopt_reaction_state(item, ack))

        await self._mutate(
            item_id,
            "save your reaction",
            optimistic=lambda s: update_item(s, item_id, lambda item: toggle_reaction(item, value)),
            call=lambda: self.gateway.toggle_reaction(item_id, value),
            reconcile=reconcile,
        )

    # Listing

    async def load_next_page(self) -> list[PresetView]:
        """Fetch and append the next page; returns the newly fetched items.

        Does nothing once a short page has been seen or while a load is running.
        A page that arrives after the store was reset belongs to the old
        listing and is dropped.
        """
        state = self.store.state
        if not state.has_more or state.loading:
            return []

        generation = state.generation
        self.store.apply(lambda s: replace(s, loading=True))
        try:
            page = await self._dispatch(lambda: self._fetch(state.next_page))
        except Exception as e:
            if self.store.state.generation == generation:
                self.store.apply(lambda s: replace(s, loading=False))
            report_failure(self.notifier, "load presets", e)
            raise

        if self.store.state.generation != generation:
            logger.debug(f"Dropping page {state.next_page} loaded before a refresh")
            return []

        views = [PresetView.from_response(item) for item in page.items]
        self.store.apply(lambda s: append_page(s, views, page.has_more))
        return views

    async def refresh(self) -> list[PresetView]:
        """Restart the listing from the first page."""
        self.store.reset()
        return await self.load_next_page()

    # Internals

    async def _mutate(
        self,
        item_id: str,
        action: str,
        optimistic: Transition,
        call: Callable[[], Awaitable[T]],
        reconcile: Callable[[T], Transition] | None = None,
    ) -> T:
        if self.store.is_busy(item_id):
            raise MutationInFlightError(item_id)

        snap = self.store.snapshot(item_id)
        self.store.begin(item_id)
        self.store.apply(optimistic)
        try:
            result = await self._dispatch(call)
        except BaseException as e:
            self.store.apply(lambda s: restore(s, snap))
            logger.warning(f"Reverted {action} on {item_id}: {type(e).__name__}: {e}")
            if isinstance(e, Exception):
                report_failure(self.notifier, action, e)
            raise
        finally:
            self.store.settle(item_id)

        if reconcile is not None:
            self.store.apply(reconcile(result))
        return result

    async def _dispatch(self, call: Callable[[], Awaitable[T]]) -> T:
        timeout = self.settings.request_timeout_seconds
        try:
            return await asyncio.wait_for(call(), timeout=timeout)
        except asyncio.TimeoutError as e:
            raise TransientIOError("The server did not respond in time", {"timeout": timeout}) from e

    async def _fetch(self, page: int) -> PresetPage:
        scope = self.store.scope
        if scope.kind == "owned":
            self._require_user("see your presets")
            return await self.gateway.list_owned(scope.tool_id or "", page, self.store.page_size)
        return await self.gateway.list_public(scope.tool_id, page, self.store.page_size, scope.search)

    def _require_user(self, action: str):
        if self.gateway.user is None:
            error = AuthenticationRequiredError(f"Sign in to {action}")
            report_failure(self.notifier, action, error)
            raise error
        return self.gateway.user

    def _require_persisted(self, item_id: str) -> None:
        item = self.store.get(item_id)
        if item is None:
            raise KeyError(item_id)
        if item.is_placeholder:
            # Still being saved; the control stays disabled until the real id arrives
            raise MutationInFlightError(item_id)
