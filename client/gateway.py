"""Request/response access to the preset store API.

Each call is a single round trip. Transport failures and server-side
transient errors are raised as ``TransientIOError``; every other failure is
raised as the matching store exception so callers can tell terminal
failures from retryable ones.
"""

from __future__ import annotations

from typing import Any, Protocol
from uuid import UUID

import httpx

from backend.app.constants import ReactionSymbol
from backend.app.core.exceptions import (
    ERRORS_BY_STATUS,
    PresetNotFoundError,
    PresetStoreError,
    PresetValidationError,
    TransientIOError,
)
from backend.app.schemas.auth import CurrentUser
from backend.app.schemas.preset import PresetPage, PresetResponse, ReactionToggleResponse
from client.config import get_client_settings


class PresetGateway(Protocol):
    """Server operations the sync controller depends on."""

    user: CurrentUser | None

    async def save(
        self, tool_id: str, name: str, parameters: Any, is_public: bool
    ) -> PresetResponse: ...

    async def get(self, preset_id: str) -> PresetResponse: ...

    async def set_visibility(self, preset_id: str, is_public: bool) -> PresetResponse: ...

    async def soft_delete(self, preset_id: str) -> None: ...

    async def list_owned(self, tool_id: str, page: int, page_size: int) -> PresetPage: ...

    async def list_public(
        self, tool_id: str | None, page: int, page_size: int, search: str | None = None
    ) -> PresetPage: ...

    async def toggle_reaction(
        self, preset_id: str, symbol: str | ReactionSymbol
    ) -> ReactionToggleResponse: ...


class HttpPresetGateway:
    """
    Async HTTP gateway to the preset API using httpx.

    Must be used as an async context manager unless an ``httpx.AsyncClient``
    is passed in.

    Usage:
        async with HttpPresetGateway(user=CurrentUser(user_id="u1")) as gateway:
            page = await gateway.list_owned("team-shuffler", page=0, page_size=15)
    """

    def __init__(
        self,
        user: CurrentUser | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        settings = get_client_settings()
        self.user = user
        self.base_url = (base_url or settings.base_url).rstrip("/")
        self.timeout = timeout or settings.request_timeout_seconds
        self._transport = transport
        self._client = client
        self._owns_client = client is None

    async def __aenter__(self) -> HttpPresetGateway:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    # Operations

    async def save(
        self, tool_id: str, name: str, parameters: Any, is_public: bool
    ) -> PresetResponse:
        response = await self._request(
            "POST",
            "/presets",
            json={
                "tool_id": tool_id,
                "name": name,
                "parameters": parameters,
                "is_public": is_public,
            },
        )
        return PresetResponse.model_validate(response.json())

    async def get(self, preset_id: str) -> PresetResponse:
        response = await self._request("GET", f"/presets/{preset_id}", preset_id=preset_id)
        return PresetResponse.model_validate(response.json())

    async def set_visibility(self, preset_id: str, is_public: bool) -> PresetResponse:
        response = await self._request(
            "PATCH",
            f"/presets/{preset_id}/visibility",
            json={"is_public": is_public},
            preset_id=preset_id,
        )
        return PresetResponse.model_validate(response.json())

    async def soft_delete(self, preset_id: str) -> None:
        await self._request("DELETE", f"/presets/{preset_id}", preset_id=preset_id)

    async def list_owned(self, tool_id: str, page: int, page_size: int) -> PresetPage:
        response = await self._request(
            "GET",
            "/presets/owned",
            params={"tool_id": tool_id, "page": page, "page_size": page_size},
        )
        return PresetPage.model_validate(response.json())

    async def list_public(
        self, tool_id: str | None, page: int, page_size: int, search: str | None = None
    ) -> PresetPage:
        params: dict[str, Any] = {"page": page, "page_size": page_size}
        if tool_id:
            params["tool_id"] = tool_id
        if search:
            params["q"] = search
        response = await self._request("GET", "/presets/public", params=params)
        return PresetPage.model_validate(response.json())

    async def toggle_reaction(
        self, preset_id: str, symbol: str | ReactionSymbol
    ) -> ReactionToggleResponse:
        value = symbol.value if isinstance(symbol, ReactionSymbol) else symbol
        response = await self._request(
            "POST",
            f"/presets/{preset_id}/reactions",
            json={"symbol": value},
            preset_id=preset_id,
        )
        return ReactionToggleResponse.model_validate(response.json())

    # Transport

    def _headers(self) -> dict[str, str]:
        if self.user is None:
            return {}
        headers = {"X-User-Id": self.user.user_id}
        if self.user.display_name:
            headers["X-User-Display-Name"] = self.user.display_name
        if self.user.email:
            headers["X-User-Email"] = self.user.email
        if self.user.avatar_url:
            headers["X-User-Avatar-Url"] = self.user.avatar_url
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        preset_id: str | UUID | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        if self._client is None:
            raise RuntimeError("HttpPresetGateway must be used as an async context manager")

        try:
            response = await self._client.request(method, path, headers=self._headers(), **kwargs)
        except httpx.TimeoutException as e:
            raise TransientIOError("Request timed out", {"path": path}) from e
        except httpx.HTTPError as e:
            raise TransientIOError(f"Network error: {e}", {"path": path}) from e

        if response.is_success:
            return response
        raise error_from_response(response, preset_id)


def error_from_response(response: httpx.Response, preset_id: str | UUID | None = None) -> PresetStoreError:
    """Rebuild the store exception a failed response stands for."""
    try:
        body = response.json()
    except ValueError:
        body = {}
    detail = body.get("detail") if isinstance(body, dict) else None
    details = body.get("details") if isinstance(body, dict) else None

    status = response.status_code
    if status == 404:
        return PresetNotFoundError(preset_id or "unknown", details)
    if status == 422 and not isinstance(detail, str):
        # FastAPI request validation: detail is a list of field errors
        return PresetValidationError("Invalid request", {"errors": detail})
    if status in ERRORS_BY_STATUS:
        return ERRORS_BY_STATUS[status](detail or response.reason_phrase, details)
    if status >= 500:
        return TransientIOError(detail or f"Server error ({status})", details)
    return PresetStoreError(detail or f"Request failed ({status})", details)
