"""Custom exceptions for the application."""

from typing import Any


class PresetStoreError(Exception):
    """Base exception for the preset store."""

    code = "preset_store_error"
    status_code = 500

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert error to JSON-serializable dict."""
        return {"detail": self.message, "error": self.code, "details": self.details}


class AuthenticationRequiredError(PresetStoreError):
    """Raised when an operation needs a caller identity and none was supplied."""

    code = "authentication_required"
    status_code = 401


class PermissionDeniedError(PresetStoreError):
    """Raised when a non-owner attempts to mutate a preset."""

    code = "permission_denied"
    status_code = 403


class PresetNotFoundError(PresetStoreError):
    """Raised when a preset is missing, soft-deleted or not visible to the caller."""

    code = "not_found"
    status_code = 404

    def __init__(self, preset_id: Any, details: dict[str, Any] | None = None):
        self.preset_id = preset_id
        super().__init__(f"Preset {preset_id} not found", details)


class PresetValidationError(PresetStoreError):
    """Exception for rejected input (empty name, unknown reaction symbol, bad cursor)."""

    code = "validation_error"
    status_code = 422


class TransientIOError(PresetStoreError):
    """Exception for network or storage failures that may succeed if repeated by the user."""

    code = "transient_io_error"
    status_code = 503


class MutationInFlightError(PresetStoreError):
    """Raised client-side when an item already has a mutation awaiting acknowledgment."""

    code = "mutation_in_flight"
    status_code = 409

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"A change to {item_id} is still in progress")


# HTTP status -> exception class, used by the client gateway
ERRORS_BY_STATUS: dict[int, type[PresetStoreError]] = {
    cls.status_code: cls
    for cls in (
        AuthenticationRequiredError,
        PermissionDeniedError,
        PresetValidationError,
        TransientIOError,
    )
}
