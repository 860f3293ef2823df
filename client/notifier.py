"""User-visible notifications for sync outcomes."""

import logging
from typing import Protocol

from backend.app.core.exceptions import PresetStoreError, TransientIOError

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    """Surface for toasts or banners in the host UI."""

    def success(self, title: str, message: str) -> None: ...

    def error(self, title: str, message: str, *, dismissable: bool = True) -> None: ...


class LoggingNotifier:
    """Notifier that writes to the log; used when no UI is attached."""

    def success(self, title: str, message: str) -> None:
        logger.info(f"{title}: {message}")

    def error(self, title: str, message: str, *, dismissable: bool = True) -> None:
        logger.error(f"{title}: {message}")


def report_failure(notifier: Notifier, action: str, error: BaseException) -> None:
    """Tell the user a mutation failed and was undone.

    Transient failures are dismissable; the user may simply try again.
    """
    if isinstance(error, TransientIOError):
        notifier.error(
            f"Could not {action}",
            f"{error.message}. Your change was undone, please try again.",
            dismissable=True,
        )
    elif isinstance(error, PresetStoreError):
        notifier.error(f"Could not {action}", error.message, dismissable=False)
    else:
        notifier.error(f"Could not {action}", str(error) or type(error).__name__, dismissable=False)
