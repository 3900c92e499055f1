"""Cooperative cancellation for long-running plugin operations."""

import threading

from .errors import CancelledError


class CancelToken:
    """
    Flag shared between the caller and a running operation.

    The operation polls the token at fixed checkpoints; firing it never
    interrupts a filesystem call already in progress. Safe to fire from
    another thread or a signal handler.
    """

    def __init__(self) -> None:
        self._flag = threading.Event()
        self.reason = "Download cancelled"

    def cancel(self, reason: str = "Download cancelled") -> None:
        self.reason = reason
        self._flag.set()

    @property
    def cancelled(self) -> bool:
        return self._flag.is_set()

    def raise_if_cancelled(self) -> None:
        if self._flag.is_set():
            raise CancelledError(self.reason)


def check_cancelled(token) -> None:
    """Raise CancelledError if ``token`` is set; ``None`` never cancels."""
    if token is not None:
        token.raise_if_cancelled()
