"""Cancellation tokens for blocking store operations."""

import threading
from typing import Optional

from .errors import OperationCancelledError


class CancelToken:
    """
    Cooperative cancellation signal shared by every step of an operation.

    All timed waits go through sleep(), so cancelling the token wakes a
    sleeping operation immediately instead of after its backoff delay.
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        """Request cancellation of every operation using this token."""
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelledError("Operation was cancelled")

    def sleep(self, seconds: float) -> None:
        """
        Wait for the given number of seconds.

        Raises:
            OperationCancelledError: If the token is (or becomes) cancelled
        """
        if self._event.wait(max(0.0, seconds)):
            raise OperationCancelledError("Operation was cancelled")


def ensure_token(cancel: Optional[CancelToken]) -> CancelToken:
    """Return the given token, or a fresh one that is never cancelled."""
    return cancel if cancel is not None else CancelToken()
