"""Retry helpers for transient storage backend faults.

Every remote call in the commit and read paths goes through retry(), so the
retry loop lives here once instead of at each call site. Backoff is
exponential (base * 2^attempt, capped) and sleeps through the caller's
CancelToken.
"""

import logging
from typing import Callable, Optional, TypeVar

from pydantic import BaseModel, Field

from .cancellation import CancelToken, ensure_token
from .errors import (
    BlobNotFoundError,
    RetriesExhaustedError,
    TransientBackendError,
)

T = TypeVar("T")

logger = logging.getLogger(__name__)


class RetryPolicy(BaseModel):
    """How often and how patiently transient faults are retried."""
    max_attempts: int = Field(default=5, ge=1)           # Including the first call
    base_delay_seconds: float = Field(default=0.5, ge=0)
    max_delay_seconds: float = Field(default=30.0, ge=0)

    def delay(self, attempt_index: int) -> float:
        """
        Backoff delay before retry number ``attempt_index + 1``.

        Example:
            >>> RetryPolicy().delay(0)
            0.5
            >>> RetryPolicy().delay(3)
            4.0
        """
        if attempt_index < 0:
            return 0.0
        return min(self.base_delay_seconds * (2 ** attempt_index), self.max_delay_seconds)


DEFAULT_RETRY_POLICY = RetryPolicy()


def is_transient(exc: BaseException) -> bool:
    """Default fault classifier: only TransientBackendError is retried."""
    return isinstance(exc, TransientBackendError)


def retry(
    operation: Callable[[], T],
    cancel: Optional[CancelToken] = None,
    policy: Optional[RetryPolicy] = None,
    classify: Callable[[BaseException], bool] = is_transient,
) -> T:
    """
    Call ``operation`` until it succeeds or fails with a non-transient fault.

    Args:
        operation: Zero-argument callable performing one remote call
        cancel: Cancellation token checked before each attempt and used for sleeping
        policy: Retry policy (defaults to DEFAULT_RETRY_POLICY)
        classify: Returns True for faults worth retrying

    Returns:
        Whatever ``operation`` returns

    Raises:
        RetriesExhaustedError: If every attempt failed with a transient fault
        OperationCancelledError: If cancelled while waiting
        Exception: Any non-transient fault, unchanged
    """
    cancel = ensure_token(cancel)
    policy = policy or DEFAULT_RETRY_POLICY

    attempt = 0
    while True:
        cancel.raise_if_cancelled()
        try:
            return operation()
        except Exception as e:
            if not classify(e):
                raise
            attempt += 1
            if attempt >= policy.max_attempts:
                raise RetriesExhaustedError(attempt, e) from e
            delay = policy.delay(attempt - 1)
            logger.warning(
                "Transient backend fault (attempt %d/%d), retrying in %.2fs: %s",
                attempt, policy.max_attempts, delay, e,
            )
            cancel.sleep(delay)


def retry_or_false(
    operation: Callable[[], bool],
    cancel: Optional[CancelToken] = None,
    policy: Optional[RetryPolicy] = None,
) -> bool:
    """Like retry(), but a BlobNotFoundError means ``False`` instead of an error."""
    try:
        return retry(operation, cancel, policy)
    except BlobNotFoundError:
        return False
