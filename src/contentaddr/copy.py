"""Server-side copy from staging to persistent storage."""

import logging
from typing import Optional

from .cancellation import CancelToken, ensure_token
from .constants import COPY_POLL_INITIAL_SECONDS, COPY_POLL_MAX_SECONDS
from .errors import CopyFailedError, UnexpectedCopyStateError
from .retry import RetryPolicy, retry
from .storage.base import BlobHandle
from .storage_models import TERMINAL_FAILURES, BlobProperties, CopyStatus

logger = logging.getLogger(__name__)


def parse_copy_status(name: str, status: Optional[str]) -> CopyStatus:
    """
    Parse a copy status reported by the backend.

    Raises:
        UnexpectedCopyStateError: If the status is missing or unknown
    """
    try:
        return CopyStatus(str(status).lower())
    except ValueError:
        raise UnexpectedCopyStateError(name, status)


def copy_to_persistent(
    temporary: BlobHandle,
    final: BlobHandle,
    cancel: Optional[CancelToken] = None,
    *,
    initial_delay: float = COPY_POLL_INITIAL_SECONDS,
    max_delay: float = COPY_POLL_MAX_SECONDS,
    retry_policy: Optional[RetryPolicy] = None,
) -> BlobProperties:
    """
    Copy a temporary blob to its persistent final blob.

    Returns when the backend reports the copy as successful. The copy runs
    asynchronously on the backend, so its state is polled with exponential
    backoff (doubling from ``initial_delay`` up to ``max_delay`` seconds).

    Args:
        temporary: Staging blob to copy from
        final: Persistent blob to copy into
        cancel: Cancellation token, also interrupts backoff sleeps
        initial_delay: First wait between polls (seconds)
        max_delay: Longest wait between polls (seconds)
        retry_policy: Retry policy for each backend call

    Returns:
        Properties of the final blob after the copy succeeded

    Raises:
        CopyFailedError: If the backend reports the copy failed, aborted or invalid
        UnexpectedCopyStateError: If the backend reports any other state
    """
    cancel = ensure_token(cancel)

    retry(lambda: final.start_copy_from(temporary), cancel, retry_policy)

    delay = initial_delay
    while True:
        props = retry(final.fetch_properties, cancel, retry_policy)
        status = parse_copy_status(final.name, props.copy_status)

        if status is CopyStatus.PENDING:
            logger.debug("Copy to %s pending, polling again in %.2fs", final.name, delay)
            cancel.sleep(delay)
            delay = min(delay * 2, max_delay)
            continue

        if status is CopyStatus.SUCCESS:
            return props

        if status in TERMINAL_FAILURES:
            raise CopyFailedError(final.name, status.value)

        raise UnexpectedCopyStateError(final.name, status)
