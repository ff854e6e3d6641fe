"""Delayed, fire-and-forget deletion of staging blobs.

All pending deletions share one daemon worker thread, which sleeps until the
earliest one is due. Scheduling a deletion never blocks, and nothing the
caller cancels afterwards affects it.
"""

import heapq
import itertools
import logging
import threading
import time
from datetime import timedelta
from typing import List, Optional, Tuple

from .storage.base import BlobHandle

logger = logging.getLogger(__name__)


class ScheduledDelete:
    """A pending deletion returned by schedule_delete()."""

    def __init__(self, blob: BlobHandle, due: float):
        self.blob = blob
        self.due = due
        self.cancelled = False
        self._finished = threading.Event()

    def cancel(self) -> None:
        """Skip the deletion if it has not run yet."""
        self.cancelled = True

    @property
    def done(self) -> bool:
        return self._finished.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Wait until the deletion ran (or was skipped). Returns False on timeout."""
        return self._finished.wait(timeout)


def _delete_quietly(blob: BlobHandle) -> None:
    try:
        deleted = blob.delete_if_exists()
    except Exception as e:
        logger.warning("Failed to delete staging blob %s: %s", blob.name, e)
        return
    if deleted:
        logger.debug("Deleted staging blob %s", blob.name)


class DeleteScheduler:
    """Runs delayed deletions in due-time order on a single daemon thread."""

    def __init__(self):
        self._queue: List[Tuple[float, int, ScheduledDelete]] = []
        self._counter = itertools.count()
        self._condition = threading.Condition()
        self._worker: Optional[threading.Thread] = None

    def schedule(self, blob: BlobHandle, delay: timedelta) -> ScheduledDelete:
        entry = ScheduledDelete(blob, time.monotonic() + delay.total_seconds())
        with self._condition:
            heapq.heappush(self._queue, (entry.due, next(self._counter), entry))
            if self._worker is None or not self._worker.is_alive():
                self._worker = threading.Thread(
                    target=self._run, name="contentaddr-cleanup", daemon=True
                )
                self._worker.start()
            self._condition.notify()
        return entry

    @property
    def pending(self) -> int:
        with self._condition:
            return len(self._queue)

    def _next_due(self) -> ScheduledDelete:
        with self._condition:
            while True:
                if not self._queue:
                    self._condition.wait()
                    continue
                due, _, entry = self._queue[0]
                remaining = due - time.monotonic()
                if remaining > 0:
                    self._condition.wait(remaining)
                    continue
                heapq.heappop(self._queue)
                return entry

    def _run(self) -> None:
        while True:
            entry = self._next_due()
            if not entry.cancelled:
                _delete_quietly(entry.blob)
            entry._finished.set()


_default_scheduler = DeleteScheduler()


def schedule_delete(blob: BlobHandle, delay: timedelta) -> ScheduledDelete:
    """
    Delete a blob after a delay, without waiting for it.

    The delay leaves time for another thread (or server) that may still be
    touching the blob. Failures are logged and otherwise ignored.
    """
    return _default_scheduler.schedule(blob, delay)
