"""Content-addressable stores: read access by hash, and staged commits.

Writers upload data to a temporary blob in the staging container (through a
signed upload URL), then commit it. Committing hashes the content, copies
it to ``<realm>/<hash>`` in the persistent container unless that blob
already exists, and schedules the temporary blob for deletion.
"""

import logging
import time
import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from .blob_ref import BlobRef
from .cancellation import CancelToken, ensure_token
from .cleanup import schedule_delete
from .config import StoreConfig
from .constants import (
    CLEANUP_DELAY_SECONDS,
    COPY_POLL_INITIAL_SECONDS,
    COPY_POLL_MAX_SECONDS,
    DOWNLOAD_CLOCK_SKEW_SECONDS,
    HASH_BUFFER_BYTES,
)
from .copy import copy_to_persistent
from .errors import BlobNotFoundError, CommitBlobError
from .hashing import blob_name, compute_stream_digest, normalize_hash, validate_realm
from .read_stream import BlobReadStream
from .retry import RetryPolicy, retry, retry_or_false
from .storage.base import BlobContainer, BlobHandle
from .storage_models import BlobPermission, ResponseHeaders, SignedUrlPolicy, to_utc

logger = logging.getLogger(__name__)

# Called after each successful commit with
# (elapsed, realm, hash, size, existed). ``existed`` is True when the
# content was already stored and no copy was needed.
OnCommit = Callable[[timedelta, str, str, int, bool], None]


class ReadOnlyStore:
    """
    Read access to the blobs of one realm in a persistent container.

    Blobs are named ``<realm>/<hash>``; the realm prefix keeps blobs from
    separate customers apart.
    """

    def __init__(
        self,
        realm: str,
        persistent: BlobContainer,
        *,
        retry_policy: Optional[RetryPolicy] = None,
        download_clock_skew_seconds: float = DOWNLOAD_CLOCK_SKEW_SECONDS,
    ):
        self.realm = validate_realm(realm)
        self.persistent = persistent
        self.retry_policy = retry_policy
        self.download_clock_skew = timedelta(seconds=download_clock_skew_seconds)

    def blob_name(self, hash: str) -> str:
        return blob_name(self.realm, hash)

    def get(self, hash: str) -> BlobRef:
        """Reference to the blob with this hash (which may not exist)."""
        hash = normalize_hash(hash)
        return self._ref(hash, self.persistent.get_blob(self.blob_name(hash)))

    def exists(self, hash: str, cancel: Optional[CancelToken] = None) -> bool:
        return self.get(hash).exists(cancel)

    def get_size(self, hash: str, cancel: Optional[CancelToken] = None) -> int:
        return self.get(hash).get_size(cancel)

    def open(self, hash: str, cancel: Optional[CancelToken] = None) -> BlobReadStream:
        return self.get(hash).open(cancel)

    def _ref(self, hash: str, blob: BlobHandle) -> BlobRef:
        return BlobRef(
            realm=self.realm,
            hash=hash,
            blob=blob,
            retry_policy=self.retry_policy,
            clock_skew=self.download_clock_skew,
        )


class Store(ReadOnlyStore):
    """
    Persistent content-addressable store with a staging container.

    Supports issuing upload URLs into staging, and committing staged blobs
    to the persistent container.
    """

    def __init__(
        self,
        realm: str,
        persistent: BlobContainer,
        staging: BlobContainer,
        on_commit: Optional[OnCommit] = None,
        *,
        retry_policy: Optional[RetryPolicy] = None,
        copy_poll_initial_seconds: float = COPY_POLL_INITIAL_SECONDS,
        copy_poll_max_seconds: float = COPY_POLL_MAX_SECONDS,
        cleanup_delay_seconds: float = CLEANUP_DELAY_SECONDS,
        hash_buffer_bytes: int = HASH_BUFFER_BYTES,
        download_clock_skew_seconds: float = DOWNLOAD_CLOCK_SKEW_SECONDS,
    ):
        """
        Initialize store.

        Args:
            realm: Blob name prefix for this customer
            persistent: Committed blobs are stored here, named ``<realm>/<hash>``
            staging: Temporary blobs are uploaded here
            on_commit: Called after each successful commit (for metrics)
        """
        super().__init__(
            realm,
            persistent,
            retry_policy=retry_policy,
            download_clock_skew_seconds=download_clock_skew_seconds,
        )
        self.staging = staging
        self.on_commit = on_commit
        self.copy_poll_initial_seconds = copy_poll_initial_seconds
        self.copy_poll_max_seconds = copy_poll_max_seconds
        self.cleanup_delay = timedelta(seconds=cleanup_delay_seconds)
        self.hash_buffer_bytes = hash_buffer_bytes

    @classmethod
    def from_config(cls, config: StoreConfig, on_commit: Optional[OnCommit] = None) -> "Store":
        """Build a store and its containers from configuration."""
        from .storage.factory import make_container

        return cls(
            config.realm,
            make_container(config, "persistent"),
            make_container(config, "staging"),
            on_commit,
            retry_policy=config.retry,
            copy_poll_initial_seconds=config.copy_poll_initial_seconds,
            copy_poll_max_seconds=config.copy_poll_max_seconds,
            cleanup_delay_seconds=config.cleanup_delay_seconds,
            hash_buffer_bytes=config.hash_buffer_bytes,
            download_clock_skew_seconds=config.download_clock_skew_seconds,
        )

    def new_temporary_name(self, now: Optional[datetime] = None) -> str:
        """
        Fresh staging name in the ``<date>/<realm>/<uuid>`` format.

        The date prefix makes cleanup of abandoned uploads easy, the realm
        prevents cross-realm contamination, and the uuid avoids collisions.
        """
        now = to_utc(now) if now else datetime.now(timezone.utc)
        return f"{now:%Y-%m-%d}/{self.realm}/{uuid.uuid4()}"

    def get_signed_upload_url(
        self, name: str, life: timedelta, now: Optional[datetime] = None
    ) -> str:
        """
        URL of a temporary blob where data can be uploaded.

        The blob does not need to exist yet. Commit it afterwards with
        commit_temporary_blob().

        Args:
            name: Staging blob name, preferably from new_temporary_name()
            life: How long the URL allows writing (and deleting) the blob
            now: Current time (defaults to the system clock, UTC)
        """
        now = to_utc(now) if now else datetime.now(timezone.utc)
        blob = self.staging.get_blob(name)
        return blob.generate_signed_url(SignedUrlPolicy(
            permission=BlobPermission.WRITE | BlobPermission.DELETE,
            expiry=now + life,
            headers=ResponseHeaders(cache_control="private"),
        ))

    def commit_temporary_blob(self, name: str, cancel: Optional[CancelToken] = None) -> BlobRef:
        """
        Commit a blob from staging to the persistent store.

        Hashes the full content of the temporary blob, copies it to
        ``<realm>/<hash>`` unless that blob already exists, and schedules the
        temporary blob for deletion after the cleanup delay.

        Args:
            name: Full name of the temporary blob
            cancel: Cancellation token

        Returns:
            Reference to the committed blob, readable as soon as this returns

        Raises:
            CommitBlobError: If the temporary blob does not exist
            CopyFailedError: If the backend gave up on the copy
            RetriesExhaustedError: If the backend stayed unavailable
        """
        cancel = ensure_token(cancel)
        started = time.monotonic()

        temporary = self.staging.get_blob(name)
        if not retry(temporary.exists, cancel, self.retry_policy):
            raise CommitBlobError(self.realm, name, "temporary blob does not exist.")

        try:
            length = retry(temporary.fetch_properties, cancel, self.retry_policy).size
        except BlobNotFoundError:
            raise CommitBlobError(self.realm, name, "temporary blob does not exist.")

        buffer_size = max(1, min(length, self.hash_buffer_bytes))
        with BlobReadStream(temporary, length, cancel, self.retry_policy) as stream:
            hash, size = compute_stream_digest(stream, buffer_size)
        logger.debug("Hashed staging blob %s: %s (%d bytes)", name, hash, size)

        final = self.persistent.get_blob(self.blob_name(hash))

        try:
            existed = retry_or_false(final.exists, cancel, self.retry_policy)

            if existed:
                logger.debug("Blob %s already stored, skipping copy", final.name)
            else:
                copy_to_persistent(
                    temporary,
                    final,
                    cancel,
                    initial_delay=self.copy_poll_initial_seconds,
                    max_delay=self.copy_poll_max_seconds,
                    retry_policy=self.retry_policy,
                )

            if self.on_commit is not None:
                elapsed = timedelta(seconds=time.monotonic() - started)
                self.on_commit(elapsed, self.realm, hash, size, existed)
        finally:
            # Always delete the temporary blob, even if the copy failed
            schedule_delete(temporary, self.cleanup_delay)
            logger.debug("Scheduled deletion of %s in %s", name, self.cleanup_delay)

        logger.info(
            "Committed %s as %s (%d bytes%s)",
            name, final.name, size, ", deduplicated" if existed else "",
        )
        return self._ref(hash, final)
