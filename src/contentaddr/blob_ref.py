"""References to committed, content-addressed blobs."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional

from .cancellation import CancelToken
from .constants import DOWNLOAD_CLOCK_SKEW_SECONDS
from .errors import BlobNotFoundError, NoSuchBlobError
from .filenames import content_disposition
from .read_stream import BlobReadStream
from .retry import RetryPolicy, retry
from .storage.base import BlobHandle
from .storage_models import BlobPermission, ResponseHeaders, SignedUrlPolicy, to_utc


@dataclass(frozen=True)
class BlobRef:
    """
    Handle to one committed blob, identified by realm and hash.

    The realm is the blob name prefix: it keeps blobs from separate
    customers apart. ``blob`` is the backend handle where the data lives.
    """
    realm: str
    hash: str
    blob: BlobHandle = field(compare=False)
    retry_policy: Optional[RetryPolicy] = field(default=None, compare=False, repr=False)
    clock_skew: timedelta = field(
        default=timedelta(seconds=DOWNLOAD_CLOCK_SKEW_SECONDS), compare=False, repr=False
    )

    @property
    def name(self) -> str:
        """Backend name of the blob (``<realm>/<hash>``)."""
        return self.blob.name

    def exists(self, cancel: Optional[CancelToken] = None) -> bool:
        return retry(self.blob.exists, cancel, self.retry_policy)

    def get_size(self, cancel: Optional[CancelToken] = None) -> int:
        """
        Size of the blob in bytes.

        Uses the size already known to the backend handle when there is one,
        and otherwise fetches the blob properties.

        Raises:
            NoSuchBlobError: If the blob does not exist
        """
        props = self.blob.properties
        if props is not None and props.size >= 0:
            return props.size

        try:
            props = retry(self.blob.fetch_properties, cancel, self.retry_policy)
        except BlobNotFoundError:
            raise NoSuchBlobError(self.realm, self.hash)
        return props.size

    def open(self, cancel: Optional[CancelToken] = None) -> BlobReadStream:
        """
        Open the blob for reading.

        Raises:
            NoSuchBlobError: If the blob does not exist
        """
        size = self.get_size(cancel)
        return BlobReadStream(self.blob, size, cancel, self.retry_policy)

    def get_download_url(
        self,
        now: datetime,
        life: timedelta,
        filename: str,
        content_type: Optional[str] = None,
    ) -> str:
        """
        Signed, read-only URL that downloads the blob as an attachment.

        The URL becomes valid slightly before ``now`` to tolerate clock skew
        between this machine and the storage service, and expires at
        ``now + life``.

        Args:
            now: Current time (naive values are taken as UTC, aware ones converted)
            life: How long the URL stays valid
            filename: Name the browser should save the file as
            content_type: Content-Type returned with the blob
        """
        now = to_utc(now)

        return self.blob.generate_signed_url(SignedUrlPolicy(
            permission=BlobPermission.READ,
            start=now - self.clock_skew,
            expiry=now + life,
            headers=ResponseHeaders(
                content_disposition=content_disposition(filename),
                content_type=content_type,
            ),
        ))
