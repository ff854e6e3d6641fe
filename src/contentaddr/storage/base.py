"""Base protocols for blob storage backends."""

from typing import Optional, Protocol

from ..storage_models import BlobProperties, SignedUrlPolicy


class BlobHandle(Protocol):
    """
    Protocol for one named blob in a container.

    Handles are cheap to create and do not check existence. Implementations
    translate backend errors into the contentaddr taxonomy:
    BlobNotFoundError for a missing blob, TransientBackendError for faults
    worth retrying and BackendError for everything else.
    """

    @property
    def name(self) -> str:
        """Blob name within its container."""
        ...

    @property
    def url(self) -> str:
        """Unsigned URL of the blob."""
        ...

    @property
    def properties(self) -> Optional[BlobProperties]:
        """Properties from the last fetch_properties() call, or None."""
        ...

    def exists(self) -> bool:
        ...

    def fetch_properties(self) -> BlobProperties:
        """
        Fetch size and copy state from the backend and cache them.

        Raises:
            BlobNotFoundError: If the blob does not exist
        """
        ...

    def read_range(self, offset: int, length: int) -> bytes:
        """Read up to ``length`` bytes starting at ``offset``."""
        ...

    def start_copy_from(self, source: "BlobHandle") -> None:
        """
        Start a server-side copy of ``source`` into this blob.

        Returns as soon as the backend accepted the copy; completion is
        observed through fetch_properties().copy_status.
        """
        ...

    def delete_if_exists(self) -> bool:
        """Delete the blob. Returns False if it was already gone."""
        ...

    def generate_signed_url(self, policy: SignedUrlPolicy) -> str:
        """Build a signed URL granting ``policy`` on this blob."""
        ...


class BlobContainer(Protocol):
    """Protocol for a flat namespace of blobs."""

    @property
    def name(self) -> str:
        ...

    def get_blob(self, name: str) -> BlobHandle:
        """Return a handle for the named blob (which need not exist)."""
        ...
