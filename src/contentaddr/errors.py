"""Custom exceptions for contentaddr.

Every error raised by the store derives from ContentAddrError, and carries
the realm, hash or blob name needed to diagnose it.
"""


class ContentAddrError(RuntimeError):
    """Base class for all content-addressable store errors."""
    pass


# Storage Errors
class StorageError(ContentAddrError):
    """Base class for errors reported by the storage backend."""
    pass


class BackendError(StorageError):
    """Backend call failed and will not succeed by retrying it."""
    pass


class TransientBackendError(BackendError):
    """Network error, throttling or brief unavailability; safe to retry."""
    pass


class RetriesExhaustedError(BackendError):
    """A transient fault persisted through every retry attempt."""

    def __init__(self, attempts: int, last_error: BaseException):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"Backend call still failing after {attempts} attempts: {last_error}"
        )


class BlobNotFoundError(StorageError):
    """The backend has no blob with this name (404)."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Blob not found: {name}")


# Store Errors
class NoSuchBlobError(ContentAddrError):
    """No committed blob exists for this realm and hash."""

    def __init__(self, realm: str, hash: str):
        self.realm = realm
        self.hash = hash
        super().__init__(f"No blob '{hash}' in realm '{realm}'.")


class CommitBlobError(ContentAddrError):
    """A temporary blob could not be committed."""

    def __init__(self, realm: str, name: str, reason: str):
        self.realm = realm
        self.name = name
        self.reason = reason
        super().__init__(
            f"Commit failed for '{name}' in realm '{realm}': {reason}"
        )


# Copy Errors
class CopyFailedError(ContentAddrError):
    """The backend gave up on a server-side copy (failed, aborted or invalid)."""

    def __init__(self, name: str, status: str):
        self.name = name
        self.status = status
        super().__init__(f"Internal copy for '{name}' failed ({status})")


class UnexpectedCopyStateError(ContentAddrError):
    """The backend reported a copy state outside the known set."""

    def __init__(self, name: str, status):
        self.name = name
        self.status = status
        super().__init__(
            f"Internal copy for '{name}' reported unknown state {status!r}"
        )


class OperationCancelledError(ContentAddrError):
    """The operation was cancelled through its CancelToken."""
    pass


# Configuration Errors
class ConfigError(ContentAddrError):
    """Invalid store configuration."""
    pass
