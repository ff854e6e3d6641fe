"""contentaddr: content-addressable blob store with staged commits."""

from .blob_ref import BlobRef
from .cancellation import CancelToken
from .config import StoreConfig, load_store_config
from .errors import (
    BackendError,
    BlobNotFoundError,
    CommitBlobError,
    ConfigError,
    ContentAddrError,
    CopyFailedError,
    NoSuchBlobError,
    OperationCancelledError,
    RetriesExhaustedError,
    TransientBackendError,
    UnexpectedCopyStateError,
)
from .filenames import content_disposition, sanitize_filename
from .retry import RetryPolicy
from .store import OnCommit, ReadOnlyStore, Store

__all__ = [
    "BlobRef",
    "CancelToken",
    "StoreConfig",
    "load_store_config",
    "BackendError",
    "BlobNotFoundError",
    "CommitBlobError",
    "ConfigError",
    "ContentAddrError",
    "CopyFailedError",
    "NoSuchBlobError",
    "OperationCancelledError",
    "RetriesExhaustedError",
    "TransientBackendError",
    "UnexpectedCopyStateError",
    "content_disposition",
    "sanitize_filename",
    "RetryPolicy",
    "OnCommit",
    "ReadOnlyStore",
    "Store",
]
