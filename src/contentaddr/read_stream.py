"""Sequential read stream over a remote blob."""

import io
from typing import Optional

from .cancellation import CancelToken, ensure_token
from .errors import BackendError
from .retry import RetryPolicy, retry
from .storage.base import BlobHandle


class BlobReadStream(io.RawIOBase):
    """
    Reads bytes ``[0, size)`` of a blob through ranged reads.

    Each ranged read is retried on transient faults. A backend that returns
    no data before ``size`` bytes have been read is an error, never an
    early end of stream.
    """

    def __init__(
        self,
        blob: BlobHandle,
        size: int,
        cancel: Optional[CancelToken] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        super().__init__()
        self.blob = blob
        self.size = size
        self._cancel = ensure_token(cancel)
        self._retry_policy = retry_policy
        self._position = 0

    def readable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return True

    def tell(self) -> int:
        return self._position

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        if whence == io.SEEK_SET:
            position = offset
        elif whence == io.SEEK_CUR:
            position = self._position + offset
        elif whence == io.SEEK_END:
            position = self.size + offset
        else:
            raise ValueError(f"Invalid whence: {whence}")
        if position < 0:
            raise ValueError(f"Negative seek position {position}")
        self._position = position
        return position

    def readinto(self, buffer) -> int:
        remaining = self.size - self._position
        if remaining <= 0 or len(buffer) == 0:
            return 0

        offset = self._position
        wanted = min(len(buffer), remaining)
        data = retry(
            lambda: self.blob.read_range(offset, wanted),
            self._cancel,
            self._retry_policy,
        )
        if not data:
            raise BackendError(
                f"Blob '{self.blob.name}' ended at byte {offset}, expected {self.size} bytes"
            )

        n = min(len(data), wanted)
        buffer[:n] = data[:n]
        self._position += n
        return n
