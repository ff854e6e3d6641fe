"""Hashing utilities for content-addressed blob names.

Blobs are identified by the MD5 digest (128 bits) of their full content,
written as 32 lowercase hex characters. The permanent name of a blob is
``<realm>/<hash>``, so identical content in the same realm always lands on
the same name, and blobs of different realms can never collide.
"""

import hashlib
import re
from typing import BinaryIO, Tuple

HASH_HEX_LENGTH = 32

_HASH_RE = re.compile(rf"^[0-9a-f]{{{HASH_HEX_LENGTH}}}$")


def new_hasher():
    """Create the incremental digest used for blob hashes."""
    return hashlib.md5()


def compute_stream_digest(stream: BinaryIO, buffer_size: int) -> Tuple[str, int]:
    """Hash a binary stream until it is exhausted.

    The digest is only valid over the complete byte sequence, so the stream is
    always read to the end.

    Args:
        stream: Readable binary stream positioned at the start of the content
        buffer_size: Number of bytes requested per read

    Returns:
        Tuple of (hex digest, number of bytes read)
    """
    hasher = new_hasher()
    size = 0
    for chunk in iter(lambda: stream.read(max(1, buffer_size)), b""):
        hasher.update(chunk)
        size += len(chunk)
    return hasher.hexdigest(), size


def compute_bytes_digest(data: bytes) -> str:
    """Hash an in-memory byte string."""
    return hashlib.md5(data).hexdigest()


def normalize_hash(value: str) -> str:
    """Validate a blob hash and return it in canonical (lowercase) form.

    Raises:
        ValueError: If the value is not HASH_HEX_LENGTH hex characters
    """
    normalized = value.strip().lower()
    if not _HASH_RE.match(normalized):
        raise ValueError(f"Invalid blob hash: {value!r}")
    return normalized


def validate_realm(realm: str) -> str:
    """Check that a realm is a single name segment, so blob names cannot cross realms.

    Raises:
        ValueError: If the realm is empty, contains "/" or is "." or ".."
    """
    if not realm or "/" in realm or realm in (".", ".."):
        raise ValueError(f"Invalid realm: {realm!r}")
    return realm


def blob_name(realm: str, hash: str) -> str:
    """Name of the persistent blob holding content with this hash."""
    return f"{realm}/{normalize_hash(hash)}"


__all__ = [
    "compute_stream_digest",
    "compute_bytes_digest",
    "normalize_hash",
    "blob_name",
    "validate_realm",
    "new_hasher",
]
