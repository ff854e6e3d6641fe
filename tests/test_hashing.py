"""Tests for hashing module."""

import hashlib
import io

import pytest

from contentaddr.hashing import (
    blob_name,
    compute_bytes_digest,
    compute_stream_digest,
    HASH_HEX_LENGTH,
    normalize_hash,
)

EMPTY_MD5 = "d41d8cd98f00b204e9800998ecf8427e"
HELLO_MD5 = "5d41402abc4b2a76b9719d911017c592"


class TestStreamDigest:
    """Test streaming digest computation."""

    def test_known_digest(self):
        digest, size = compute_stream_digest(io.BytesIO(b"hello"), 1024)
        assert digest == HELLO_MD5
        assert size == 5

    def test_empty_stream(self):
        assert compute_stream_digest(io.BytesIO(b""), 1024) == (EMPTY_MD5, 0)

    @pytest.mark.parametrize("buffer_size", [0, 1, 3, 7, 4096])
    def test_independent_of_buffer_size(self, buffer_size):
        """The digest covers the full content whatever the chunking."""
        data = bytes(range(256)) * 10
        digest, size = compute_stream_digest(io.BytesIO(data), buffer_size)
        assert digest == hashlib.md5(data).hexdigest()
        assert size == len(data)

    def test_matches_bytes_digest(self):
        data = b"some content" * 100
        assert compute_stream_digest(io.BytesIO(data), 10)[0] == compute_bytes_digest(data)

    def test_digest_is_128_bits(self):
        digest, _ = compute_stream_digest(io.BytesIO(b"x"), 1)
        assert len(digest) == 32


class TestBlobName:
    """Test persistent blob naming."""

    def test_realm_prefix(self):
        assert blob_name("acme", HELLO_MD5) == f"acme/{HELLO_MD5}"

    def test_uppercase_hash_normalized(self):
        assert blob_name("acme", HELLO_MD5.upper()) == f"acme/{HELLO_MD5}"

    def test_realms_never_collide(self):
        assert blob_name("acme", HELLO_MD5) != blob_name("other", HELLO_MD5)

    def test_length_matches_digest(self):
        assert len(HELLO_MD5) == HASH_HEX_LENGTH
        assert normalize_hash("a" * HASH_HEX_LENGTH) == "a" * HASH_HEX_LENGTH
        with pytest.raises(ValueError):
            normalize_hash("a" * (HASH_HEX_LENGTH - 1))

    @pytest.mark.parametrize("value", ["", "abc", "z" * 32, HELLO_MD5 + "0", "../" + HELLO_MD5[3:]])
    def test_invalid_hash_rejected(self, value):
        with pytest.raises(ValueError, match="Invalid blob hash"):
            normalize_hash(value)
