"""Filesystem blob storage implementation for testing and development."""

import base64
import hashlib
import hmac
import os
import secrets
import shutil
import tempfile
import threading
import urllib.parse
from pathlib import Path
from typing import Dict, Optional

from ..errors import BackendError, BlobNotFoundError
from ..storage_models import (
    BlobPermission,
    BlobProperties,
    CopyStatus,
    SignedUrlPolicy,
)

_PERMISSION_LETTERS = (
    (BlobPermission.READ, "r"),
    (BlobPermission.WRITE, "w"),
    (BlobPermission.DELETE, "d"),
)


def _safe_target(root: Path, name: str) -> Path:
    """Resolve a blob name under root, refusing names that escape it.

    Raises:
        ValueError: If the name is empty, absolute or traverses upwards
    """
    if not name or not name.strip():
        raise ValueError("Unsafe blob name: empty name")

    if name.startswith(("/", "\\")) or ".." in name.replace("\\", "/").split("/"):
        raise ValueError(f"Unsafe blob name: {name}")

    target = (root / name).resolve()
    try:
        target.relative_to(root.resolve())
    except ValueError:
        raise ValueError(f"Blob name escapes container: {name}")
    return target


def _format_time(value) -> str:
    return value.strftime("%Y-%m-%dT%H:%M:%SZ") if value else ""


class FilesystemContainer:
    """
    Local directory standing in for a blob container (avoids Azurite dependency).

    Blob names map to relative paths under base_dir. Server-side copies
    complete synchronously, and signed URLs are ``file://`` URLs carrying
    SAS-style query parameters signed with HMAC-SHA256.
    """

    def __init__(self, base_dir: Path, signing_key: Optional[bytes] = None):
        """
        Initialize filesystem container.

        Args:
            base_dir: Directory holding the blobs (created if missing)
            signing_key: HMAC key for signed URLs (random if omitted)
        """
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)
        self.signing_key = signing_key or secrets.token_bytes(32)
        self._copy_status: Dict[str, str] = {}
        self._lock = threading.Lock()

    @property
    def name(self) -> str:
        return self.base_dir.name

    def get_blob(self, name: str) -> "FilesystemBlob":
        return FilesystemBlob(self, name)

    def path_for(self, name: str) -> Path:
        return _safe_target(self.base_dir, name)

    def sign(self, payload: str) -> str:
        digest = hmac.new(self.signing_key, payload.encode("utf-8"), hashlib.sha256).digest()
        return base64.b64encode(digest).decode("ascii")

    def verify_signed_url(self, url: str) -> bool:
        """Check that a URL produced by generate_signed_url() was not altered."""
        parsed = urllib.parse.urlparse(url)
        params = dict(urllib.parse.parse_qsl(parsed.query, keep_blank_values=True))
        signature = params.pop("sig", "")
        expected = self.sign(_string_to_sign(urllib.parse.unquote(parsed.path), params))
        return hmac.compare_digest(signature, expected)

    def _set_copy_status(self, name: str, status: str) -> None:
        with self._lock:
            self._copy_status[name] = status

    def _get_copy_status(self, name: str) -> Optional[str]:
        with self._lock:
            return self._copy_status.get(name)

    def _forget_copy_status(self, name: str) -> None:
        with self._lock:
            self._copy_status.pop(name, None)


def _string_to_sign(path: str, params: Dict[str, str]) -> str:
    return "\n".join([path] + [params.get(key, "") for key in ("sp", "st", "se", "rscc", "rscd", "rsct", "rsce")])


class FilesystemBlob:
    """One file inside a FilesystemContainer."""

    def __init__(self, container: FilesystemContainer, name: str):
        self.container = container
        self._name = name
        self.path = container.path_for(name)
        self._properties: Optional[BlobProperties] = None

    @property
    def name(self) -> str:
        return self._name

    @property
    def url(self) -> str:
        return self.path.as_uri()

    @property
    def properties(self) -> Optional[BlobProperties]:
        return self._properties

    def exists(self) -> bool:
        return self.path.is_file()

    def fetch_properties(self) -> BlobProperties:
        try:
            size = self.path.stat().st_size
        except FileNotFoundError:
            raise BlobNotFoundError(self._name)
        except OSError as e:
            raise BackendError(f"Cannot stat {self._name}: {e}") from e

        self._properties = BlobProperties(
            size=size,
            copy_status=self.container._get_copy_status(self._name),
        )
        return self._properties

    def read_range(self, offset: int, length: int) -> bytes:
        try:
            with self.path.open("rb") as f:
                f.seek(offset)
                return f.read(length)
        except FileNotFoundError:
            raise BlobNotFoundError(self._name)
        except OSError as e:
            raise BackendError(f"Cannot read {self._name}: {e}") from e

    def start_copy_from(self, source: "FilesystemBlob") -> None:
        if not source.path.is_file():
            raise BlobNotFoundError(source.name)

        self.path.parent.mkdir(parents=True, exist_ok=True)

        # Copy next to the destination, then rename, so readers never see a partial blob
        fd, tmppath = tempfile.mkstemp(prefix=f".{self.path.name}.partial-", dir=self.path.parent)
        os.close(fd)
        try:
            shutil.copyfile(source.path, tmppath)
            os.replace(tmppath, self.path)
        except FileNotFoundError:
            os.unlink(tmppath)
            raise BlobNotFoundError(source.name)
        except OSError as e:
            try:
                os.unlink(tmppath)
            except OSError:
                pass
            raise BackendError(f"Copy to {self._name} failed: {e}") from e

        self.container._set_copy_status(self._name, CopyStatus.SUCCESS.value)

    def delete_if_exists(self) -> bool:
        try:
            self.path.unlink()
        except FileNotFoundError:
            self.container._forget_copy_status(self._name)
            return False
        except OSError as e:
            raise BackendError(f"Cannot delete {self._name}: {e}") from e
        self.container._forget_copy_status(self._name)
        return True

    def generate_signed_url(self, policy: SignedUrlPolicy) -> str:
        params = {
            "sp": "".join(letter for flag, letter in _PERMISSION_LETTERS if flag in policy.permission),
            "st": _format_time(policy.start),
            "se": _format_time(policy.expiry),
            "rscc": policy.headers.cache_control or "",
            "rscd": policy.headers.content_disposition or "",
            "rsct": policy.headers.content_type or "",
            "rsce": policy.headers.content_encoding or "",
        }
        params["sig"] = self.container.sign(_string_to_sign(str(self.path), params))
        query = urllib.parse.urlencode({k: v for k, v in params.items() if v})
        return f"{self.url}?{query}"
