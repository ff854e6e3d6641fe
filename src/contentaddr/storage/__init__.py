"""Storage package: blob backends behind a common protocol."""

from .base import BlobContainer, BlobHandle
from .factory import make_container

__all__ = ["BlobContainer", "BlobHandle", "make_container"]
