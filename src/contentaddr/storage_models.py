"""Storage-related data models shared by every blob backend."""

from datetime import datetime, timezone
from enum import Enum, Flag, auto
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator


def to_utc(value: datetime) -> datetime:
    """Convert a timestamp to UTC, taking naive values as already UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class CopyStatus(str, Enum):
    """State of a server-side copy, as reported by the backend."""
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"
    ABORTED = "aborted"
    INVALID = "invalid"


# The backend gave up on these; retrying cannot help
TERMINAL_FAILURES = frozenset({CopyStatus.FAILED, CopyStatus.ABORTED, CopyStatus.INVALID})


class BlobPermission(Flag):
    """Capabilities granted by a signed URL."""
    READ = auto()
    WRITE = auto()
    DELETE = auto()


class BlobProperties(BaseModel):
    """Metadata fetched from the backend for one blob."""
    size: int                             # Content length in bytes
    copy_status: Optional[str] = None     # Raw copy status, None if never copied into


class ResponseHeaders(BaseModel):
    """Response header overrides embedded in a signed URL."""
    cache_control: Optional[str] = None
    content_disposition: Optional[str] = None
    content_type: Optional[str] = None
    content_encoding: Optional[str] = None


class SignedUrlPolicy(BaseModel):
    """What a signed URL allows, and when."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    permission: BlobPermission
    expiry: datetime
    start: Optional[datetime] = None
    headers: ResponseHeaders = ResponseHeaders()

    @field_validator("start", "expiry")
    @classmethod
    def validate_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        """Signing backends format times as UTC without converting them."""
        return to_utc(v) if v is not None else None
