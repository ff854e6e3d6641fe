"""Store configuration helpers."""

from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from .constants import (
    CLEANUP_DELAY_SECONDS,
    COPY_POLL_INITIAL_SECONDS,
    COPY_POLL_MAX_SECONDS,
    DOWNLOAD_CLOCK_SKEW_SECONDS,
    HASH_BUFFER_BYTES,
)
from .errors import ConfigError
from .hashing import validate_realm
from .retry import RetryPolicy


class StoreConfig(BaseModel):
    """
    Configuration of one realm's content-addressable store.

    Timing values are in seconds. The defaults match the behavior the
    commit protocol was designed around: copy polling starts at 250ms and
    doubles up to two minutes, and staging blobs linger ten minutes after
    being committed.
    """
    realm: str
    provider: Literal["azure", "fs"] = "fs"
    persistent_container: str               # Container name, or directory for "fs"
    staging_container: str

    copy_poll_initial_seconds: float = Field(default=COPY_POLL_INITIAL_SECONDS, gt=0)
    copy_poll_max_seconds: float = Field(default=COPY_POLL_MAX_SECONDS, gt=0)
    cleanup_delay_seconds: float = Field(default=CLEANUP_DELAY_SECONDS, ge=0)
    hash_buffer_bytes: int = Field(default=HASH_BUFFER_BYTES, gt=0)
    download_clock_skew_seconds: float = Field(default=DOWNLOAD_CLOCK_SKEW_SECONDS, ge=0)
    retry: RetryPolicy = Field(default_factory=RetryPolicy)

    @field_validator("realm")
    @classmethod
    def check_realm(cls, v: str) -> str:
        """Realms are single path segments, so blob names cannot cross realms."""
        return validate_realm(v)


def load_store_config(path: Path) -> StoreConfig:
    """
    Load store configuration from a YAML file.

    The file may hold the settings at top level or under a ``store:`` key.

    Raises:
        ConfigError: If the file is missing, unreadable or invalid
    """
    path = Path(path)
    try:
        data = yaml.safe_load(path.read_text()) or {}
    except OSError as e:
        raise ConfigError(f"Cannot read store config {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Store config {path} must be a mapping")

    section = data.get("store", data)
    try:
        return StoreConfig(**section)
    except ValidationError as e:
        raise ConfigError(f"Invalid store config {path}:\n{e}") from e
