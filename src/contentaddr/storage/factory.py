"""Factory for creating blob containers."""

import os
from pathlib import Path
from typing import Literal

from ..config import StoreConfig
from ..constants import AZURE_CONNECTION_STRING_ENV
from ..errors import ConfigError
from .base import BlobContainer


def validate_azure_config(config: StoreConfig) -> None:
    """
    Early validation of Azure configuration.

    Raises:
        ConfigError: If configuration is invalid
    """
    if not config.persistent_container or not config.staging_container:
        raise ConfigError("persistent_container and staging_container required for Azure")

    if AZURE_CONNECTION_STRING_ENV not in os.environ:
        raise ConfigError(
            f"Set {AZURE_CONNECTION_STRING_ENV} for Azure blob storage"
        )


def make_container(
    config: StoreConfig, which: Literal["persistent", "staging"]
) -> BlobContainer:
    """
    Create the persistent or staging container described by the config.

    Raises:
        ConfigError: If configuration is invalid
    """
    name = config.persistent_container if which == "persistent" else config.staging_container

    if config.provider == "azure":
        validate_azure_config(config)
        from .azure import AzureContainer
        return AzureContainer.from_connection_string(
            os.environ[AZURE_CONNECTION_STRING_ENV], name
        )

    elif config.provider == "fs":
        if not name:
            raise ConfigError(f"{which}_container (directory path) required for filesystem storage")
        from .fs import FilesystemContainer
        return FilesystemContainer(Path(name))

    else:
        raise ConfigError(f"Provider {config.provider} not supported")
