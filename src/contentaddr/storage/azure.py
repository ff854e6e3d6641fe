"""Azure blob storage implementation."""

import contextlib
import logging
from datetime import datetime, timedelta, timezone
from typing import Iterator, Optional

from ..errors import BackendError, BlobNotFoundError, TransientBackendError
from ..storage_models import BlobPermission, BlobProperties, SignedUrlPolicy

try:
    from azure.core.exceptions import (
        HttpResponseError,
        ResourceNotFoundError,
        ServiceRequestError,
        ServiceResponseError,
    )
    from azure.storage.blob import (
        BlobSasPermissions,
        ContainerClient,
        generate_blob_sas,
    )
except ImportError:
    raise ImportError(
        "azure-storage-blob required for Azure blob storage. "
        "Install with: pip install azure-storage-blob"
    )

logger = logging.getLogger(__name__)

# HTTP statuses worth retrying: timeout, throttling, server-side trouble
TRANSIENT_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})

# Lifetime of the read SAS attached to a copy source URL
COPY_SOURCE_SAS_LIFE = timedelta(hours=1)


@contextlib.contextmanager
def translate_errors(name: str) -> Iterator[None]:
    """Map Azure SDK exceptions onto the contentaddr error taxonomy."""
    try:
        yield
    except ResourceNotFoundError:
        raise BlobNotFoundError(name)
    except (ServiceRequestError, ServiceResponseError) as e:
        raise TransientBackendError(f"Azure request for '{name}' failed: {e}") from e
    except HttpResponseError as e:
        if e.status_code == 404:
            raise BlobNotFoundError(name)
        if e.status_code in TRANSIENT_STATUS_CODES:
            raise TransientBackendError(
                f"Azure returned {e.status_code} for '{name}': {e.message}"
            ) from e
        raise BackendError(f"Azure returned {e.status_code} for '{name}': {e.message}") from e


class AzureContainer:
    """
    Azure Blob Storage container.

    Signed URLs are service SAS tokens, which require the container client
    to be authenticated with the storage account key (as connection strings
    are).
    """

    def __init__(self, client: ContainerClient):
        """
        Initialize Azure container.

        Args:
            client: Container client from azure-storage-blob
        """
        self.client = client

    @classmethod
    def from_connection_string(
        cls, connection_string: str, container: str, create: bool = False
    ) -> "AzureContainer":
        """
        Build a container from an Azure Storage connection string.

        Args:
            connection_string: Azure Storage connection string
            container: Container name
            create: Create the container if it does not exist
        """
        client = ContainerClient.from_connection_string(
            connection_string, container_name=container
        )
        if create:
            with translate_errors(container):
                if not client.exists():
                    client.create_container()
        return cls(client)

    @property
    def name(self) -> str:
        return self.client.container_name

    @property
    def account_name(self) -> str:
        return self.client.account_name

    @property
    def account_key(self) -> Optional[str]:
        return getattr(self.client.credential, "account_key", None)

    def get_blob(self, name: str) -> "AzureBlob":
        return AzureBlob(self, name)


def _sas_permissions(permission: BlobPermission) -> BlobSasPermissions:
    return BlobSasPermissions(
        read=BlobPermission.READ in permission,
        write=BlobPermission.WRITE in permission,
        delete=BlobPermission.DELETE in permission,
    )


class AzureBlob:
    """One block blob inside an AzureContainer."""

    def __init__(self, container: AzureContainer, name: str):
        self.container = container
        self._name = name
        self.client = container.client.get_blob_client(name)
        self._properties: Optional[BlobProperties] = None

    @property
    def name(self) -> str:
        return self._name

    @property
    def url(self) -> str:
        return self.client.url

    @property
    def properties(self) -> Optional[BlobProperties]:
        return self._properties

    def exists(self) -> bool:
        with translate_errors(self._name):
            return self.client.exists()

    def fetch_properties(self) -> BlobProperties:
        with translate_errors(self._name):
            props = self.client.get_blob_properties()

        copy = getattr(props, "copy", None)
        status = getattr(copy, "status", None)
        self._properties = BlobProperties(
            size=props.size,
            copy_status=str(status) if status is not None else None,
        )
        return self._properties

    def read_range(self, offset: int, length: int) -> bytes:
        if length <= 0:
            return b""
        with translate_errors(self._name):
            return self.client.download_blob(offset=offset, length=length).readall()

    def start_copy_from(self, source: "AzureBlob") -> None:
        source_url = source.url
        if source.container.account_key:
            # Private containers need the source to be readable by the copy service
            now = datetime.now(timezone.utc)
            source_url = source.generate_signed_url(SignedUrlPolicy(
                permission=BlobPermission.READ,
                start=now - timedelta(minutes=5),
                expiry=now + COPY_SOURCE_SAS_LIFE,
            ))
        logger.debug("Starting server-side copy %s -> %s", source.name, self._name)
        with translate_errors(self._name):
            self.client.start_copy_from_url(source_url)

    def delete_if_exists(self) -> bool:
        try:
            with translate_errors(self._name):
                self.client.delete_blob()
        except BlobNotFoundError:
            return False
        return True

    def generate_signed_url(self, policy: SignedUrlPolicy) -> str:
        account_key = self.container.account_key
        if not account_key:
            raise BackendError(
                f"Cannot sign URL for '{self._name}': container client has no account key"
            )

        token = generate_blob_sas(
            account_name=self.container.account_name,
            container_name=self.container.name,
            blob_name=self._name,
            account_key=account_key,
            permission=_sas_permissions(policy.permission),
            expiry=policy.expiry,
            start=policy.start,
            cache_control=policy.headers.cache_control,
            content_disposition=policy.headers.content_disposition,
            content_type=policy.headers.content_type,
            content_encoding=policy.headers.content_encoding,
        )
        return f"{self.client.url}?{token}"
