"""
Azure Blob Storage media store.
"""

from dataclasses import dataclass
from functools import lru_cache
from typing import Protocol

import structlog
from azure.core.exceptions import AzureError
from azure.identity import DefaultAzureCredential
from azure.storage.blob import BlobServiceClient, ContentSettings

from storefront.config import get_settings
from storefront.errors import MediaStoreError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class StoredAsset:
    url: str
    public_id: str


class MediaStore(Protocol):
    """Remote image storage used by the upload and delete flows."""

    def upload(self, public_id: str, data: bytes, content_type: str) -> StoredAsset: ...

    def delete(self, public_id: str) -> bool: ...


class AzureMediaStore:
    """
    Media store backed by one blob container.

    Supports both connection string and Managed Identity authentication.
    """

    def __init__(
        self,
        connection_string: str | None = None,
        account_url: str | None = None,
        container_name: str = "vwv-media",
        timeout: int = 60,
    ):
        self.container_name = container_name
        self.timeout = timeout

        if connection_string:
            self.service_client = BlobServiceClient.from_connection_string(connection_string)
        elif account_url:
            # Use Managed Identity
            credential = DefaultAzureCredential()
            self.service_client = BlobServiceClient(account_url, credential=credential)
        else:
            raise ValueError("Either connection_string or account_url must be provided")

        self.container_client = self.service_client.get_container_client(container_name)

    def ensure_container_exists(self) -> None:
        """Create container if it doesn't exist."""
        if not self.container_client.exists():
            self.container_client.create_container(public_access="blob")

    def upload(self, public_id: str, data: bytes, content_type: str) -> StoredAsset:
        """
        Upload bytes under a storage id.

        Returns:
            The public URL and storage id of the new asset

        Raises:
            MediaStoreError: the upload failed or timed out
        """
        blob_client = self.container_client.get_blob_client(public_id)
        try:
            blob_client.upload_blob(
                data,
                overwrite=True,
                content_settings=ContentSettings(content_type=content_type),
                timeout=self.timeout,
            )
        except AzureError as e:
            logger.error("Media upload failed", public_id=public_id, error=str(e))
            raise MediaStoreError(f"Upload failed for {public_id}") from e

        return StoredAsset(url=blob_client.url, public_id=public_id)

    def delete(self, public_id: str) -> bool:
        """
        Delete an asset.

        Returns:
            True if deleted, False if it didn't exist

        Raises:
            MediaStoreError: the store could not be reached
        """
        blob_client = self.container_client.get_blob_client(public_id)
        try:
            if blob_client.exists(timeout=self.timeout):
                blob_client.delete_blob(timeout=self.timeout)
                return True
        except AzureError as e:
            raise MediaStoreError(f"Delete failed for {public_id}") from e
        return False

    def get_url(self, public_id: str) -> str:
        """Get the URL for a stored asset."""
        return self.container_client.get_blob_client(public_id).url


def delete_quietly(store: MediaStore, public_ids: list[str]) -> list[str]:
    """
    Best-effort delete of several assets.

    Failures are logged and skipped. Returns the ids that could not be removed.
    """
    failed = []
    for public_id in public_ids:
        try:
            store.delete(public_id)
        except MediaStoreError as e:
            logger.warning("Media delete failed", public_id=public_id, error=str(e))
            failed.append(public_id)
    return failed


@lru_cache
def get_media_store() -> AzureMediaStore:
    """Get cached media store client."""
    settings = get_settings()
    return AzureMediaStore(
        connection_string=settings.azure_connection_string_str,
        account_url=settings.azure_storage_account_url,
        container_name=settings.azure_storage_container,
        timeout=settings.media_upload_timeout,
    )
