# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Domus-Messaging contributors

"""Azure Blob Storage-based blob store implementation."""

import logging
import os
from typing import Optional

from azure.core.exceptions import AzureError, ResourceExistsError, ResourceNotFoundError
from azure.storage.blob import BlobServiceClient, ContainerClient, ContentSettings

from domus_config import DriverConfig_BlobStore_AzureBlob

from .blob_store import (
    BlobNotFoundError,
    BlobStore,
    BlobStoreConnectionError,
    BlobStoreError,
)

logger = logging.getLogger(__name__)


class AzureBlobStore(BlobStore):
    """Azure Blob Storage-based attachment storage.

    Configuration falls back to environment variables:
    - AZURE_STORAGE_ACCOUNT: Storage account name
    - AZURE_STORAGE_KEY: Storage account key (primary or secondary)
    - AZURE_STORAGE_SAS_TOKEN: SAS token (alternative to key)
    - AZURE_STORAGE_CONTAINER: Container name for attachments
    - AZURE_STORAGE_PREFIX: Optional path prefix for organizing blobs
    - AZURE_STORAGE_CONNECTION_STRING: Full connection string
    """

    def __init__(
        self,
        account_name: str | None = None,
        account_key: str | None = None,
        sas_token: str | None = None,
        container_name: str | None = None,
        prefix: str | None = None,
        connection_string: str | None = None,
    ):
        self.account_name = account_name or os.getenv("AZURE_STORAGE_ACCOUNT")
        self.account_key = account_key or os.getenv("AZURE_STORAGE_KEY")
        self.sas_token = sas_token or os.getenv("AZURE_STORAGE_SAS_TOKEN")
        self.container_name = container_name or os.getenv("AZURE_STORAGE_CONTAINER", "attachments")
        self.prefix = prefix or os.getenv("AZURE_STORAGE_PREFIX", "")
        self.connection_string = connection_string or os.getenv("AZURE_STORAGE_CONNECTION_STRING")

        if self.prefix and not self.prefix.endswith("/"):
            self.prefix += "/"

        if not self.connection_string:
            if not self.account_name:
                raise ValueError(
                    "Azure Storage account name must be provided via "
                    "account_name parameter or AZURE_STORAGE_ACCOUNT env var"
                )
            if not self.account_key and not self.sas_token:
                raise ValueError(
                    "Azure Storage credentials must be provided via "
                    "account_key/AZURE_STORAGE_KEY or "
                    "sas_token/AZURE_STORAGE_SAS_TOKEN"
                )

        try:
            if self.connection_string:
                self.blob_service_client = BlobServiceClient.from_connection_string(
                    self.connection_string
                )
            else:
                account_url = f"https://{self.account_name}.blob.core.windows.net"
                self.blob_service_client = BlobServiceClient(
                    account_url=account_url, credential=self.sas_token or self.account_key
                )

            self.container_client: ContainerClient = (
                self.blob_service_client.get_container_client(self.container_name)
            )
        except AzureError as e:
            raise BlobStoreConnectionError(f"Failed to connect to Azure Blob Storage: {e}") from e

        try:
            self.container_client.create_container()
            logger.info("Created container: %s", self.container_name)
        except ResourceExistsError:
            pass
        except AzureError as e:
            raise BlobStoreConnectionError(
                f"Failed to prepare container {self.container_name}: {e}"
            ) from e

    @classmethod
    def from_config(cls, driver_config: DriverConfig_BlobStore_AzureBlob) -> "AzureBlobStore":
        return cls(
            account_name=driver_config.account_name,
            account_key=driver_config.account_key,
            sas_token=driver_config.sas_token,
            container_name=driver_config.container_name,
            prefix=driver_config.prefix,
            connection_string=driver_config.connection_string,
        )

    def _blob_name(self, key: str) -> str:
        return f"{self.prefix}{key}"

    def put(self, key: str, data: bytes, content_type: Optional[str] = None) -> str:
        blob_name = self._blob_name(key)
        blob_client = self.container_client.get_blob_client(blob_name)
        content_settings = ContentSettings(content_type=content_type) if content_type else None
        try:
            blob_client.upload_blob(data, overwrite=True, content_settings=content_settings)
        except AzureError as e:
            raise BlobStoreError(f"Failed to store blob in Azure: {e}") from e

        logger.info("Stored blob %s (%d bytes)", blob_name, len(data))
        return blob_name

    def get_url(self, ref: str) -> str:
        blob_client = self.container_client.get_blob_client(ref)
        try:
            found = blob_client.exists()
        except AzureError as e:
            raise BlobStoreError(f"Failed to check blob {ref}: {e}") from e
        if not found:
            raise BlobNotFoundError(f"Blob {ref} not found")
        return blob_client.url

    def get(self, ref: str) -> Optional[bytes]:
        blob_client = self.container_client.get_blob_client(ref)
        try:
            return blob_client.download_blob().readall()
        except ResourceNotFoundError:
            return None
        except AzureError as e:
            raise BlobStoreError(f"Failed to retrieve blob {ref}: {e}") from e

    def exists(self, ref: str) -> bool:
        try:
            return bool(self.container_client.get_blob_client(ref).exists())
        except AzureError as e:
            raise BlobStoreError(f"Failed to check blob {ref}: {e}") from e

    def delete(self, ref: str) -> bool:
        try:
            self.container_client.get_blob_client(ref).delete_blob()
        except ResourceNotFoundError:
            return False
        except AzureError as e:
            raise BlobStoreError(f"Failed to delete blob {ref}: {e}") from e
        return True
