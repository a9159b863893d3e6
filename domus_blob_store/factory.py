# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Domus-Messaging contributors

"""Factory for creating blob store instances based on configuration."""

from typing import TypeAlias

from domus_config import (
    AdapterConfig_BlobStore,
    DriverConfig_BlobStore_AzureBlob,
    DriverConfig_BlobStore_Inmemory,
    DriverConfig_BlobStore_Local,
    create_adapter,
)

from .blob_store import BlobStore

_DriverConfig: TypeAlias = (
    DriverConfig_BlobStore_Inmemory | DriverConfig_BlobStore_Local | DriverConfig_BlobStore_AzureBlob
)


def _build_inmemory(config: _DriverConfig) -> BlobStore:
    from .inmemory_blob_store import InMemoryBlobStore

    if not isinstance(config, DriverConfig_BlobStore_Inmemory):
        raise TypeError("driver config must be DriverConfig_BlobStore_Inmemory")
    return InMemoryBlobStore.from_config(config)


def _build_local(config: _DriverConfig) -> BlobStore:
    from .local_volume_blob_store import LocalVolumeBlobStore

    if not isinstance(config, DriverConfig_BlobStore_Local):
        raise TypeError("driver config must be DriverConfig_BlobStore_Local")
    return LocalVolumeBlobStore.from_config(config)


def _build_azure_blob(config: _DriverConfig) -> BlobStore:
    from .azure_blob_store import AzureBlobStore

    if not isinstance(config, DriverConfig_BlobStore_AzureBlob):
        raise TypeError("driver config must be DriverConfig_BlobStore_AzureBlob")
    return AzureBlobStore.from_config(config)


def create_blob_store(config: AdapterConfig_BlobStore) -> BlobStore:
    """Create a blob store instance.

    Examples:
        >>> store = create_blob_store(
        ...     AdapterConfig_BlobStore(
        ...         blob_store_type="local",
        ...         driver=DriverConfig_BlobStore_Local(base_path="/data/attachments"),
        ...     )
        ... )

    Raises:
        ValueError: If config is missing or blob_store_type is unknown
    """
    return create_adapter(
        config,
        adapter_name="blob_store",
        get_driver_type=lambda c: c.blob_store_type,
        get_driver_config=lambda c: c.driver,
        drivers={
            "inmemory": _build_inmemory,
            "local": _build_local,
            "azure_blob": _build_azure_blob,
        },
    )
