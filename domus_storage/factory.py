# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Domus-Messaging contributors

"""Factory for creating document store instances based on configuration."""

from __future__ import annotations

from typing import TypeAlias

from domus_config import (
    AdapterConfig_DocumentStore,
    DriverConfig_DocumentStore_Inmemory,
    DriverConfig_DocumentStore_Mongodb,
    create_adapter,
)

from .document_store import DocumentStore

_DriverConfig: TypeAlias = DriverConfig_DocumentStore_Mongodb | DriverConfig_DocumentStore_Inmemory


def _build_mongodb(config: _DriverConfig) -> DocumentStore:
    from .mongo_document_store import MongoDocumentStore

    if not isinstance(config, DriverConfig_DocumentStore_Mongodb):
        raise TypeError("driver config must be DriverConfig_DocumentStore_Mongodb")
    return MongoDocumentStore.from_config(config)


def _build_inmemory(config: _DriverConfig) -> DocumentStore:
    from .inmemory_document_store import InMemoryDocumentStore

    if not isinstance(config, DriverConfig_DocumentStore_Inmemory):
        raise TypeError("driver config must be DriverConfig_DocumentStore_Inmemory")
    return InMemoryDocumentStore.from_config(config)


def create_document_store(config: AdapterConfig_DocumentStore) -> DocumentStore:
    """Create a document store instance.

    Args:
        config: Typed AdapterConfig_DocumentStore instance.

    Returns:
        DocumentStore instance (not yet connected).

    Raises:
        ValueError: If config is missing or doc_store_type is unknown.
    """
    return create_adapter(
        config,
        adapter_name="document_store",
        get_driver_type=lambda c: c.doc_store_type,
        get_driver_config=lambda c: c.driver,
        drivers={
            "mongodb": _build_mongodb,
            "inmemory": _build_inmemory,
        },
    )
