# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Domus-Messaging contributors

"""Domus Messaging Storage Adapter.

Document storage for threads, participants, messages, read markers and
attachment records.
"""

__version__ = "0.1.0"

from .document_store import (
    ASCENDING,
    DESCENDING,
    DocumentNotFoundError,
    DocumentStore,
    DocumentStoreConnectionError,
    DocumentStoreError,
    DocumentStoreNotConnectedError,
    DuplicateDocumentError,
)
from .factory import create_document_store
from .inmemory_document_store import InMemoryDocumentStore

__all__ = [
    # Version
    "__version__",
    # Document Stores
    "DocumentStore",
    "InMemoryDocumentStore",
    "create_document_store",
    # Sort directions
    "ASCENDING",
    "DESCENDING",
    # Exceptions
    "DocumentStoreError",
    "DocumentStoreNotConnectedError",
    "DocumentStoreConnectionError",
    "DocumentNotFoundError",
    "DuplicateDocumentError",
]
