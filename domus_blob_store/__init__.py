# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Domus-Messaging contributors

"""Domus Messaging Blob Store Adapter.

Object storage for attachment bytes. The messaging core keeps only the
reference and URL returned here.
"""

__version__ = "0.1.0"

from .blob_store import (
    BlobNotFoundError,
    BlobStore,
    BlobStoreConnectionError,
    BlobStoreError,
)
from .factory import create_blob_store
from .inmemory_blob_store import InMemoryBlobStore
from .local_volume_blob_store import LocalVolumeBlobStore

__all__ = [
    "__version__",
    "BlobStore",
    "InMemoryBlobStore",
    "LocalVolumeBlobStore",
    "create_blob_store",
    "BlobStoreError",
    "BlobStoreConnectionError",
    "BlobNotFoundError",
]
