# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Domus-Messaging contributors

"""In-memory blob store for tests and local development."""

import logging
import threading
from typing import Dict, Optional, Tuple
from urllib.parse import quote

from domus_config import DriverConfig_BlobStore_Inmemory

from .blob_store import BlobNotFoundError, BlobStore

logger = logging.getLogger(__name__)


class InMemoryBlobStore(BlobStore):
    """Blob store that keeps content in a dictionary."""

    def __init__(self, base_url: str = "memory://attachments"):
        self.base_url = base_url.rstrip("/")
        self.blobs: Dict[str, Tuple[bytes, Optional[str]]] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, driver_config: DriverConfig_BlobStore_Inmemory) -> "InMemoryBlobStore":
        return cls(base_url=driver_config.base_url)

    def put(self, key: str, data: bytes, content_type: Optional[str] = None) -> str:
        with self._lock:
            self.blobs[key] = (bytes(data), content_type)
        logger.debug("InMemoryBlobStore: stored %s (%d bytes)", key, len(data))
        return key

    def get_url(self, ref: str) -> str:
        with self._lock:
            if ref not in self.blobs:
                raise BlobNotFoundError(f"Blob {ref} not found")
        return f"{self.base_url}/{quote(ref)}"

    def get(self, ref: str) -> Optional[bytes]:
        with self._lock:
            entry = self.blobs.get(ref)
        return entry[0] if entry else None

    def get_content_type(self, ref: str) -> Optional[str]:
        with self._lock:
            entry = self.blobs.get(ref)
        return entry[1] if entry else None

    def exists(self, ref: str) -> bool:
        with self._lock:
            return ref in self.blobs

    def delete(self, ref: str) -> bool:
        with self._lock:
            return self.blobs.pop(ref, None) is not None
