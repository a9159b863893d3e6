# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Domus-Messaging contributors

"""Local volume-based blob store implementation."""

import logging
import os
from pathlib import Path, PurePosixPath
from typing import Optional
from urllib.parse import quote

from domus_config import DriverConfig_BlobStore_Local

from .blob_store import BlobNotFoundError, BlobStore, BlobStoreError

logger = logging.getLogger(__name__)


class LocalVolumeBlobStore(BlobStore):
    """Local filesystem-based blob storage.

    Blobs are stored at ``{base_path}/{key}``. The reference returned by
    :meth:`put` is the key itself.
    """

    def __init__(self, base_path: str | None = None, base_url: str | None = None):
        """Initialize local volume blob store.

        Args:
            base_path: Base directory for blob storage.
                      Defaults to BLOB_STORE_PATH env var or "/data/attachments"
            base_url: Optional public URL prefix; ``file://`` URLs are used when unset
        """
        if base_path is None:
            base_path = os.getenv("BLOB_STORE_PATH", "/data/attachments")

        self.base_path = Path(base_path)
        self.base_url = base_url.rstrip("/") if base_url else None
        self.base_path.mkdir(parents=True, exist_ok=True)

    @classmethod
    def from_config(cls, driver_config: DriverConfig_BlobStore_Local) -> "LocalVolumeBlobStore":
        return cls(base_path=driver_config.base_path, base_url=driver_config.base_url)

    def _path_for(self, ref: str) -> Path:
        relative = PurePosixPath(ref)
        if relative.is_absolute() or ".." in relative.parts or not relative.parts:
            raise BlobStoreError(f"Invalid blob key: {ref}")
        return self.base_path.joinpath(*relative.parts)

    def put(self, key: str, data: bytes, content_type: Optional[str] = None) -> str:
        target_path = self._path_for(key)
        try:
            target_path.parent.mkdir(parents=True, exist_ok=True)
            with open(target_path, "wb") as f:
                f.write(data)
        except OSError as e:
            raise BlobStoreError(f"Failed to store blob {key}: {e}") from e

        logger.debug("LocalVolumeBlobStore: stored %s (%d bytes)", key, len(data))
        return key

    def get_url(self, ref: str) -> str:
        path = self._path_for(ref)
        if not path.exists():
            raise BlobNotFoundError(f"Blob {ref} not found")
        if self.base_url:
            return f"{self.base_url}/{quote(ref)}"
        return path.resolve().as_uri()

    def get(self, ref: str) -> Optional[bytes]:
        path = self._path_for(ref)
        if not path.exists():
            return None
        try:
            with open(path, "rb") as f:
                return f.read()
        except OSError as e:
            raise BlobStoreError(f"Failed to retrieve blob {ref}: {e}") from e

    def exists(self, ref: str) -> bool:
        return self._path_for(ref).exists()

    def delete(self, ref: str) -> bool:
        path = self._path_for(ref)
        if not path.exists():
            return False
        try:
            path.unlink()
        except OSError as e:
            raise BlobStoreError(f"Failed to delete blob {ref}: {e}") from e
        return True
