# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Domus-Messaging contributors

"""Abstract blob store interface for attachment storage backends."""

from abc import ABC, abstractmethod
from typing import Optional


class BlobStoreError(Exception):
    """Base exception for blob store errors."""
    pass


class BlobStoreConnectionError(BlobStoreError):
    """Exception raised when connection to the blob store fails."""
    pass


class BlobNotFoundError(BlobStoreError):
    """Exception raised when a blob is not found."""
    pass


class BlobStore(ABC):
    """Abstract interface for object storage backends.

    The messaging core only needs somewhere to put attachment bytes and a
    URL to hand back to clients. Which backend holds the bytes (local
    volume, cloud storage, memory) is a deployment-time choice.
    """

    @abstractmethod
    def put(self, key: str, data: bytes, content_type: Optional[str] = None) -> str:
        """Store bytes under a key.

        Args:
            key: Caller-chosen storage key (e.g. ``"<owner>/<uuid>_<name>"``)
            data: Raw content
            content_type: Optional MIME type recorded with the blob

        Returns:
            Opaque reference used by the other methods

        Raises:
            BlobStoreError: If the storage operation fails
        """
        pass

    @abstractmethod
    def get_url(self, ref: str) -> str:
        """Return a URL from which the blob can be retrieved.

        Raises:
            BlobNotFoundError: If the blob does not exist
        """
        pass

    @abstractmethod
    def get(self, ref: str) -> Optional[bytes]:
        """Retrieve blob content, or None if not found."""
        pass

    @abstractmethod
    def exists(self, ref: str) -> bool:
        """Check if a blob exists."""
        pass

    @abstractmethod
    def delete(self, ref: str) -> bool:
        """Delete a blob.

        Returns:
            True if the blob was deleted, False if not found
        """
        pass
