# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Domus-Messaging contributors

"""Abstract document store interface for NoSQL backends."""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence, Tuple

# Sort specification: [(field, 1 | -1), ...]
SortSpec = Sequence[Tuple[str, int]]

ASCENDING = 1
DESCENDING = -1


class DocumentStoreError(Exception):
    """Base exception for document store errors."""
    pass


class DocumentStoreNotConnectedError(DocumentStoreError):
    """Exception raised when attempting operations on a disconnected store."""
    pass


class DocumentStoreConnectionError(DocumentStoreError):
    """Exception raised when connection to the document store fails."""
    pass


class DocumentNotFoundError(DocumentStoreError):
    """Exception raised when a document is not found."""
    pass


class DuplicateDocumentError(DocumentStoreError):
    """Exception raised when inserting a document whose ``_id`` already exists."""
    pass


class DocumentStore(ABC):
    """Abstract base class for document storage backends.

    Filters use the MongoDB query subset: plain equality plus the ``$eq``,
    ``$ne``, ``$in``, ``$gt``, ``$gte``, ``$lt``, ``$lte`` and ``$exists``
    operators.
    """

    @abstractmethod
    def connect(self) -> None:
        """Connect to the document store.

        Raises:
            DocumentStoreConnectionError: If connection fails
        """
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Disconnect from the document store."""
        pass

    @abstractmethod
    def insert_document(self, collection: str, doc: Dict[str, Any]) -> str:
        """Insert a document into the specified collection.

        Insertion is insert-if-absent on ``_id``: it never overwrites.

        Args:
            collection: Name of the collection/table
            doc: Document data as dictionary. An ``_id`` is generated when absent.

        Returns:
            Document ID as string

        Raises:
            DuplicateDocumentError: If a document with the same ``_id`` exists
        """
        pass

    @abstractmethod
    def get_document(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """Retrieve a document by its ID.

        Returns:
            Document data as dictionary, or None if not found
        """
        pass

    @abstractmethod
    def query_documents(
        self,
        collection: str,
        filter_dict: Dict[str, Any],
        limit: int = 100,
        sort: Optional[SortSpec] = None,
    ) -> List[Dict[str, Any]]:
        """Query documents matching the filter criteria.

        Args:
            collection: Name of the collection/table
            filter_dict: Filter criteria as dictionary
            limit: Maximum number of documents to return
            sort: Optional list of ``(field, direction)`` pairs

        Returns:
            List of matching documents
        """
        pass

    @abstractmethod
    def update_document(
        self, collection: str, doc_id: str, patch: Dict[str, Any]
    ) -> None:
        """Update an existing document with the provided patch.

        Raises:
            DocumentNotFoundError: If document does not exist
        """
        pass

    @abstractmethod
    def upsert_document(
        self,
        collection: str,
        doc_id: str,
        patch: Dict[str, Any],
        max_fields: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Atomically create or update a document.

        Fields in ``patch`` are set unconditionally. Fields in ``max_fields``
        are only written when the new value is greater than the stored one, so
        they never move backwards. The two mappings must not share keys.

        Args:
            collection: Name of the collection/table
            doc_id: Document ID
            patch: Fields to set
            max_fields: Fields to max-merge
        """
        pass

    @abstractmethod
    def delete_document(self, collection: str, doc_id: str) -> None:
        """Delete a document by its ID.

        Raises:
            DocumentNotFoundError: If document does not exist
        """
        pass

    def create_index(
        self, collection: str, keys: SortSpec, unique: bool = False
    ) -> None:
        """Create a secondary index. Backends without indexes ignore this."""
        return None
