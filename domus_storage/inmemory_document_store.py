# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Domus-Messaging contributors

"""In-memory document store for testing and local development."""

import copy
import logging
import threading
import uuid
from collections import defaultdict
from typing import Any, Dict, List, Optional

from domus_config import DriverConfig_DocumentStore_Inmemory

from .document_store import (
    DocumentNotFoundError,
    DocumentStore,
    DuplicateDocumentError,
    SortSpec,
)

logger = logging.getLogger(__name__)

_MISSING = object()


def _compare(op: str, actual: Any, expected: Any) -> bool:
    if op == "$eq":
        return actual == expected
    if op == "$ne":
        return actual != expected
    if op == "$in":
        return actual in expected
    if op == "$exists":
        return (actual is not _MISSING) == bool(expected)
    if actual is _MISSING or actual is None:
        return False
    if op == "$gt":
        return actual > expected
    if op == "$gte":
        return actual >= expected
    if op == "$lt":
        return actual < expected
    if op == "$lte":
        return actual <= expected
    raise ValueError(f"Unsupported query operator: {op}")


def _matches(doc: Dict[str, Any], filter_dict: Dict[str, Any]) -> bool:
    for key, condition in filter_dict.items():
        actual = doc.get(key, _MISSING)
        if isinstance(condition, dict) and condition and all(k.startswith("$") for k in condition):
            for op, expected in condition.items():
                if not _compare(op, actual, expected):
                    return False
        else:
            if actual is _MISSING:
                actual = None
            if actual != condition:
                return False
    return True


def _sort_key(field: str):
    def key(doc: Dict[str, Any]):
        value = doc.get(field)
        # Nulls sort first, as in MongoDB
        return (value is not None, value)
    return key


class InMemoryDocumentStore(DocumentStore):
    """In-memory document store implementation for testing.

    All operations run under one re-entrant lock, so the atomic primitives
    (insert-if-absent and upsert with max-merge) behave like their
    MongoDB counterparts under concurrent callers.
    """

    def __init__(self):
        self.collections: Dict[str, Dict[str, Dict[str, Any]]] = defaultdict(dict)
        self.connected = False
        self._lock = threading.RLock()

    @classmethod
    def from_config(cls, driver_config: DriverConfig_DocumentStore_Inmemory) -> "InMemoryDocumentStore":
        del driver_config
        return cls()

    def connect(self) -> None:
        """Pretend to connect.

        Note: Always succeeds for in-memory store
        """
        self.connected = True
        logger.debug("InMemoryDocumentStore: connected")

    def disconnect(self) -> None:
        """Pretend to disconnect."""
        self.connected = False
        logger.debug("InMemoryDocumentStore: disconnected")

    def insert_document(self, collection: str, doc: Dict[str, Any]) -> str:
        doc_id = doc.get("_id") or str(uuid.uuid4())
        doc_copy = copy.deepcopy(doc)
        doc_copy["_id"] = doc_id

        with self._lock:
            if doc_id in self.collections[collection]:
                raise DuplicateDocumentError(
                    f"Document {doc_id} already exists in collection {collection}"
                )
            self.collections[collection][doc_id] = doc_copy

        logger.debug("InMemoryDocumentStore: inserted document %s into %s", doc_id, collection)
        return doc_id

    def get_document(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            doc = self.collections[collection].get(doc_id)
            # Deep copy so callers cannot mutate stored data
            return copy.deepcopy(doc) if doc is not None else None

    def query_documents(
        self,
        collection: str,
        filter_dict: Dict[str, Any],
        limit: int = 100,
        sort: Optional[SortSpec] = None,
    ) -> List[Dict[str, Any]]:
        """Query documents matching the filter criteria.

        Args:
            collection: Name of the collection
            filter_dict: Filter criteria (equality or operator dictionaries)
            limit: Maximum number of documents to return
            sort: Optional list of ``(field, direction)`` pairs

        Returns:
            List of matching documents
        """
        with self._lock:
            matched = [
                copy.deepcopy(doc)
                for doc in self.collections[collection].values()
                if _matches(doc, filter_dict)
            ]

        # Stable sorts applied from the least significant key
        for field, direction in reversed(list(sort or [])):
            matched.sort(key=_sort_key(field), reverse=direction < 0)

        results = matched[:limit]
        logger.debug(
            "InMemoryDocumentStore: query on %s with %s returned %d documents",
            collection, filter_dict, len(results),
        )
        return results

    def update_document(
        self, collection: str, doc_id: str, patch: Dict[str, Any]
    ) -> None:
        with self._lock:
            if doc_id not in self.collections[collection]:
                raise DocumentNotFoundError(f"Document {doc_id} not found in collection {collection}")
            self.collections[collection][doc_id].update(copy.deepcopy(patch))
        logger.debug("InMemoryDocumentStore: updated document %s in %s", doc_id, collection)

    def upsert_document(
        self,
        collection: str,
        doc_id: str,
        patch: Dict[str, Any],
        max_fields: Optional[Dict[str, Any]] = None,
    ) -> None:
        with self._lock:
            doc = self.collections[collection].setdefault(doc_id, {"_id": doc_id})
            doc.update(copy.deepcopy(patch))
            for field, value in (max_fields or {}).items():
                current = doc.get(field)
                if current is None or value > current:
                    doc[field] = value
        logger.debug("InMemoryDocumentStore: upserted document %s in %s", doc_id, collection)

    def delete_document(self, collection: str, doc_id: str) -> None:
        with self._lock:
            if doc_id not in self.collections[collection]:
                raise DocumentNotFoundError(f"Document {doc_id} not found in collection {collection}")
            del self.collections[collection][doc_id]
        logger.debug("InMemoryDocumentStore: deleted document %s from %s", doc_id, collection)

    def clear_collection(self, collection: str) -> None:
        """Clear all documents in a collection (useful for testing)."""
        with self._lock:
            self.collections[collection].clear()

    def clear_all(self) -> None:
        """Clear all collections (useful for testing)."""
        with self._lock:
            self.collections.clear()
