# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Domus-Messaging contributors

"""MongoDB document store implementation."""

import logging
import uuid
from typing import Any, Dict, List, Optional

from pymongo import MongoClient
from pymongo.errors import ConnectionFailure, DuplicateKeyError, PyMongoError

from domus_config import DriverConfig_DocumentStore_Mongodb

from .document_store import (
    DocumentNotFoundError,
    DocumentStore,
    DocumentStoreConnectionError,
    DocumentStoreError,
    DocumentStoreNotConnectedError,
    DuplicateDocumentError,
    SortSpec,
)

logger = logging.getLogger(__name__)


class MongoDocumentStore(DocumentStore):
    """MongoDB document store implementation.

    Document ids are plain strings chosen by the caller (or a generated
    UUID), never ``ObjectId``s, so deterministic ids can be used for
    insert-if-absent semantics.
    """

    @classmethod
    def from_config(cls, driver_config: DriverConfig_DocumentStore_Mongodb) -> "MongoDocumentStore":
        """Create a MongoDocumentStore from configuration."""
        return cls(
            host=driver_config.host,
            port=driver_config.port,
            username=driver_config.username,
            password=driver_config.password,
            database=driver_config.database,
        )

    def __init__(
        self,
        host: str | None = None,
        port: int | None = None,
        username: str | None = None,
        password: str | None = None,
        database: str | None = None,
        **kwargs
    ):
        """Initialize MongoDB document store.

        Args:
            host: MongoDB host (required)
            port: MongoDB port (required)
            username: MongoDB username (optional)
            password: MongoDB password (optional)
            database: Database name (required)
            **kwargs: Additional MongoDB client options

        Raises:
            ValueError: If required parameters (host, port, database) are not provided
        """
        if not host:
            raise ValueError(
                "MongoDB host is required. "
                "Provide the MongoDB server hostname or IP address."
            )
        if port is None:
            raise ValueError(
                "MongoDB port is required. "
                "Provide the MongoDB server port number."
            )
        if not database:
            raise ValueError(
                "MongoDB database is required. "
                "Provide the database name to use."
            )

        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.database_name = database
        self.client_options = kwargs
        self.client = None
        self.database = None

    def connect(self) -> None:
        """Connect to MongoDB.

        Raises:
            DocumentStoreConnectionError: If connection fails
        """
        try:
            connection_params: Dict[str, Any] = {
                "host": self.host,
                "port": self.port,
            }
            if self.username and self.password:
                connection_params["username"] = self.username
                connection_params["password"] = self.password
                if "authSource" not in self.client_options:
                    connection_params["authSource"] = "admin"
            connection_params.update(self.client_options)

            self.client = MongoClient(**connection_params)
            self.client.admin.command("ping")
            self.database = self.client[self.database_name]

            logger.info("MongoDocumentStore: connected to %s:%s/%s", self.host, self.port, self.database_name)

        except ConnectionFailure as e:
            logger.error("MongoDocumentStore: connection failed - %s", e, exc_info=True)
            raise DocumentStoreConnectionError(f"Failed to connect to MongoDB at {self.host}:{self.port}") from e
        except PyMongoError as e:
            logger.error("MongoDocumentStore: unexpected error during connect - %s", e, exc_info=True)
            raise DocumentStoreConnectionError(f"Unexpected error connecting to MongoDB: {str(e)}") from e

    def disconnect(self) -> None:
        """Disconnect from MongoDB."""
        if self.client:
            self.client.close()
            self.client = None
            self.database = None
            logger.info("MongoDocumentStore: disconnected")

    def _collection(self, collection: str):
        if self.database is None:
            raise DocumentStoreNotConnectedError("Not connected to MongoDB")
        return self.database[collection]

    def insert_document(self, collection: str, doc: Dict[str, Any]) -> str:
        coll = self._collection(collection)
        doc_copy = dict(doc)
        doc_copy["_id"] = doc_copy.get("_id") or str(uuid.uuid4())
        try:
            coll.insert_one(doc_copy)
        except DuplicateKeyError as e:
            raise DuplicateDocumentError(
                f"Document {doc_copy['_id']} already exists in collection {collection}"
            ) from e
        except PyMongoError as e:
            logger.error("MongoDocumentStore: insert failed - %s", e)
            raise DocumentStoreError(f"Failed to insert document into {collection}: {e}") from e
        logger.debug("MongoDocumentStore: inserted document %s into %s", doc_copy["_id"], collection)
        return doc_copy["_id"]

    def get_document(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        coll = self._collection(collection)
        try:
            return coll.find_one({"_id": doc_id})
        except PyMongoError as e:
            logger.error("MongoDocumentStore: get failed - %s", e)
            raise DocumentStoreError(f"Failed to get document {doc_id} from {collection}: {e}") from e

    def query_documents(
        self,
        collection: str,
        filter_dict: Dict[str, Any],
        limit: int = 100,
        sort: Optional[SortSpec] = None,
    ) -> List[Dict[str, Any]]:
        coll = self._collection(collection)
        try:
            cursor = coll.find(filter_dict)
            if sort:
                cursor = cursor.sort(list(sort))
            return list(cursor.limit(limit))
        except PyMongoError as e:
            logger.error("MongoDocumentStore: query failed - %s", e)
            raise DocumentStoreError(f"Failed to query {collection}: {e}") from e

    def update_document(
        self, collection: str, doc_id: str, patch: Dict[str, Any]
    ) -> None:
        coll = self._collection(collection)
        try:
            result = coll.update_one({"_id": doc_id}, {"$set": patch})
        except PyMongoError as e:
            logger.error("MongoDocumentStore: update failed - %s", e)
            raise DocumentStoreError(f"Failed to update document {doc_id} in {collection}: {e}") from e
        if result.matched_count == 0:
            raise DocumentNotFoundError(f"Document {doc_id} not found in collection {collection}")

    def upsert_document(
        self,
        collection: str,
        doc_id: str,
        patch: Dict[str, Any],
        max_fields: Optional[Dict[str, Any]] = None,
    ) -> None:
        coll = self._collection(collection)
        update: Dict[str, Any] = {}
        if patch:
            update["$set"] = patch
        if max_fields:
            update["$max"] = max_fields
        if not update:
            return

        try:
            try:
                coll.update_one({"_id": doc_id}, update, upsert=True)
            except DuplicateKeyError:
                # Two concurrent upserts both tried to insert; the document now exists
                coll.update_one({"_id": doc_id}, update)
        except PyMongoError as e:
            logger.error("MongoDocumentStore: upsert failed - %s", e)
            raise DocumentStoreError(f"Failed to upsert document {doc_id} in {collection}: {e}") from e

    def delete_document(self, collection: str, doc_id: str) -> None:
        coll = self._collection(collection)
        try:
            result = coll.delete_one({"_id": doc_id})
        except PyMongoError as e:
            logger.error("MongoDocumentStore: delete failed - %s", e)
            raise DocumentStoreError(f"Failed to delete document {doc_id} from {collection}: {e}") from e
        if result.deleted_count == 0:
            raise DocumentNotFoundError(f"Document {doc_id} not found in collection {collection}")

    def create_index(
        self, collection: str, keys: SortSpec, unique: bool = False
    ) -> None:
        coll = self._collection(collection)
        try:
            name = coll.create_index(list(keys), unique=unique)
        except PyMongoError as e:
            logger.error("MongoDocumentStore: create_index failed - %s", e)
            raise DocumentStoreError(f"Failed to create index on {collection}: {e}") from e
        logger.debug("MongoDocumentStore: ensured index %s on %s", name, collection)
