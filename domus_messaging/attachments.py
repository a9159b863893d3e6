# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Domus-Messaging contributors

"""Attachment upload and reference resolution.

Bytes go to the blob store first; the Attachment record is written only
after the blob is stored and its URL is known. A failed upload therefore
never leaves a record that a message could point at.
"""

import logging
import os
import uuid
from datetime import datetime
from typing import Callable, Dict, Iterable, Optional

from domus_blob_store import BlobStore, BlobStoreError
from domus_storage import DocumentStore, DocumentStoreError

from .errors import AttachmentNotFoundError, DependencyFailureError, UploadFailedError
from .models import Attachment, ResolvedAttachment, utcnow

logger = logging.getLogger(__name__)

ATTACHMENTS_COLLECTION = "attachments"

_DEFAULT_CONTENT_TYPE = "application/octet-stream"


def _safe_file_name(file_name: str) -> str:
    name = os.path.basename((file_name or "").replace("\\", "/")).strip()
    return name or "file"


class AttachmentResolver:
    """Stores attachment bytes and resolves references to URLs."""

    def __init__(
        self,
        document_store: DocumentStore,
        blob_store: BlobStore,
        clock: Optional[Callable[[], datetime]] = None,
        storage_provider: str = "blob",
    ):
        self.document_store = document_store
        self.blob_store = blob_store
        self.clock = clock or utcnow
        self.storage_provider = storage_provider

    def upload(
        self,
        owner_user_id: str,
        file_name: str,
        content_type: Optional[str],
        data: bytes,
    ) -> Attachment:
        """Store ``data`` and record an Attachment owned by ``owner_user_id``.

        Raises:
            UploadFailedError: If the bytes or the record could not be stored
        """
        display_name = _safe_file_name(file_name)
        attachment_id = str(uuid.uuid4())
        storage_key = f"{owner_user_id}/{attachment_id}_{display_name}"
        content_type = content_type or _DEFAULT_CONTENT_TYPE

        try:
            public_ref = self.blob_store.put(storage_key, data, content_type=content_type)
        except (BlobStoreError, OSError) as e:
            logger.error("Upload of %s for %s failed: %s", display_name, owner_user_id, e)
            raise UploadFailedError(f"Failed to store attachment {display_name}: {e}") from e

        try:
            url = self.blob_store.get_url(public_ref)
        except (BlobStoreError, OSError) as e:
            logger.error("Could not resolve URL for %s: %s", public_ref, e)
            self._discard_blob(public_ref)
            raise UploadFailedError(f"Failed to store attachment {display_name}: {e}") from e

        attachment = Attachment(
            id=attachment_id,
            owner_user_id=owner_user_id,
            storage_key=storage_key,
            display_name=display_name,
            content_type=content_type,
            byte_size=len(data),
            public_ref=public_ref,
            url=url,
            created_at=self.clock(),
            storage_provider=self.storage_provider,
        )

        try:
            self.document_store.insert_document(ATTACHMENTS_COLLECTION, attachment.to_document())
        except DocumentStoreError as e:
            self._discard_blob(public_ref)
            raise UploadFailedError(f"Failed to record attachment {display_name}: {e}") from e

        logger.info("Stored attachment %s (%d bytes) for %s", attachment_id, len(data), owner_user_id)
        return attachment

    def get(self, attachment_ref: str) -> Attachment:
        """Return the Attachment record.

        Raises:
            AttachmentNotFoundError: If no record exists
        """
        try:
            doc = self.document_store.get_document(ATTACHMENTS_COLLECTION, attachment_ref)
        except DocumentStoreError as e:
            raise DependencyFailureError(f"Failed to read attachment {attachment_ref}: {e}") from e
        if doc is None:
            raise AttachmentNotFoundError(attachment_ref)
        return Attachment.from_document(doc)

    def resolve(self, attachment_ref: str) -> ResolvedAttachment:
        attachment = self.get(attachment_ref)
        return ResolvedAttachment(
            url=attachment.url,
            display_name=attachment.display_name,
            content_type=attachment.content_type,
        )

    def resolve_many(self, attachment_refs: Iterable[Optional[str]]) -> Dict[str, ResolvedAttachment]:
        """Resolve a page of references in one query. Unknown refs are omitted."""
        refs = [ref for ref in dict.fromkeys(attachment_refs) if ref]
        if not refs:
            return {}
        try:
            docs = self.document_store.query_documents(
                ATTACHMENTS_COLLECTION, {"_id": {"$in": refs}}, limit=len(refs)
            )
        except DocumentStoreError as e:
            raise DependencyFailureError(f"Failed to resolve attachments: {e}") from e

        resolved = {}
        for doc in docs:
            attachment = Attachment.from_document(doc)
            resolved[attachment.id] = ResolvedAttachment(
                url=attachment.url,
                display_name=attachment.display_name,
                content_type=attachment.content_type,
            )
        return resolved

    def _discard_blob(self, ref: str) -> None:
        try:
            self.blob_store.delete(ref)
        except (BlobStoreError, OSError) as e:
            logger.warning("Could not remove orphaned blob %s: %s", ref, e)
