# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Domus-Messaging contributors

"""Tests for AttachmentResolver."""

from unittest.mock import MagicMock

import pytest

from domus_blob_store import BlobStoreError, InMemoryBlobStore
from domus_messaging import AttachmentNotFoundError, AttachmentResolver, UploadFailedError
from domus_messaging.attachments import ATTACHMENTS_COLLECTION
from domus_storage import DocumentStoreError, InMemoryDocumentStore
from tests.fixtures import FakeClock


@pytest.fixture
def document_store():
    return InMemoryDocumentStore()


@pytest.fixture
def blob_store():
    return InMemoryBlobStore(base_url="https://files.example.com")


@pytest.fixture
def resolver(document_store, blob_store):
    return AttachmentResolver(document_store, blob_store, clock=FakeClock())


class TestUpload:
    """Tests for uploading attachments."""

    def test_upload_stores_bytes_and_record(self, resolver, blob_store):
        """Test a successful upload."""
        attachment = resolver.upload("lodger-1", "boiler.jpg", "image/jpeg", b"\xff\xd8jpeg")

        assert attachment.owner_user_id == "lodger-1"
        assert attachment.display_name == "boiler.jpg"
        assert attachment.byte_size == 6
        assert attachment.storage_key.startswith("lodger-1/")
        assert attachment.storage_key.endswith("_boiler.jpg")
        assert attachment.url.startswith("https://files.example.com/lodger-1/")
        assert blob_store.get(attachment.public_ref) == b"\xff\xd8jpeg"
        assert resolver.get(attachment.id) == attachment

    def test_same_name_twice_gets_distinct_keys(self, resolver):
        """Test that re-uploading a file name never overwrites."""
        first = resolver.upload("u", "photo.png", "image/png", b"1")
        second = resolver.upload("u", "photo.png", "image/png", b"2")

        assert first.storage_key != second.storage_key

    def test_path_components_stripped(self, resolver):
        """Test that client-supplied paths are reduced to a base name."""
        attachment = resolver.upload("u", "C:\\Users\\me\\..\\lease.pdf", None, b"%PDF")

        assert attachment.display_name == "lease.pdf"
        assert attachment.content_type == "application/octet-stream"

    def test_blank_name(self, resolver):
        """Test the fallback display name."""
        assert resolver.upload("u", "", "text/plain", b"x").display_name == "file"

    def test_blob_failure_leaves_no_record(self, document_store):
        """Test that a failed put creates no Attachment."""
        blob_store = MagicMock()
        blob_store.put.side_effect = BlobStoreError("quota exceeded")
        resolver = AttachmentResolver(document_store, blob_store)

        with pytest.raises(UploadFailedError):
            resolver.upload("u", "photo.png", "image/png", b"data")

        assert document_store.query_documents(ATTACHMENTS_COLLECTION, {}) == []

    def test_url_failure_discards_blob_and_leaves_no_record(self, document_store):
        """Test that a URL lookup failure removes the stored blob and records nothing."""
        blob_store = MagicMock()
        blob_store.put.return_value = "ref"
        blob_store.get_url.side_effect = OSError("network")
        resolver = AttachmentResolver(document_store, blob_store)

        with pytest.raises(UploadFailedError):
            resolver.upload("u", "photo.png", "image/png", b"data")

        assert document_store.query_documents(ATTACHMENTS_COLLECTION, {}) == []
        blob_store.delete.assert_called_once_with("ref")

    def test_record_failure_discards_blob(self, blob_store):
        """Test that the stored blob is removed when the record cannot be written."""
        document_store = MagicMock()
        document_store.insert_document.side_effect = DocumentStoreError("down")
        resolver = AttachmentResolver(document_store, blob_store)

        with pytest.raises(UploadFailedError):
            resolver.upload("u", "photo.png", "image/png", b"data")

        assert blob_store.blobs == {}


class TestResolve:
    """Tests for resolving references."""

    def test_resolve(self, resolver):
        """Test resolving one reference."""
        attachment = resolver.upload("u", "lease.pdf", "application/pdf", b"%PDF")

        resolved = resolver.resolve(attachment.id)

        assert resolved.url == attachment.url
        assert resolved.display_name == "lease.pdf"
        assert resolved.content_type == "application/pdf"

    def test_unknown_reference(self, resolver):
        """Test resolving a missing reference."""
        with pytest.raises(AttachmentNotFoundError):
            resolver.resolve("missing")

    def test_resolve_many(self, resolver):
        """Test batch resolution skipping empty and unknown refs."""
        first = resolver.upload("u", "a.txt", "text/plain", b"a")
        second = resolver.upload("u", "b.txt", "text/plain", b"b")

        resolved = resolver.resolve_many([first.id, None, "missing", second.id, first.id])

        assert set(resolved) == {first.id, second.id}
        assert resolved[second.id].display_name == "b.txt"

    def test_resolve_many_empty(self, resolver):
        """Test that nothing to resolve means no query."""
        assert resolver.resolve_many([None, ""]) == {}
