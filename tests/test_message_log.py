# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Domus-Messaging contributors

"""Tests for MessageLog."""

import threading
from datetime import timedelta
from unittest.mock import MagicMock, patch

import pytest

from domus_blob_store import InMemoryBlobStore
from domus_messaging import (
    AttachmentNotFoundError,
    AttachmentNotOwnedBySenderError,
    AttachmentResolver,
    ConflictRetryableError,
    DeliveryChannel,
    DependencyFailureError,
    EmptyMessageError,
    MessageLog,
    NotParticipantError,
    RetryConfig,
    RetryPolicy,
    ThreadNotFoundError,
    ThreadStore,
)
from domus_messaging.message_log import MESSAGES_COLLECTION, message_id_for
from domus_messaging.models import format_timestamp
from domus_storage import DocumentStoreError, DuplicateDocumentError, InMemoryDocumentStore
from tests.fixtures import FakeClock


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def document_store():
    return InMemoryDocumentStore()


@pytest.fixture
def thread_store(document_store, clock):
    return ThreadStore(document_store, clock=clock)


@pytest.fixture
def attachments(document_store, clock):
    return AttachmentResolver(document_store, InMemoryBlobStore(), clock=clock)


@pytest.fixture
def delivery():
    return DeliveryChannel()


@pytest.fixture
def log(document_store, thread_store, attachments, delivery, clock):
    return MessageLog(document_store, thread_store, attachments=attachments, delivery=delivery, clock=clock)


@pytest.fixture
def thread(thread_store):
    return thread_store.find_or_create_direct("a", "b")


class TestPost:
    """Tests for MessageLog.post."""

    def test_post_and_list(self, log, thread):
        """Test that posted messages come back in order."""
        first = log.post(thread.id, "a", "hello")
        second = log.post(thread.id, "b", "hi there")

        assert list(log.list(thread.id)) == [first, second]
        assert (first.seq, second.seq) == (1, 2)

    def test_timestamps_strictly_increase_with_frozen_clock(self, log, thread):
        """Test that same-instant posts still get distinct ascending timestamps."""
        messages = [log.post(thread.id, "a", f"m{i}") for i in range(5)]

        stamps = [m.created_at for m in messages]
        assert stamps == sorted(stamps)
        assert len(set(stamps)) == 5

    def test_timestamp_never_before_last_message(self, log, thread, thread_store, clock):
        """Test that a lagging clock cannot reorder the log."""
        ahead = clock() + timedelta(seconds=10)
        thread_store.touch(thread.id, ahead)

        message = log.post(thread.id, "a", "late clock")

        assert message.created_at > ahead

    def test_post_updates_thread_activity(self, log, thread, thread_store):
        """Test that the thread records the newest message time."""
        message = log.post(thread.id, "a", "hello")

        assert thread_store.get(thread.id).last_message_at == message.created_at

    def test_post_publishes_to_subscribers(self, log, thread, delivery):
        """Test that live subscribers receive the committed message."""
        received = []
        delivery.subscribe(thread.id, received.append)

        message = log.post(thread.id, "a", "hello")

        assert received == [message]

    @pytest.mark.parametrize("body", ["", "   ", None])
    def test_empty_message_rejected(self, log, thread, body):
        """Test that a message needs text or an attachment."""
        with pytest.raises(EmptyMessageError):
            log.post(thread.id, "a", body)

        assert list(log.list(thread.id)) == []

    def test_attachment_only_message(self, log, thread, attachments):
        """Test that an attachment alone is a valid message."""
        attachment = attachments.upload("a", "lease.pdf", "application/pdf", b"%PDF")

        message = log.post(thread.id, "a", "", attachment_ref=attachment.id)

        assert message.attachment_ref == attachment.id
        assert message.body == ""

    def test_attachment_owned_by_someone_else(self, log, thread, attachments):
        """Test that senders can only attach their own uploads."""
        attachment = attachments.upload("b", "photo.jpg", "image/jpeg", b"jpeg")

        with pytest.raises(AttachmentNotOwnedBySenderError):
            log.post(thread.id, "a", "look", attachment_ref=attachment.id)

    def test_unknown_attachment(self, log, thread):
        """Test that a dangling reference is rejected."""
        with pytest.raises(AttachmentNotFoundError):
            log.post(thread.id, "a", "look", attachment_ref="nope")

    def test_attachment_without_resolver(self, document_store, thread_store, thread):
        """Test posting an attachment when attachments are not configured."""
        log = MessageLog(document_store, thread_store)

        with pytest.raises(DependencyFailureError):
            log.post(thread.id, "a", "look", attachment_ref="ref")

    def test_non_participant_rejected(self, log, thread):
        """Test that outsiders cannot post."""
        with pytest.raises(NotParticipantError):
            log.post(thread.id, "mallory", "hi")

    def test_unknown_thread(self, log):
        """Test posting to a missing thread."""
        with pytest.raises(ThreadNotFoundError):
            log.post("missing", "a", "hi")

    def test_insert_failure_wrapped(self, thread_store, thread):
        """Test that a failed append surfaces as DependencyFailureError."""
        store = MagicMock()
        store.query_documents.return_value = []
        store.insert_document.side_effect = DocumentStoreError("down")
        log = MessageLog(store, thread_store)

        with pytest.raises(DependencyFailureError):
            log.post(thread.id, "a", "hi")

    def test_invalid_page_size(self, document_store, thread_store):
        """Test that page_size must be positive."""
        with pytest.raises(ValueError):
            MessageLog(document_store, thread_store, page_size=0)


class TestConcurrentPosts:
    """Tests for ordering under concurrent senders."""

    def test_concurrent_posts_are_totally_ordered(self, document_store, thread_store, thread):
        """Test that every message appears once, in sequence order."""
        log = MessageLog(document_store, thread_store, page_size=7)
        barrier = threading.Barrier(4)

        def sender(user_id):
            barrier.wait()
            for i in range(10):
                log.post(thread.id, user_id, f"{user_id}-{i}")

        workers = [threading.Thread(target=sender, args=(u,)) for u in ("a", "b", "a", "b")]
        for w in workers:
            w.start()
        for w in workers:
            w.join()

        messages = list(log.list(thread.id))
        assert len(messages) == 40
        assert len({m.id for m in messages}) == 40
        assert [m.seq for m in messages] == list(range(1, 41))
        stamps = [m.created_at for m in messages]
        assert all(earlier < later for earlier, later in zip(stamps, stamps[1:]))

    def test_threads_are_independent(self, log, thread_store):
        """Test that each thread has its own sequence."""
        first = thread_store.find_or_create_direct("a", "b")
        second = thread_store.find_or_create_direct("a", "c")

        log.post(first.id, "a", "one")
        message = log.post(second.id, "a", "two")

        assert message.seq == 1

    def test_two_logs_over_one_store_interleaved(self, document_store, thread_store, thread, clock):
        """Test that a writer losing a position race lands after the winner and reaches cursor pollers."""
        first_log = MessageLog(document_store, thread_store, clock=clock)
        second_log = MessageLog(document_store, thread_store, clock=clock)
        reader = MessageLog(document_store, thread_store, clock=clock)
        insert = document_store.insert_document
        race = {}

        def insert_after_other_writer(collection, doc):
            if collection == MESSAGES_COLLECTION and "started" not in race:
                race["started"] = True
                race["winner"] = second_log.post(thread.id, "b", "second writer")
                race["seen"] = list(reader.list(thread.id))
            return insert(collection, doc)

        with patch.object(document_store, "insert_document", side_effect=insert_after_other_writer):
            late = first_log.post(thread.id, "a", "first writer")

        winner = race["winner"]
        assert race["seen"] == [winner]
        assert list(reader.list(thread.id, since=race["seen"][-1])) == [late]
        assert (winner.seq, late.seq) == (1, 2)
        assert winner.created_at < late.created_at
        assert list(reader.list(thread.id)) == [winner, late]
        assert thread_store.get(thread.id).last_message_at == late.created_at

    def test_gives_up_when_position_keeps_being_taken(self, document_store, thread_store, thread):
        """Test that a writer that never wins a position raises ConflictRetryableError."""
        policy = RetryPolicy(RetryConfig(max_attempts=3, base_delay_ms=0, use_jitter=False))
        log = MessageLog(document_store, thread_store, retry_policy=policy)

        with patch.object(
            document_store, "insert_document", side_effect=DuplicateDocumentError("taken")
        ) as insert:
            with pytest.raises(ConflictRetryableError):
                log.post(thread.id, "a", "hi")

        assert insert.call_count == 3
        assert list(log.list(thread.id)) == []


class TestList:
    """Tests for paging and cursors."""

    def test_pages_through_everything(self, document_store, thread_store, thread, clock):
        """Test iteration across many small pages."""
        log = MessageLog(document_store, thread_store, clock=clock, page_size=2)
        posted = []
        for i in range(5):
            posted.append(log.post(thread.id, "a", f"m{i}"))
            clock.advance()

        assert list(log.list(thread.id)) == posted

    def test_exact_multiple_of_page_size(self, document_store, thread_store, thread):
        """Test that a full final page terminates cleanly."""
        log = MessageLog(document_store, thread_store, page_size=2)
        posted = [log.post(thread.id, "a", f"m{i}") for i in range(4)]

        assert list(log.list(thread.id)) == posted

    def test_ordered_by_position_not_timestamp_or_id(self, document_store, thread_store, thread, clock):
        """Test that paging follows seq even when timestamps tie and ids disagree."""
        stamp = format_timestamp(clock())
        for seq, message_id in enumerate(("e", "c", "a", "d", "b"), start=1):
            document_store.insert_document(
                MESSAGES_COLLECTION,
                {"_id": message_id, "thread_id": thread.id, "sender_id": "a", "body": message_id,
                 "created_at": stamp, "seq": seq},
            )
        log = MessageLog(document_store, thread_store, page_size=2)

        assert [m.id for m in log.list(thread.id)] == ["e", "c", "a", "d", "b"]

    def test_stops_before_missing_position(self, document_store, thread_store, thread, clock):
        """Test that a message is withheld until every earlier one is readable."""
        log = MessageLog(document_store, thread_store, clock=clock)
        stamp = format_timestamp(clock())

        def insert(seq):
            document_store.insert_document(
                MESSAGES_COLLECTION,
                {"_id": message_id_for(thread.id, seq), "thread_id": thread.id, "sender_id": "a",
                 "body": f"m{seq}", "created_at": stamp, "seq": seq},
            )

        insert(1)
        insert(3)
        first = list(log.list(thread.id))
        assert [m.seq for m in first] == [1]

        insert(2)
        assert [m.seq for m in log.list(thread.id, since=first[-1])] == [2, 3]

    def test_since_message(self, log, thread):
        """Test listing strictly after a message."""
        posted = [log.post(thread.id, "a", f"m{i}") for i in range(4)]

        assert list(log.list(thread.id, since=posted[1])) == posted[2:]
        assert list(log.list(thread.id, since=posted[1].cursor)) == posted[2:]
        assert list(log.list(thread.id, since=posted[-1])) == []

    def test_list_is_lazy(self, log, thread):
        """Test that messages are fetched as the caller iterates."""
        log.post(thread.id, "a", "first")
        iterator = log.list(thread.id)
        later = log.post(thread.id, "a", "second")

        assert [m.id for m in iterator][-1] == later.id

    def test_list_validates_eagerly(self, log, thread):
        """Test that errors surface before iteration."""
        with pytest.raises(ThreadNotFoundError):
            log.list("missing")
        with pytest.raises(NotParticipantError):
            log.list(thread.id, viewer_id="mallory")

    def test_empty_thread(self, log, thread):
        """Test listing a thread with no messages."""
        assert list(log.list(thread.id)) == []
        assert log.latest(thread.id) is None

    def test_latest(self, log, thread):
        """Test fetching the newest message."""
        log.post(thread.id, "a", "first")
        last = log.post(thread.id, "b", "second")

        assert log.latest(thread.id) == last

    def test_latest_many(self, log, thread_store):
        """Test loading the newest message of several threads in one call."""
        first = thread_store.find_or_create_direct("a", "b")
        second = thread_store.find_or_create_direct("a", "c")
        empty = thread_store.find_or_create_direct("a", "d")
        log.post(first.id, "a", "old")
        newest_first = log.post(first.id, "b", "new")
        newest_second = log.post(second.id, "c", "only")

        threads = [thread_store.get(t.id) for t in (first, second, empty)]

        assert log.latest_many(threads) == {first.id: newest_first, second.id: newest_second}
        assert log.latest_many([]) == {}
