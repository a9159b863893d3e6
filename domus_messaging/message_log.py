# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Domus-Messaging contributors

"""Append-only, per-thread ordered message log."""

import logging
import threading
import uuid
from datetime import datetime
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Union

from domus_storage import (
    ASCENDING,
    DESCENDING,
    DocumentStore,
    DocumentStoreError,
    DuplicateDocumentError,
)

from .attachments import AttachmentResolver
from .delivery import DeliveryChannel
from .errors import (
    AttachmentNotOwnedBySenderError,
    ConflictRetryableError,
    DependencyFailureError,
    EmptyMessageError,
)
from .models import (
    TIMESTAMP_RESOLUTION,
    Message,
    MessageCursor,
    Thread,
    format_timestamp,
    utcnow,
)
from .retry import RetryConfig, RetryPolicy
from .thread_store import ThreadStore

logger = logging.getLogger(__name__)

MESSAGES_COLLECTION = "messages"

MESSAGE_ID_NAMESPACE = uuid.UUID("a3d5e0c4-8f2b-4c1d-9e67-2b4f6c8a1d93")

_ORDER = [("seq", ASCENDING)]


def message_id_for(thread_id: str, seq: int) -> str:
    """Document id of message number ``seq`` in ``thread_id``.

    Two writers that pick the same position produce the same id, so the
    store's unique ``_id`` lets exactly one of them commit.
    """
    return str(uuid.uuid5(MESSAGE_ID_NAMESPACE, f"{thread_id}/{seq}"))


class MessageLog:
    """Appends messages and lists them in ``seq`` order.

    A message takes the position after the thread's latest committed
    message and is inserted under an id derived from that position. A
    writer that loses the race for a position gets a duplicate id from the
    store, re-reads the latest message and tries the next position. So
    positions are committed in order with no gaps, whichever process
    writes them, and a reader polling from a cursor never skips a message.

    Within one process a per-thread re-entrant lock serializes posting,
    which keeps races to writers in other processes.
    """

    def __init__(
        self,
        document_store: DocumentStore,
        thread_store: ThreadStore,
        attachments: Optional[AttachmentResolver] = None,
        delivery: Optional[DeliveryChannel] = None,
        clock: Optional[Callable[[], datetime]] = None,
        page_size: int = 100,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        if page_size < 1:
            raise ValueError("page_size must be positive")
        self.document_store = document_store
        self.thread_store = thread_store
        self.attachments = attachments
        self.delivery = delivery
        self.clock = clock or utcnow
        self.page_size = page_size
        self.retry_policy = retry_policy or RetryPolicy(
            RetryConfig(max_attempts=8, base_delay_ms=5, max_delay_ms=200)
        )

        self._thread_locks: Dict[str, threading.RLock] = {}
        self._registry_lock = threading.Lock()

    def ensure_indexes(self) -> None:
        self.document_store.create_index(MESSAGES_COLLECTION, [("thread_id", ASCENDING), ("seq", ASCENDING)])

    def _lock_for(self, thread_id: str) -> threading.RLock:
        with self._registry_lock:
            lock = self._thread_locks.get(thread_id)
            if lock is None:
                lock = self._thread_locks[thread_id] = threading.RLock()
            return lock

    def post(
        self,
        thread_id: str,
        sender_id: str,
        body: Optional[str],
        attachment_ref: Optional[str] = None,
    ) -> Message:
        """Append a message and publish it to live subscribers.

        Raises:
            EmptyMessageError: If there is neither text nor an attachment
            ThreadNotFoundError: If the thread does not exist
            NotParticipantError: If the sender is not a member of the thread
            AttachmentNotFoundError: If ``attachment_ref`` is unknown
            AttachmentNotOwnedBySenderError: If the sender did not upload it
            ConflictRetryableError: If other writers kept taking the next
                position until the retry policy gave up
            DependencyFailureError: If the document store fails
        """
        body = body or ""
        if not body.strip() and not attachment_ref:
            raise EmptyMessageError("A message needs text or an attachment")

        thread = self.thread_store.get(thread_id)
        self.thread_store.require_participant(thread_id, sender_id)
        if attachment_ref:
            self._check_attachment(attachment_ref, sender_id)

        def on_conflict(attempt: int, error: BaseException) -> None:
            logger.debug("Lost position race in %s, attempt %d: %s", thread_id, attempt, error)

        with self._lock_for(thread_id):
            message = self.retry_policy.call(
                lambda: self._append(thread_id, sender_id, body, attachment_ref, thread.last_message_at),
                retry_on=(ConflictRetryableError,),
                on_retry=on_conflict,
            )

            self.thread_store.touch(thread_id, message.created_at)
            logger.debug("Appended message %s (seq %s) to %s", message.id, message.seq, thread_id)

            if self.delivery is not None:
                self.delivery.publish(thread_id, message)

        return message

    def _append(
        self,
        thread_id: str,
        sender_id: str,
        body: str,
        attachment_ref: Optional[str],
        last_activity: Optional[datetime],
    ) -> Message:
        previous = self.latest(thread_id)
        seq = previous.seq + 1 if previous is not None else 1

        floor = last_activity
        if previous is not None and (floor is None or previous.created_at > floor):
            floor = previous.created_at

        message = Message(
            id=message_id_for(thread_id, seq),
            thread_id=thread_id,
            sender_id=sender_id,
            body=body,
            created_at=self._next_timestamp(floor),
            attachment_ref=attachment_ref,
            seq=seq,
        )
        try:
            self.document_store.insert_document(MESSAGES_COLLECTION, message.to_document())
        except DuplicateDocumentError as e:
            raise ConflictRetryableError(f"Position {seq} in {thread_id} was taken") from e
        except DocumentStoreError as e:
            raise DependencyFailureError(f"Failed to append message to {thread_id}: {e}") from e
        return message

    def _next_timestamp(self, floor: Optional[datetime]) -> datetime:
        now = self.clock()
        if floor is not None and now <= floor:
            now = floor + TIMESTAMP_RESOLUTION
        return now

    def _check_attachment(self, attachment_ref: str, sender_id: str) -> None:
        if self.attachments is None:
            raise DependencyFailureError("Attachments are not configured")
        attachment = self.attachments.get(attachment_ref)
        if attachment.owner_user_id != sender_id:
            raise AttachmentNotOwnedBySenderError(attachment_ref, sender_id)

    def list(
        self,
        thread_id: str,
        since: Optional[Union[MessageCursor, Message]] = None,
        viewer_id: Optional[str] = None,
    ) -> Iterator[Message]:
        """Lazily iterate the thread's messages in ascending order.

        Iteration stops before the first missing position, so a message is
        only returned once every earlier one is readable.

        Args:
            thread_id: Thread to read
            since: Start strictly after this cursor or message
            viewer_id: When given, must be a participant of the thread

        Raises:
            ThreadNotFoundError: If the thread does not exist
            NotParticipantError: If ``viewer_id`` is not a member
        """
        self.thread_store.get(thread_id)
        if viewer_id is not None:
            self.thread_store.require_participant(thread_id, viewer_id)
        cursor = since.cursor if isinstance(since, Message) else since
        return self._iter_messages(thread_id, cursor.seq if cursor is not None else 0)

    def _iter_messages(self, thread_id: str, after: int) -> Iterator[Message]:
        while True:
            docs = self._query({"thread_id": thread_id, "seq": {"$gt": after}})
            for doc in docs:
                message = Message.from_document(doc)
                if message.seq != after + 1:
                    logger.debug("Message %d of %s not readable yet, stopping", after + 1, thread_id)
                    return
                after = message.seq
                yield message
            if len(docs) < self.page_size:
                return

    def _query(self, filter_dict: dict) -> List[dict]:
        try:
            return self.document_store.query_documents(
                MESSAGES_COLLECTION, filter_dict, limit=self.page_size, sort=_ORDER
            )
        except DocumentStoreError as e:
            raise DependencyFailureError(f"Failed to list messages: {e}") from e

    def latest(self, thread_id: str) -> Optional[Message]:
        """Most recent message in the thread, or None if it is empty."""
        try:
            docs = self.document_store.query_documents(
                MESSAGES_COLLECTION,
                {"thread_id": thread_id},
                limit=1,
                sort=[("seq", DESCENDING)],
            )
        except DocumentStoreError as e:
            raise DependencyFailureError(f"Failed to read latest message: {e}") from e
        return Message.from_document(docs[0]) if docs else None

    def latest_many(self, threads: Iterable[Thread]) -> Dict[str, Message]:
        """Most recent message of each thread, loaded in one query.

        A thread's ``last_message_at`` is the ``created_at`` of its newest
        message, so matching on both picks exactly that message. Threads
        with no messages are left out.
        """
        stamps = {
            thread.id: format_timestamp(thread.last_message_at)
            for thread in threads
            if thread.last_message_at is not None
        }
        if not stamps:
            return {}
        distinct = sorted(set(stamps.values()))
        try:
            docs = self.document_store.query_documents(
                MESSAGES_COLLECTION,
                {"thread_id": {"$in": list(stamps)}, "created_at": {"$in": distinct}},
                limit=len(stamps) * len(distinct),
            )
        except DocumentStoreError as e:
            raise DependencyFailureError(f"Failed to read latest messages: {e}") from e
        return {
            doc["thread_id"]: Message.from_document(doc)
            for doc in docs
            if doc["created_at"] == stamps[doc["thread_id"]]
        }
