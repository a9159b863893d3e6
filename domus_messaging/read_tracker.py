# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Domus-Messaging contributors

"""Per-user, per-thread "last opened" markers and unread computation.

Read state is a timestamp rather than a last-read message id: a thread the
user has never opened has no marker and is therefore unread, with no
separate first-visit flag.
"""

import logging
from datetime import datetime
from typing import Callable, Dict, Iterable, Optional, Set

from domus_storage import DocumentStore, DocumentStoreError

from .errors import DependencyFailureError
from .models import ReadMarker, Thread, format_timestamp, parse_timestamp, utcnow
from .thread_store import ThreadStore

logger = logging.getLogger(__name__)

READ_MARKERS_COLLECTION = "read_markers"


def is_unread(last_message_at: Optional[datetime], last_opened_at: Optional[datetime]) -> bool:
    """Unread predicate: no marker, or a message newer than the marker."""
    if last_opened_at is None:
        return True
    if last_message_at is None:
        return False
    return last_message_at > last_opened_at


class ReadTracker:
    """Maintains read markers with max-merge upserts.

    When a :class:`ThreadStore` is supplied, opening a thread marks it read
    up to at least its newest message, even if that message's server
    timestamp is slightly ahead of this process's clock.
    """

    def __init__(
        self,
        document_store: DocumentStore,
        thread_store: Optional[ThreadStore] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.document_store = document_store
        self.thread_store = thread_store
        self.clock = clock or utcnow

    def mark_opened(self, thread_id: str, user_id: str) -> datetime:
        """Record that ``user_id`` opened the thread now.

        Idempotent: the stored timestamp only moves forward.

        Returns:
            The timestamp written (the stored value may already be later)
        """
        opened_at = self.clock()
        if self.thread_store is not None:
            last_message_at = self.thread_store.get(thread_id).last_message_at
            if last_message_at is not None and last_message_at > opened_at:
                opened_at = last_message_at

        try:
            self.document_store.upsert_document(
                READ_MARKERS_COLLECTION,
                ReadMarker.document_id(thread_id, user_id),
                {"thread_id": thread_id, "user_id": user_id},
                max_fields={"last_opened_at": format_timestamp(opened_at)},
            )
        except DocumentStoreError as e:
            raise DependencyFailureError(f"Failed to record read marker: {e}") from e

        logger.debug("Thread %s opened by %s at %s", thread_id, user_id, opened_at)
        return opened_at

    def last_opened(self, thread_id: str, user_id: str) -> Optional[datetime]:
        try:
            doc = self.document_store.get_document(
                READ_MARKERS_COLLECTION, ReadMarker.document_id(thread_id, user_id)
            )
        except DocumentStoreError as e:
            raise DependencyFailureError(f"Failed to read marker: {e}") from e
        return parse_timestamp(doc.get("last_opened_at")) if doc else None

    def markers_for(self, user_id: str, thread_ids: Iterable[str]) -> Dict[str, datetime]:
        """Batch-load markers for one user across many threads."""
        ids = list(dict.fromkeys(thread_ids))
        if not ids:
            return {}
        try:
            docs = self.document_store.query_documents(
                READ_MARKERS_COLLECTION,
                {"user_id": user_id, "thread_id": {"$in": ids}},
                limit=len(ids),
            )
        except DocumentStoreError as e:
            raise DependencyFailureError(f"Failed to load read markers: {e}") from e
        return {
            doc["thread_id"]: parse_timestamp(doc["last_opened_at"])
            for doc in docs
            if doc.get("last_opened_at")
        }

    def unread_threads(self, user_id: str, candidate_threads: Iterable[Thread]) -> Set[str]:
        """Ids of the candidate threads that are unread for ``user_id``.

        Uses each thread's ``last_message_at`` as the time of its most
        recent message. Has no side effects.
        """
        threads = list(candidate_threads)
        markers = self.markers_for(user_id, (t.id for t in threads))
        return {
            thread.id
            for thread in threads
            if is_unread(thread.last_message_at, markers.get(thread.id))
        }
