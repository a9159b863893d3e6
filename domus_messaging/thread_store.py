# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Domus-Messaging contributors

"""Thread records, participant membership and find-or-create for direct chats."""

import logging
import uuid
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional

from domus_storage import (
    DESCENDING,
    DocumentNotFoundError,
    DocumentStore,
    DocumentStoreError,
    DuplicateDocumentError,
)

from .errors import (
    ConflictRetryableError,
    DependencyFailureError,
    InvalidStateError,
    InvalidTransitionError,
    NotParticipantError,
    ThreadNotFoundError,
)
from .models import (
    CaseStatus,
    Participant,
    ParticipantRole,
    Thread,
    ThreadKind,
    Urgency,
    can_transition,
    direct_pair_key,
    format_timestamp,
    utcnow,
)

logger = logging.getLogger(__name__)

THREADS_COLLECTION = "threads"
PARTICIPANTS_COLLECTION = "thread_participants"

# Namespace for deterministic direct-thread ids
DIRECT_THREAD_NAMESPACE = uuid.UUID("6f1c7a52-3b1e-4a55-9d8e-4b0b8d8f1e21")

_MAX_THREADS_PER_USER = 10000
_MAX_PARTICIPANT_ROWS = 100000


def direct_thread_id(user_a: str, user_b: str) -> str:
    """Deterministic thread id for the unordered pair {user_a, user_b}."""
    return str(uuid.uuid5(DIRECT_THREAD_NAMESPACE, direct_pair_key(user_a, user_b)))


class ThreadStore:
    """Owns Thread records and their participant sets.

    Direct threads are deduplicated by deriving the thread id from the
    unordered participant pair and creating it with insert-if-absent, so two
    users starting a chat with each other at the same time end up in the
    same thread. Participant rows are keyed ``{thread_id}:{user_id}`` and
    are only ever inserted (or, for a case assignee, replaced).
    """

    def __init__(
        self,
        document_store: DocumentStore,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.document_store = document_store
        self.clock = clock or utcnow

    def ensure_indexes(self) -> None:
        self.document_store.create_index(PARTICIPANTS_COLLECTION, [("user_id", 1)])
        self.document_store.create_index(PARTICIPANTS_COLLECTION, [("thread_id", 1)])
        self.document_store.create_index(THREADS_COLLECTION, [("last_activity_at", DESCENDING)])

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get(self, thread_id: str) -> Thread:
        """Return the thread.

        Raises:
            ThreadNotFoundError: If the id is unknown
        """
        doc = self._get_document(THREADS_COLLECTION, thread_id)
        if doc is None:
            raise ThreadNotFoundError(thread_id)
        return Thread.from_document(doc)

    def participants(self, thread_id: str) -> List[Participant]:
        docs = self._query(PARTICIPANTS_COLLECTION, {"thread_id": thread_id}, limit=_MAX_THREADS_PER_USER)
        return [Participant.from_document(doc) for doc in docs]

    def participant_ids(self, thread_id: str) -> List[str]:
        return [p.user_id for p in self.participants(thread_id)]

    def participant_ids_many(self, thread_ids: Iterable[str]) -> Dict[str, List[str]]:
        """Participant ids of several threads, loaded in one query."""
        members: Dict[str, List[str]] = {thread_id: [] for thread_id in thread_ids}
        if not members:
            return members
        docs = self._query(
            PARTICIPANTS_COLLECTION,
            {"thread_id": {"$in": list(members)}},
            limit=_MAX_PARTICIPANT_ROWS,
        )
        for doc in docs:
            members.setdefault(doc["thread_id"], []).append(doc["user_id"])
        return members

    def is_participant(self, thread_id: str, user_id: str) -> bool:
        doc_id = Participant.document_id(thread_id, user_id)
        return self._get_document(PARTICIPANTS_COLLECTION, doc_id) is not None

    def require_participant(self, thread_id: str, user_id: str) -> None:
        """Raise NotParticipantError unless ``user_id`` belongs to the thread."""
        if not self.is_participant(thread_id, user_id):
            raise NotParticipantError(thread_id, user_id)

    def list_for_user(self, user_id: str, kind: Optional[ThreadKind] = None) -> List[Thread]:
        """All threads ``user_id`` participates in, most recent activity first."""
        memberships = self._query(
            PARTICIPANTS_COLLECTION, {"user_id": user_id}, limit=_MAX_THREADS_PER_USER
        )
        thread_ids = [doc["thread_id"] for doc in memberships]
        if not thread_ids:
            return []

        filter_dict = {"_id": {"$in": thread_ids}}
        if kind is not None:
            filter_dict["kind"] = kind.value
        docs = self._query(
            THREADS_COLLECTION,
            filter_dict,
            limit=len(thread_ids),
            sort=[("last_activity_at", DESCENDING), ("_id", DESCENDING)],
        )
        return [Thread.from_document(doc) for doc in docs]

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def find_or_create_direct(self, user_a: str, user_b: str) -> Thread:
        """Return the direct thread between two users, creating it if absent.

        Raises:
            InvalidStateError: If both ids are the same user
            ConflictRetryableError: If another caller created the thread but
                it is not readable yet
        """
        if not user_a or not user_b:
            raise InvalidStateError("Both participants are required for a direct thread")
        if user_a == user_b:
            raise InvalidStateError("A direct thread needs two distinct participants")

        now = self.clock()
        thread = Thread(
            id=direct_thread_id(user_a, user_b),
            kind=ThreadKind.DIRECT,
            created_by=user_a,
            created_at=now,
            last_activity_at=now,
            pair_key=direct_pair_key(user_a, user_b),
        )

        try:
            self.document_store.insert_document(THREADS_COLLECTION, thread.to_document())
            logger.info("Created direct thread %s", thread.id)
        except DuplicateDocumentError:
            existing = self._get_document(THREADS_COLLECTION, thread.id)
            if existing is None:
                raise ConflictRetryableError(
                    f"Direct thread {thread.id} exists but is not readable yet"
                )
            thread = Thread.from_document(existing)
        except DocumentStoreError as e:
            raise DependencyFailureError(f"Failed to create direct thread: {e}") from e

        # Both racers assert both rows; insert-if-absent keeps this idempotent
        for user_id in sorted((user_a, user_b)):
            self._add_participant_row(
                Participant(thread.id, user_id, ParticipantRole.MEMBER, thread.created_at)
            )
        return thread

    def create_complaint_case(
        self,
        raiser: str,
        assignee: Optional[str],
        subject: str,
        description: str,
        urgency: Urgency = Urgency.MEDIUM,
    ) -> Thread:
        """Create a new complaint case thread with status ``open``. Never deduplicated."""
        if not raiser:
            raise InvalidStateError("A complaint case needs a raiser")

        now = self.clock()
        thread = Thread(
            id=str(uuid.uuid4()),
            kind=ThreadKind.COMPLAINT_CASE,
            created_by=raiser,
            created_at=now,
            subject=subject,
            last_activity_at=now,
            raiser_id=raiser,
            assignee_id=assignee,
            description=description,
            status=CaseStatus.OPEN,
            urgency=Urgency(urgency),
        )
        self._insert_thread(thread)

        self._add_participant_row(Participant(thread.id, raiser, ParticipantRole.RAISER, now))
        if assignee and assignee != raiser:
            self._add_participant_row(Participant(thread.id, assignee, ParticipantRole.ASSIGNEE, now))

        logger.info("Created complaint case %s raised by %s", thread.id, raiser)
        return thread

    def create_group(self, creator: str, subject: Optional[str], members: Iterable[str]) -> Thread:
        """Create a group thread containing the creator and ``members``."""
        now = self.clock()
        thread = Thread(
            id=str(uuid.uuid4()),
            kind=ThreadKind.GROUP,
            created_by=creator,
            created_at=now,
            subject=subject,
            last_activity_at=now,
        )
        self._insert_thread(thread)
        for user_id in dict.fromkeys([creator, *members]):
            self._add_participant_row(Participant(thread.id, user_id, ParticipantRole.MEMBER, now))
        logger.info("Created group thread %s", thread.id)
        return thread

    # ------------------------------------------------------------------
    # Membership and case changes
    # ------------------------------------------------------------------

    def add_participant(self, thread_id: str, user_id: str) -> None:
        """Append a member to a group thread. Adding an existing member is a no-op.

        Raises:
            InvalidStateError: For direct threads and complaint cases
        """
        thread = self.get(thread_id)
        if thread.kind is ThreadKind.DIRECT:
            raise InvalidStateError("Direct thread participants cannot change")
        if thread.kind is ThreadKind.COMPLAINT_CASE:
            raise InvalidStateError("Complaint case members change only by reassignment")
        self._add_participant_row(Participant(thread_id, user_id, ParticipantRole.MEMBER, self.clock()))

    def reassign_case(self, thread_id: str, new_assignee: str) -> Thread:
        """Replace the assignee of a complaint case.

        Raises:
            InvalidStateError: If the thread is not a case or no assignee is given
        """
        thread = self._get_case(thread_id)
        if not new_assignee:
            raise InvalidStateError("A case assignee cannot be cleared")
        if new_assignee == thread.assignee_id:
            return thread

        if new_assignee != thread.raiser_id:
            self._add_participant_row(
                Participant(thread_id, new_assignee, ParticipantRole.ASSIGNEE, self.clock())
            )
        if thread.assignee_id and thread.assignee_id != thread.raiser_id:
            try:
                self.document_store.delete_document(
                    PARTICIPANTS_COLLECTION, Participant.document_id(thread_id, thread.assignee_id)
                )
            except DocumentNotFoundError:
                pass

        self._update_thread(thread_id, {"assignee_id": new_assignee})
        logger.info("Reassigned case %s from %s to %s", thread_id, thread.assignee_id, new_assignee)
        return self.get(thread_id)

    def update_case_status(self, thread_id: str, new_status: CaseStatus) -> Thread:
        """Move a complaint case to ``new_status``.

        Setting the current status again is a no-op.

        Raises:
            InvalidStateError: If the thread is not a complaint case
            InvalidTransitionError: If the move is not an allowed edge
        """
        new_status = CaseStatus(new_status)
        thread = self._get_case(thread_id)
        current = thread.status or CaseStatus.OPEN
        if new_status is current:
            return thread
        if not can_transition(current, new_status):
            raise InvalidTransitionError(thread_id, current.value, new_status.value)

        self._update_thread(thread_id, {"status": new_status.value})
        logger.info("Case %s moved from %s to %s", thread_id, current.value, new_status.value)
        return self.get(thread_id)

    def update_case_urgency(self, thread_id: str, urgency: Urgency) -> Thread:
        urgency = Urgency(urgency)
        thread = self._get_case(thread_id)
        if thread.urgency is urgency:
            return thread
        self._update_thread(thread_id, {"urgency": urgency.value})
        return self.get(thread_id)

    def touch(self, thread_id: str, at: datetime) -> None:
        """Record message activity; timestamps only move forward."""
        stamp = format_timestamp(at)
        try:
            self.document_store.upsert_document(
                THREADS_COLLECTION,
                thread_id,
                {},
                max_fields={"last_activity_at": stamp, "last_message_at": stamp},
            )
        except DocumentStoreError as e:
            raise DependencyFailureError(f"Failed to update thread activity: {e}") from e

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _get_case(self, thread_id: str) -> Thread:
        thread = self.get(thread_id)
        if not thread.is_case:
            raise InvalidStateError(f"Thread {thread_id} is not a complaint case")
        return thread

    def _insert_thread(self, thread: Thread) -> None:
        try:
            self.document_store.insert_document(THREADS_COLLECTION, thread.to_document())
        except DocumentStoreError as e:
            raise DependencyFailureError(f"Failed to create thread: {e}") from e

    def _update_thread(self, thread_id: str, patch: dict) -> None:
        try:
            self.document_store.update_document(THREADS_COLLECTION, thread_id, patch)
        except DocumentNotFoundError as e:
            raise ThreadNotFoundError(thread_id) from e
        except DocumentStoreError as e:
            raise DependencyFailureError(f"Failed to update thread {thread_id}: {e}") from e

    def _add_participant_row(self, participant: Participant) -> None:
        try:
            self.document_store.insert_document(PARTICIPANTS_COLLECTION, participant.to_document())
        except DuplicateDocumentError:
            pass
        except DocumentStoreError as e:
            raise DependencyFailureError(f"Failed to add participant: {e}") from e

    def _get_document(self, collection: str, doc_id: str):
        try:
            return self.document_store.get_document(collection, doc_id)
        except DocumentStoreError as e:
            raise DependencyFailureError(f"Failed to read {collection}/{doc_id}: {e}") from e

    def _query(self, collection: str, filter_dict: dict, limit: int, sort=None):
        try:
            return self.document_store.query_documents(collection, filter_dict, limit=limit, sort=sort)
        except DocumentStoreError as e:
            raise DependencyFailureError(f"Failed to query {collection}: {e}") from e
