# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Domus-Messaging contributors

"""Data models for threads, participants, messages, read markers and attachments.

Records are immutable dataclasses. Each converts to and from the document
shape persisted through :class:`domus_storage.DocumentStore`. Timestamps are
stored as fixed-width ISO 8601 strings so that string order is time order.
"""

from dataclasses import asdict, dataclass, fields
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Optional

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"
TIMESTAMP_RESOLUTION = timedelta(microseconds=1)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Format an aware datetime as ``YYYY-MM-DDTHH:MM:SS.ffffffZ``."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse a stored timestamp; accepts the fixed-width form and plain ISO 8601."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    try:
        return datetime.strptime(value, TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)
    except ValueError:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


class ThreadKind(Enum):
    """Kinds of conversation thread."""
    DIRECT = "direct"
    GROUP = "group"
    COMPLAINT_CASE = "complaint_case"


class CaseStatus(Enum):
    """Complaint case lifecycle, in forward order."""
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    AWAITING_EXTERNAL = "awaiting_external"
    RESOLVED = "resolved"
    CLOSED = "closed"


class Urgency(Enum):
    """Complaint urgency levels."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ParticipantRole(Enum):
    """A participant's position within a thread."""
    MEMBER = "member"
    RAISER = "raiser"
    ASSIGNEE = "assignee"


_CASE_ORDER = list(CaseStatus)
_REOPENABLE = (CaseStatus.RESOLVED, CaseStatus.CLOSED)


def can_transition(current: CaseStatus, requested: CaseStatus) -> bool:
    """Return True if a complaint case may move from ``current`` to ``requested``.

    Allowed edges are any strictly forward move (skipping is fine) plus
    reopening a resolved or closed case to in_progress. Staying put is
    handled by callers as a no-op and is not an edge.
    """
    if _CASE_ORDER.index(requested) > _CASE_ORDER.index(current):
        return True
    return current in _REOPENABLE and requested is CaseStatus.IN_PROGRESS


def direct_pair_key(user_a: str, user_b: str) -> str:
    """Canonical key for the unordered pair {user_a, user_b}."""
    low, high = sorted((user_a, user_b))
    return f"direct:{low}:{high}"


@dataclass(frozen=True)
class Thread:
    """A conversation container.

    Direct threads carry ``pair_key``; complaint cases carry the case fields
    (raiser, assignee, description, status, urgency).
    """
    id: str
    kind: ThreadKind
    created_by: str
    created_at: datetime
    subject: Optional[str] = None
    last_activity_at: Optional[datetime] = None
    last_message_at: Optional[datetime] = None
    pair_key: Optional[str] = None
    raiser_id: Optional[str] = None
    assignee_id: Optional[str] = None
    description: Optional[str] = None
    status: Optional[CaseStatus] = None
    urgency: Optional[Urgency] = None

    @property
    def is_case(self) -> bool:
        return self.kind is ThreadKind.COMPLAINT_CASE

    def to_document(self) -> Dict[str, Any]:
        doc: Dict[str, Any] = {
            "_id": self.id,
            "kind": self.kind.value,
            "created_by": self.created_by,
            "created_at": format_timestamp(self.created_at),
            "subject": self.subject,
            "last_activity_at": format_timestamp(self.last_activity_at or self.created_at),
            "last_message_at": format_timestamp(self.last_message_at) if self.last_message_at else None,
        }
        if self.pair_key is not None:
            doc["pair_key"] = self.pair_key
        if self.is_case:
            doc.update(
                {
                    "raiser_id": self.raiser_id,
                    "assignee_id": self.assignee_id,
                    "description": self.description,
                    "status": self.status.value if self.status else CaseStatus.OPEN.value,
                    "urgency": self.urgency.value if self.urgency else Urgency.MEDIUM.value,
                }
            )
        return doc

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "Thread":
        status = doc.get("status")
        urgency = doc.get("urgency")
        return cls(
            id=str(doc["_id"]),
            kind=ThreadKind(doc["kind"]),
            created_by=doc["created_by"],
            created_at=parse_timestamp(doc["created_at"]),
            subject=doc.get("subject"),
            last_activity_at=parse_timestamp(doc.get("last_activity_at")),
            last_message_at=parse_timestamp(doc.get("last_message_at")),
            pair_key=doc.get("pair_key"),
            raiser_id=doc.get("raiser_id"),
            assignee_id=doc.get("assignee_id"),
            description=doc.get("description"),
            status=CaseStatus(status) if status else None,
            urgency=Urgency(urgency) if urgency else None,
        )


@dataclass(frozen=True)
class Participant:
    """Membership of one user in one thread."""
    thread_id: str
    user_id: str
    role: ParticipantRole = ParticipantRole.MEMBER
    joined_at: Optional[datetime] = None

    @staticmethod
    def document_id(thread_id: str, user_id: str) -> str:
        return f"{thread_id}:{user_id}"

    def to_document(self) -> Dict[str, Any]:
        return {
            "_id": self.document_id(self.thread_id, self.user_id),
            "thread_id": self.thread_id,
            "user_id": self.user_id,
            "role": self.role.value,
            "joined_at": format_timestamp(self.joined_at) if self.joined_at else None,
        }

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "Participant":
        return cls(
            thread_id=doc["thread_id"],
            user_id=doc["user_id"],
            role=ParticipantRole(doc.get("role", ParticipantRole.MEMBER.value)),
            joined_at=parse_timestamp(doc.get("joined_at")),
        )


@dataclass(frozen=True)
class MessageCursor:
    """Position in a thread's message sequence: after message number ``seq``."""
    seq: int


@dataclass(frozen=True)
class Message:
    """An immutable message within a thread.

    ``seq`` is the message's position in its thread, starting at 1 with no
    gaps, and is the order key. ``created_at`` is assigned by the message
    log and strictly increases along ``seq``.
    """
    id: str
    thread_id: str
    sender_id: str
    body: str
    created_at: datetime
    attachment_ref: Optional[str] = None
    seq: Optional[int] = None

    @property
    def sort_key(self):
        return (self.seq or 0, self.created_at, self.id)

    @property
    def cursor(self) -> MessageCursor:
        return MessageCursor(seq=self.seq or 0)

    def to_document(self) -> Dict[str, Any]:
        return {
            "_id": self.id,
            "thread_id": self.thread_id,
            "sender_id": self.sender_id,
            "body": self.body,
            "attachment_ref": self.attachment_ref,
            "created_at": format_timestamp(self.created_at),
            "seq": self.seq,
        }

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "Message":
        return cls(
            id=str(doc["_id"]),
            thread_id=doc["thread_id"],
            sender_id=doc["sender_id"],
            body=doc.get("body") or "",
            attachment_ref=doc.get("attachment_ref"),
            created_at=parse_timestamp(doc["created_at"]),
            seq=doc.get("seq"),
        )

    def to_payload(self) -> Dict[str, Any]:
        """Wire form of the full message record used in insert-events."""
        payload = self.to_document()
        payload["id"] = payload.pop("_id")
        return payload

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "Message":
        """Decode an insert-event payload, ignoring fields this version does not know."""
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in payload.items() if k in known}
        values["created_at"] = parse_timestamp(values["created_at"])
        values.setdefault("body", "")
        return cls(**values)


@dataclass(frozen=True)
class ReadMarker:
    """When a user last opened a thread."""
    thread_id: str
    user_id: str
    last_opened_at: datetime

    @staticmethod
    def document_id(thread_id: str, user_id: str) -> str:
        return f"{thread_id}:{user_id}"

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "ReadMarker":
        return cls(
            thread_id=doc["thread_id"],
            user_id=doc["user_id"],
            last_opened_at=parse_timestamp(doc["last_opened_at"]),
        )


@dataclass(frozen=True)
class Attachment:
    """Metadata for an uploaded file; the bytes live in the blob store."""
    id: str
    owner_user_id: str
    storage_key: str
    display_name: str
    content_type: str
    byte_size: int
    public_ref: str
    url: str
    created_at: datetime
    storage_provider: str = "blob"

    def to_document(self) -> Dict[str, Any]:
        doc = asdict(self)
        doc["_id"] = doc.pop("id")
        doc["created_at"] = format_timestamp(self.created_at)
        return doc

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "Attachment":
        values = {k: v for k, v in doc.items() if k in {f.name for f in fields(cls)}}
        values["id"] = str(doc["_id"])
        values["created_at"] = parse_timestamp(doc["created_at"])
        return cls(**values)


@dataclass(frozen=True)
class ResolvedAttachment:
    """What a client needs to render an attachment link."""
    url: str
    display_name: str
    content_type: Optional[str] = None


@dataclass(frozen=True)
class AttachmentUpload:
    """File staged for sending along with a message."""
    file_name: str
    content_type: str
    data: bytes


__all__ = [
    "Attachment",
    "AttachmentUpload",
    "CaseStatus",
    "Message",
    "MessageCursor",
    "Participant",
    "ParticipantRole",
    "ReadMarker",
    "ResolvedAttachment",
    "Thread",
    "ThreadKind",
    "Urgency",
    "can_transition",
    "direct_pair_key",
    "format_timestamp",
    "parse_timestamp",
    "utcnow",
]
