# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Domus-Messaging contributors

"""Event envelopes published on the message bus.

All events share the envelope ``{event_type, event_id, timestamp, version,
data}``. Consumers must ignore envelope and data fields they do not know.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from uuid import uuid4

from .models import Message

MESSAGE_POSTED_ROUTING_KEY = "message.posted"
NEW_MESSAGE_NOTIFICATION_ROUTING_KEY = "message.notification"


@dataclass
class BaseEvent:
    """Base class for all event types.

    Attributes:
        event_type: Type of event (set by subclass)
        event_id: Unique event identifier (UUID)
        timestamp: ISO 8601 timestamp of event creation
        version: Event schema version
        data: Event-specific payload
    """
    event_type: str
    event_id: Optional[str] = None
    timestamp: Optional[str] = None
    version: str = "1.0"
    data: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.event_id is None:
            self.event_id = str(uuid4())
        if self.timestamp is None:
            self.timestamp = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary for serialization."""
        return {
            "event_type": self.event_type,
            "event_id": self.event_id,
            "timestamp": self.timestamp,
            "version": self.version,
            "data": self.data,
        }


@dataclass
class MessagePostedEvent(BaseEvent):
    """Insert-event carrying the full record of a newly appended message.

    Routing Key: message.posted

    Data fields:
        id, thread_id, sender_id, body, attachment_ref, created_at, seq
    """
    event_type: str = field(default="MessagePosted", init=False)

    @classmethod
    def from_message(cls, message: Message) -> "MessagePostedEvent":
        return cls(data=message.to_payload())

    def to_message(self) -> Message:
        return Message.from_payload(self.data)


@dataclass
class NewMessageNotificationEvent(BaseEvent):
    """Published for each recipient when a message lands in one of their threads.

    Routing Key: message.notification
    """
    event_type: str = field(default="NewMessageNotification", init=False)


def decode_message_event(event: Dict[str, Any]) -> Message:
    """Decode a MessagePosted envelope received from the bus.

    Raises:
        ValueError: If the envelope is not a MessagePosted event
    """
    if event.get("event_type") != "MessagePosted":
        raise ValueError(f"Not a MessagePosted event: {event.get('event_type')}")
    return Message.from_payload(event.get("data") or {})
