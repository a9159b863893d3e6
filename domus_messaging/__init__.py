# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Domus-Messaging contributors

"""Domus Messaging core.

Threads (direct chats, group chats and complaint cases), ordered message
logs, read markers, realtime delivery, attachments and sender identity
lookup for the lodging app.

Example:
    >>> from domus_messaging import create_messaging_service
    >>> service = create_messaging_service()
    >>> thread = service.start_direct_chat("lodger-1", "landlord-1")
    >>> service.send_message("lodger-1", thread.id, "Hello")
"""

__version__ = "0.1.0"

from .attachments import AttachmentResolver
from .delivery import DeliveryChannel, Subscription
from .directory import (
    DocumentStoreIdentityProvider,
    Identity,
    IdentityProvider,
    ParticipantDirectory,
    StaticIdentityProvider,
)
from .errors import (
    AttachmentNotFoundError,
    AttachmentNotOwnedBySenderError,
    ConflictRetryableError,
    DependencyFailureError,
    EmptyMessageError,
    InvalidStateError,
    InvalidTransitionError,
    MessagingError,
    NotFoundError,
    NotParticipantError,
    PermissionDeniedError,
    ThreadNotFoundError,
    UploadFailedError,
)
from .events import MessagePostedEvent, NewMessageNotificationEvent, decode_message_event
from .factory import create_messaging_service
from .message_log import MessageLog
from .models import (
    Attachment,
    AttachmentUpload,
    CaseStatus,
    Message,
    MessageCursor,
    Participant,
    ParticipantRole,
    ReadMarker,
    ResolvedAttachment,
    Thread,
    ThreadKind,
    Urgency,
)
from .notifications import (
    MessageBusNotifier,
    NewMessageNotification,
    NoopNotifier,
    Notifier,
    WebhookNotifier,
    create_notifier,
)
from .read_tracker import ReadTracker, is_unread
from .retry import RetryConfig, RetryPolicy
from .service import HistoryEntry, MessagingService, ThreadSummary
from .session import ChatSession, ThreadView
from .thread_store import ThreadStore, direct_thread_id

__all__ = [
    # Version
    "__version__",
    # Components
    "AttachmentResolver",
    "DeliveryChannel",
    "MessageLog",
    "ParticipantDirectory",
    "ReadTracker",
    "Subscription",
    "ThreadStore",
    # Service and session
    "ChatSession",
    "HistoryEntry",
    "MessagingService",
    "ThreadSummary",
    "ThreadView",
    "create_messaging_service",
    # Identity
    "DocumentStoreIdentityProvider",
    "Identity",
    "IdentityProvider",
    "StaticIdentityProvider",
    # Notifications
    "MessageBusNotifier",
    "NewMessageNotification",
    "NoopNotifier",
    "Notifier",
    "WebhookNotifier",
    "create_notifier",
    # Models
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
    # Events
    "MessagePostedEvent",
    "NewMessageNotificationEvent",
    "decode_message_event",
    # Helpers
    "RetryConfig",
    "RetryPolicy",
    "direct_thread_id",
    "is_unread",
    # Exceptions
    "AttachmentNotFoundError",
    "AttachmentNotOwnedBySenderError",
    "ConflictRetryableError",
    "DependencyFailureError",
    "EmptyMessageError",
    "InvalidStateError",
    "InvalidTransitionError",
    "MessagingError",
    "NotFoundError",
    "NotParticipantError",
    "PermissionDeniedError",
    "ThreadNotFoundError",
    "UploadFailedError",
]
