# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Domus-Messaging contributors

"""Messaging service facade used by the UI layer."""

import logging
import time
from concurrent.futures import Executor
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional, Union

from domus_logging import Logger
from domus_message_bus import EventPublisher
from domus_metrics import MetricsCollector

from .attachments import AttachmentResolver
from .delivery import DeliveryCallback, DeliveryChannel, Subscription
from .directory import ROLE_ADMIN, Identity, IdentityProvider, ParticipantDirectory
from .errors import (
    ConflictRetryableError,
    EmptyMessageError,
    InvalidStateError,
    PermissionDeniedError,
    UploadFailedError,
)
from .message_log import MessageLog
from .models import (
    Attachment,
    AttachmentUpload,
    CaseStatus,
    Message,
    MessageCursor,
    ResolvedAttachment,
    Thread,
    ThreadKind,
    Urgency,
)
from .notifications import NewMessageNotification, Notifier
from .read_tracker import ReadTracker
from .retry import RetryConfig, RetryPolicy
from .thread_store import ThreadStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ThreadSummary:
    """One inbox row."""
    thread_id: str
    kind: ThreadKind
    title: str
    unread: bool
    last_activity_at: Optional[datetime]
    participants: List[Identity] = field(default_factory=list)
    preview: str = ""
    status: Optional[CaseStatus] = None
    urgency: Optional[Urgency] = None


@dataclass(frozen=True)
class HistoryEntry:
    """A message with its sender identity and attachment link resolved."""
    message: Message
    sender: Identity
    attachment: Optional[ResolvedAttachment] = None


class MessagingService:
    """Coordinates threads, messages, read state, delivery and attachments.

    Every operation takes the acting user's id and enforces membership
    before touching thread content.
    """

    def __init__(
        self,
        thread_store: ThreadStore,
        message_log: MessageLog,
        read_tracker: ReadTracker,
        delivery: DeliveryChannel,
        attachments: AttachmentResolver,
        identity_provider: IdentityProvider,
        notifier: Optional[Notifier] = None,
        metrics_collector: Optional[MetricsCollector] = None,
        audit_logger: Optional[Logger] = None,
        retry_policy: Optional[RetryPolicy] = None,
        notification_executor: Optional[Executor] = None,
        preview_max_length: int = 120,
        publisher: Optional[EventPublisher] = None,
    ):
        """Initialize the messaging service.

        Args:
            thread_store: Thread and participant storage
            message_log: Ordered message storage
            read_tracker: Read markers
            delivery: Realtime fan-out to subscribers
            attachments: Attachment upload and resolution
            identity_provider: Identity collaborator
            notifier: New-message notification sink (optional)
            metrics_collector: Metrics collector (optional)
            audit_logger: Structured logger for the audit trail (optional)
            retry_policy: Policy for conflicting direct-thread creation
            notification_executor: Runs notifications off the caller's
                thread when given; otherwise they run inline after the post
            preview_max_length: Max characters of message text in inbox rows
            publisher: Message bus connection released by close() (optional)
        """
        self.thread_store = thread_store
        self.message_log = message_log
        self.read_tracker = read_tracker
        self.delivery = delivery
        self.attachments = attachments
        self.identity_provider = identity_provider
        self.notifier = notifier
        self.metrics_collector = metrics_collector
        self.audit_logger = audit_logger
        self.retry_policy = retry_policy or RetryPolicy(RetryConfig(max_attempts=2))
        self.notification_executor = notification_executor
        self.preview_max_length = preview_max_length
        self.publisher = publisher

        # Stats
        self.messages_sent = 0
        self.notifications_sent = 0
        self.notifications_failed = 0

    # ------------------------------------------------------------------
    # Thread creation
    # ------------------------------------------------------------------

    def start_direct_chat(self, user_id: str, other_user_id: str) -> Thread:
        """Open (or create) the direct thread between two users.

        A conflicting concurrent creation is retried once before the
        ``ConflictRetryableError`` reaches the caller.
        """

        def on_conflict(attempt: int, error: BaseException) -> None:
            self._increment("messaging_direct_conflicts_total")
            logger.info("Direct thread conflict for %s/%s, retrying: %s", user_id, other_user_id, error)

        thread = self.retry_policy.call(
            lambda: self.thread_store.find_or_create_direct(user_id, other_user_id),
            retry_on=(ConflictRetryableError,),
            on_retry=on_conflict,
        )
        self._audit("Direct chat opened", user_id=user_id, other_user_id=other_user_id, thread_id=thread.id)
        return thread

    def start_group_chat(self, user_id: str, subject: Optional[str], member_ids: List[str]) -> Thread:
        thread = self.thread_store.create_group(user_id, subject, member_ids)
        self._increment("messaging_threads_created_total", tags={"kind": ThreadKind.GROUP.value})
        self._audit("Group chat created", user_id=user_id, thread_id=thread.id, members=len(member_ids) + 1)
        return thread

    def add_group_member(self, user_id: str, thread_id: str, new_member_id: str) -> None:
        self.thread_store.require_participant(thread_id, user_id)
        self.thread_store.add_participant(thread_id, new_member_id)
        self._audit("Group member added", user_id=user_id, thread_id=thread_id, member_id=new_member_id)

    def raise_complaint(
        self,
        user_id: str,
        subject: str,
        description: str,
        urgency: Union[Urgency, str] = Urgency.MEDIUM,
        assignee_id: Optional[str] = None,
    ) -> Thread:
        """Open a new complaint case.

        Without an explicit assignee the case goes to the first admin, or
        stays unassigned if there is none.
        """
        if not (subject or "").strip():
            raise InvalidStateError("A complaint needs a subject")
        if assignee_id is None:
            assignee_id = self.new_directory().default_assignee()

        thread = self.thread_store.create_complaint_case(
            user_id, assignee_id, subject, description, urgency=Urgency(urgency)
        )
        self._increment("messaging_threads_created_total", tags={"kind": ThreadKind.COMPLAINT_CASE.value})
        self._audit(
            "Complaint raised",
            user_id=user_id,
            thread_id=thread.id,
            assignee_id=assignee_id,
            urgency=thread.urgency.value,
        )
        return thread

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    def upload_attachment(
        self, user_id: str, file_name: str, content_type: Optional[str], data: bytes
    ) -> Attachment:
        try:
            attachment = self.attachments.upload(user_id, file_name, content_type, data)
        except UploadFailedError as e:
            self._increment("messaging_upload_failures_total")
            self._audit_error("Attachment upload failed", user_id=user_id, file_name=file_name, error=str(e))
            raise
        self._increment("messaging_attachments_uploaded_total")
        return attachment

    def send_message(
        self,
        user_id: str,
        thread_id: str,
        body: Optional[str],
        attachment: Optional[AttachmentUpload] = None,
        attachment_ref: Optional[str] = None,
    ) -> Message:
        """Upload the optional attachment, then post the message.

        Validation and membership are checked before any bytes are stored.
        If the upload fails nothing is posted.

        Raises:
            EmptyMessageError: No text and no attachment
            NotParticipantError: The sender is not in the thread
            UploadFailedError: The attachment could not be stored
        """
        if not (body or "").strip() and attachment is None and not attachment_ref:
            raise EmptyMessageError("A message needs text or an attachment")

        thread = self.thread_store.get(thread_id)
        self.thread_store.require_participant(thread_id, user_id)

        if attachment is not None:
            uploaded = self.upload_attachment(
                user_id, attachment.file_name, attachment.content_type, attachment.data
            )
            attachment_ref = uploaded.id

        start_time = time.time()
        message = self.message_log.post(thread_id, user_id, body, attachment_ref=attachment_ref)
        self.messages_sent += 1
        self._increment("messaging_messages_posted_total", tags={"kind": thread.kind.value})
        self._observe("messaging_post_latency_seconds", time.time() - start_time)
        self._audit(
            "Message posted",
            user_id=user_id,
            thread_id=thread_id,
            message_id=message.id,
            has_attachment=bool(attachment_ref),
        )

        if self.notifier is not None:
            if self.notification_executor is not None:
                self.notification_executor.submit(self._notify_recipients, thread, message)
            else:
                self._notify_recipients(thread, message)
        return message

    def messages(
        self,
        user_id: str,
        thread_id: str,
        since: Optional[Union[MessageCursor, Message]] = None,
    ) -> Iterator[Message]:
        """Ordered messages of a thread the user belongs to."""
        return self.message_log.list(thread_id, since=since, viewer_id=user_id)

    def thread_history(
        self,
        user_id: str,
        thread_id: str,
        since: Optional[Union[MessageCursor, Message]] = None,
        directory: Optional[ParticipantDirectory] = None,
    ) -> List[HistoryEntry]:
        """Messages with senders and attachments resolved in batches."""
        messages = list(self.messages(user_id, thread_id, since=since))
        directory = directory or self.new_directory()
        senders = directory.resolve_many(m.sender_id for m in messages)
        links = self.attachments.resolve_many(m.attachment_ref for m in messages)
        return [
            HistoryEntry(
                message=m,
                sender=senders.get(m.sender_id) or Identity.unknown(m.sender_id),
                attachment=links.get(m.attachment_ref) if m.attachment_ref else None,
            )
            for m in messages
        ]

    def subscribe(
        self, user_id: str, thread_id: str, callback: Optional[DeliveryCallback] = None
    ) -> Subscription:
        self.thread_store.get(thread_id)
        self.thread_store.require_participant(thread_id, user_id)
        return self.delivery.subscribe(thread_id, callback)

    # ------------------------------------------------------------------
    # Read state and inbox
    # ------------------------------------------------------------------

    def open_thread(self, user_id: str, thread_id: str) -> datetime:
        """Mark the thread as opened by the user now."""
        self.thread_store.get(thread_id)
        self.thread_store.require_participant(thread_id, user_id)
        return self.read_tracker.mark_opened(thread_id, user_id)

    def inbox(
        self,
        user_id: str,
        kind: Optional[ThreadKind] = None,
        directory: Optional[ParticipantDirectory] = None,
    ) -> List[ThreadSummary]:
        """The user's threads, most recent activity first, with unread flags."""
        threads = self.thread_store.list_for_user(user_id, kind=kind)
        if not threads:
            return []

        unread = self.read_tracker.unread_threads(user_id, threads)
        members = self.thread_store.participant_ids_many(t.id for t in threads)
        latest = self.message_log.latest_many(threads)
        directory = directory or self.new_directory()
        identities = directory.resolve_many(uid for ids in members.values() for uid in ids)

        summaries = []
        for thread in threads:
            others = [identities[uid] for uid in members[thread.id] if uid != user_id and uid in identities]
            summaries.append(
                ThreadSummary(
                    thread_id=thread.id,
                    kind=thread.kind,
                    title=self._title(thread, others),
                    unread=thread.id in unread,
                    last_activity_at=thread.last_activity_at,
                    participants=others,
                    preview=self._preview(latest.get(thread.id)),
                    status=thread.status,
                    urgency=thread.urgency,
                )
            )
        return summaries

    def unread_count(self, user_id: str) -> int:
        threads = self.thread_store.list_for_user(user_id)
        return len(self.read_tracker.unread_threads(user_id, threads))

    def _title(self, thread: Thread, others: List[Identity]) -> str:
        if thread.subject:
            return thread.subject
        if others:
            return ", ".join(identity.display_name for identity in others)
        return "Conversation"

    def _preview(self, message: Optional[Message]) -> str:
        if message is None:
            return ""
        text = message.body.strip() or ("Attachment" if message.attachment_ref else "")
        return text[: self.preview_max_length]

    # ------------------------------------------------------------------
    # Complaint cases
    # ------------------------------------------------------------------

    def update_case(
        self,
        user_id: str,
        thread_id: str,
        status: Optional[Union[CaseStatus, str]] = None,
        urgency: Optional[Union[Urgency, str]] = None,
    ) -> Thread:
        """Change a case's status and/or urgency.

        Only the raiser, the assignee or an admin may update a case.

        Raises:
            InvalidTransitionError: If the status change is not allowed
            PermissionDeniedError: If the user may not update the case
        """
        thread = self.thread_store.get(thread_id)
        if not thread.is_case:
            raise InvalidStateError(f"Thread {thread_id} is not a complaint case")
        if user_id not in (thread.raiser_id, thread.assignee_id) and not self._is_admin(user_id):
            raise PermissionDeniedError(f"User {user_id} may not update case {thread_id}")

        if status is not None:
            thread = self.thread_store.update_case_status(thread_id, CaseStatus(status))
        if urgency is not None:
            thread = self.thread_store.update_case_urgency(thread_id, Urgency(urgency))

        self._audit(
            "Case updated",
            user_id=user_id,
            thread_id=thread_id,
            status=thread.status.value if thread.status else None,
            urgency=thread.urgency.value if thread.urgency else None,
        )
        return thread

    def reassign_case(self, user_id: str, thread_id: str, new_assignee_id: str) -> Thread:
        """Hand a case to another responder. Admins or the current assignee only."""
        thread = self.thread_store.get(thread_id)
        if user_id != thread.assignee_id and not self._is_admin(user_id):
            raise PermissionDeniedError(f"User {user_id} may not reassign case {thread_id}")
        thread = self.thread_store.reassign_case(thread_id, new_assignee_id)
        self._audit("Case reassigned", user_id=user_id, thread_id=thread_id, assignee_id=new_assignee_id)
        return thread

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def _notify_recipients(self, thread: Thread, message: Message) -> None:
        try:
            recipients = [uid for uid in self.thread_store.participant_ids(thread.id) if uid != message.sender_id]
            sender = self.new_directory().resolve(message.sender_id)
        except Exception as e:
            logger.warning("Could not prepare notifications for message %s: %s", message.id, e)
            self._increment("messaging_notifications_total", tags={"status": "failed"})
            return

        preview = message.body.strip() or "Sent an attachment"
        for recipient_id in recipients:
            notification = NewMessageNotification(
                recipient_id=recipient_id,
                thread_id=thread.id,
                message_id=message.id,
                sender_id=message.sender_id,
                sender_name=sender.display_name,
                preview=preview[: self.preview_max_length],
                thread_subject=thread.subject,
            )
            try:
                self.notifier.notify(notification)
                self.notifications_sent += 1
                self._increment("messaging_notifications_total", tags={"status": "success"})
            except Exception as e:
                # Notifications are best-effort; the message is already committed
                self.notifications_failed += 1
                logger.warning(
                    "Failed to notify %s about message %s: %s", recipient_id, message.id, e, exc_info=True
                )
                self._increment("messaging_notifications_total", tags={"status": "failed"})

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def new_directory(self) -> ParticipantDirectory:
        """A fresh identity cache, typically one per UI session."""
        return ParticipantDirectory(self.identity_provider)

    def _is_admin(self, user_id: str) -> bool:
        return self.new_directory().resolve(user_id).role == ROLE_ADMIN

    def _increment(self, name: str, tags: Optional[Dict[str, str]] = None) -> None:
        if self.metrics_collector:
            self.metrics_collector.increment(name, tags=tags)

    def _observe(self, name: str, value: float) -> None:
        if self.metrics_collector:
            self.metrics_collector.observe(name, value)

    def _audit(self, message: str, **fields: Any) -> None:
        if self.audit_logger:
            self.audit_logger.info(message, **fields)

    def _audit_error(self, message: str, **fields: Any) -> None:
        if self.audit_logger:
            self.audit_logger.error(message, **fields)

    def close(self) -> None:
        """Stop the notification executor and release adapter connections."""
        if self.notification_executor is not None:
            self.notification_executor.shutdown(wait=True)
        if self.publisher is not None:
            self.publisher.disconnect()
        self.thread_store.document_store.disconnect()
        logger.info("Messaging service closed")
