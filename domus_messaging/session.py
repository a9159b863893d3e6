# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Domus-Messaging contributors

"""Per-user chat session state for the UI layer.

A session owns what used to be scattered across UI globals: the selected
thread, a draft per thread, the staged attachment and an identity cache.
"""

import bisect
import logging
import threading
from typing import Dict, List, Optional

from .delivery import Subscription
from .directory import Identity, ParticipantDirectory
from .errors import InvalidStateError
from .models import AttachmentUpload, Message
from .service import HistoryEntry, MessagingService, ThreadSummary

logger = logging.getLogger(__name__)


class ThreadView:
    """Live, ordered view of one thread for one session.

    The view subscribes before it backfills, so a message posted in between
    shows up in both and is dropped once by id. Nothing can fall into a gap.
    """

    def __init__(self, session: "ChatSession", thread_id: str):
        self.session = session
        self.thread_id = thread_id
        self._messages: List[Message] = []
        self._seen: set = set()
        self._lock = threading.Lock()
        self._subscription: Optional[Subscription] = None

    def start(self) -> "ThreadView":
        service = self.session.service
        self._subscription = service.subscribe(self.session.user_id, self.thread_id, callback=self._on_message)
        for message in service.messages(self.session.user_id, self.thread_id):
            self._add(message)
        return self

    @property
    def messages(self) -> List[Message]:
        with self._lock:
            return list(self._messages)

    @property
    def active(self) -> bool:
        return self._subscription is not None and self._subscription.active

    def _add(self, message: Message) -> bool:
        with self._lock:
            if message.id in self._seen:
                return False
            self._seen.add(message.id)
            bisect.insort(self._messages, message, key=lambda m: m.sort_key)
            return True

    def _on_message(self, message: Message) -> None:
        if self._add(message) and self.session.selected_thread_id == self.thread_id:
            self.session.service.open_thread(self.session.user_id, self.thread_id)

    def history(self) -> List[HistoryEntry]:
        """Local messages with sender identities and attachment links."""
        messages = self.messages
        senders = self.session.directory.resolve_many(m.sender_id for m in messages)
        links = self.session.service.attachments.resolve_many(m.attachment_ref for m in messages)
        return [
            HistoryEntry(
                message=m,
                sender=senders.get(m.sender_id) or Identity.unknown(m.sender_id),
                attachment=links.get(m.attachment_ref) if m.attachment_ref else None,
            )
            for m in messages
        ]

    def close(self) -> None:
        if self._subscription is not None:
            self._subscription.cancel()


class ChatSession:
    """Explicit state for one signed-in user's chat window."""

    def __init__(self, service: MessagingService, user_id: str):
        self.service = service
        self.user_id = user_id
        self.directory: ParticipantDirectory = service.new_directory()
        self.selected_thread_id: Optional[str] = None
        self.drafts: Dict[str, str] = {}
        self.staged_attachment: Optional[AttachmentUpload] = None
        self._views: Dict[str, ThreadView] = {}

    def open(self, thread_id: str) -> ThreadView:
        """Select a thread: subscribe, backfill and mark it opened."""
        view = self._views.get(thread_id)
        if view is None or not view.active:
            view = ThreadView(self, thread_id).start()
            self._views[thread_id] = view
        self.selected_thread_id = thread_id
        self.service.open_thread(self.user_id, thread_id)
        return view

    def open_direct(self, other_user_id: str) -> ThreadView:
        thread = self.service.start_direct_chat(self.user_id, other_user_id)
        return self.open(thread.id)

    @property
    def draft(self) -> str:
        if self.selected_thread_id is None:
            return ""
        return self.drafts.get(self.selected_thread_id, "")

    def set_draft(self, text: str) -> None:
        if self.selected_thread_id is None:
            raise InvalidStateError("No thread selected")
        self.drafts[self.selected_thread_id] = text

    def stage_attachment(self, file_name: str, content_type: str, data: bytes) -> None:
        self.staged_attachment = AttachmentUpload(file_name=file_name, content_type=content_type, data=data)

    def clear_attachment(self) -> None:
        self.staged_attachment = None

    def send(self) -> Message:
        """Post the draft and staged attachment to the selected thread.

        Both are cleared only after the message is committed, so a failed
        send can simply be retried.
        """
        if self.selected_thread_id is None:
            raise InvalidStateError("No thread selected")
        thread_id = self.selected_thread_id
        message = self.service.send_message(
            self.user_id, thread_id, self.drafts.get(thread_id, ""), attachment=self.staged_attachment
        )
        self.drafts.pop(thread_id, None)
        self.staged_attachment = None
        return message

    def inbox(self) -> List[ThreadSummary]:
        return self.service.inbox(self.user_id, directory=self.directory)

    def close(self) -> None:
        for view in self._views.values():
            view.close()
        self._views.clear()
        self.selected_thread_id = None
        logger.debug("Chat session for %s closed", self.user_id)
