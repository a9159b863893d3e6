# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Domus-Messaging contributors

"""Exception hierarchy for the messaging core.

Callers usually handle the five category classes (``NotFoundError``,
``InvalidStateError``, ``PermissionDeniedError``, ``DependencyFailureError``,
``ConflictRetryableError``); the leaf classes say exactly what went wrong.
"""


class MessagingError(Exception):
    """Base exception for messaging errors."""
    pass


class NotFoundError(MessagingError):
    """A thread, message or attachment does not exist."""
    pass


class ThreadNotFoundError(NotFoundError):
    """Exception raised when a thread id is unknown."""

    def __init__(self, thread_id: str):
        super().__init__(f"Thread {thread_id} not found")
        self.thread_id = thread_id


class AttachmentNotFoundError(NotFoundError):
    """Exception raised when an attachment reference is unknown."""

    def __init__(self, attachment_ref: str):
        super().__init__(f"Attachment {attachment_ref} not found")
        self.attachment_ref = attachment_ref


class InvalidStateError(MessagingError):
    """The requested change is not valid for the current state."""
    pass


class InvalidTransitionError(InvalidStateError):
    """Exception raised when a case status change is not an allowed edge."""

    def __init__(self, thread_id: str, current: str, requested: str):
        super().__init__(
            f"Cannot move case {thread_id} from {current} to {requested}"
        )
        self.thread_id = thread_id
        self.current = current
        self.requested = requested


class EmptyMessageError(InvalidStateError):
    """Exception raised when a message has neither body text nor attachment."""
    pass


class PermissionDeniedError(MessagingError):
    """The acting user may not perform the operation."""
    pass


class NotParticipantError(PermissionDeniedError):
    """Exception raised when a user is not a member of the thread."""

    def __init__(self, thread_id: str, user_id: str):
        super().__init__(f"User {user_id} is not a participant of thread {thread_id}")
        self.thread_id = thread_id
        self.user_id = user_id


class AttachmentNotOwnedBySenderError(PermissionDeniedError):
    """Exception raised when posting an attachment uploaded by someone else."""

    def __init__(self, attachment_ref: str, sender_id: str):
        super().__init__(f"Attachment {attachment_ref} is not owned by {sender_id}")
        self.attachment_ref = attachment_ref
        self.sender_id = sender_id


class DependencyFailureError(MessagingError):
    """A storage, identity or database collaborator is unavailable."""
    pass


class UploadFailedError(DependencyFailureError):
    """Exception raised when attachment bytes could not be stored."""
    pass


class ConflictRetryableError(MessagingError):
    """Concurrent direct-thread creation lost a race; retry the lookup."""
    pass
