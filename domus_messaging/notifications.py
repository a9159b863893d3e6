# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Domus-Messaging contributors

"""New-message notifications for participants who are not the sender.

Notification delivery is best-effort. The service logs and counts a
failing notifier and carries on.
"""

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import requests

from domus_config import (
    AdapterConfig_Notifier,
    DriverConfig_Notifier_MessageBus,
    DriverConfig_Notifier_Noop,
    DriverConfig_Notifier_Webhook,
    create_adapter,
)
from domus_message_bus import EventPublisher

from .events import NEW_MESSAGE_NOTIFICATION_ROUTING_KEY, NewMessageNotificationEvent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NewMessageNotification:
    """Tells a recipient that a new message landed in one of their threads."""
    recipient_id: str
    thread_id: str
    message_id: str
    sender_id: str
    sender_name: str
    preview: str
    thread_subject: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "recipient_id": self.recipient_id,
            "thread_id": self.thread_id,
            "message_id": self.message_id,
            "sender_id": self.sender_id,
            "sender_name": self.sender_name,
            "preview": self.preview,
            "thread_subject": self.thread_subject,
        }


class Notifier(ABC):
    """Abstract sink for new-message notifications."""

    @abstractmethod
    def notify(self, notification: NewMessageNotification) -> None:
        """Deliver one notification.

        Raises:
            Exception: Any delivery failure; callers treat it as non-fatal
        """
        pass


class NoopNotifier(Notifier):
    """Keeps notifications in memory for inspection."""

    def __init__(self) -> None:
        self.notifications: List[NewMessageNotification] = []
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, driver_config: DriverConfig_Notifier_Noop) -> "NoopNotifier":
        del driver_config
        return cls()

    def notify(self, notification: NewMessageNotification) -> None:
        with self._lock:
            self.notifications.append(notification)
        logger.debug("NoopNotifier: %s -> %s", notification.thread_id, notification.recipient_id)

    def for_recipient(self, recipient_id: str) -> List[NewMessageNotification]:
        with self._lock:
            return [n for n in self.notifications if n.recipient_id == recipient_id]

    def clear(self) -> None:
        with self._lock:
            self.notifications.clear()


class WebhookNotifier(Notifier):
    """POSTs each notification as JSON to a webhook endpoint."""

    def __init__(self, url: str, timeout_seconds: float = 5.0, preview_max_length: int = 120):
        if not url:
            raise ValueError("Webhook notifier requires a url")
        self.url = url
        self.timeout_seconds = timeout_seconds
        self.preview_max_length = preview_max_length

    @classmethod
    def from_config(cls, driver_config: DriverConfig_Notifier_Webhook) -> "WebhookNotifier":
        return cls(
            url=driver_config.url,
            timeout_seconds=driver_config.timeout_seconds,
            preview_max_length=driver_config.preview_max_length,
        )

    def notify(self, notification: NewMessageNotification) -> None:
        payload = notification.to_dict()
        payload["preview"] = notification.preview[: self.preview_max_length]
        payload["url"] = f"/threads/{notification.thread_id}"

        response = requests.post(self.url, json=payload, timeout=self.timeout_seconds)
        response.raise_for_status()

        logger.info(
            "Webhook notification sent for message %s to %s",
            notification.message_id, notification.recipient_id,
        )


class MessageBusNotifier(Notifier):
    """Publishes NewMessageNotification events for a downstream mailer."""

    def __init__(
        self,
        publisher: EventPublisher,
        exchange: str = "domus.events",
        routing_key: str = NEW_MESSAGE_NOTIFICATION_ROUTING_KEY,
    ):
        self.publisher = publisher
        self.exchange = exchange
        self.routing_key = routing_key

    def notify(self, notification: NewMessageNotification) -> None:
        event = NewMessageNotificationEvent(data=notification.to_dict())
        self.publisher.publish(self.exchange, self.routing_key, event.to_dict())


def create_notifier(config: AdapterConfig_Notifier, publisher: Optional[EventPublisher] = None) -> Notifier:
    """Create a notifier from a typed adapter config.

    Args:
        config: Notifier adapter config
        publisher: Required by the ``message_bus`` driver

    Raises:
        ValueError: If config is missing, the type is unknown, or the
            message_bus driver has no publisher
    """

    def _build_noop(driver_config):
        if not isinstance(driver_config, DriverConfig_Notifier_Noop):
            raise TypeError("driver config must be DriverConfig_Notifier_Noop")
        return NoopNotifier.from_config(driver_config)

    def _build_webhook(driver_config):
        if not isinstance(driver_config, DriverConfig_Notifier_Webhook):
            raise TypeError("driver config must be DriverConfig_Notifier_Webhook")
        return WebhookNotifier.from_config(driver_config)

    def _build_message_bus(driver_config):
        if not isinstance(driver_config, DriverConfig_Notifier_MessageBus):
            raise TypeError("driver config must be DriverConfig_Notifier_MessageBus")
        if publisher is None:
            raise ValueError("message_bus notifier requires a publisher")
        return MessageBusNotifier(publisher, driver_config.exchange, driver_config.routing_key)

    return create_adapter(
        config,
        adapter_name="notifier",
        get_driver_type=lambda c: c.notifier_type,
        get_driver_config=lambda c: c.driver,
        drivers={
            "noop": _build_noop,
            "webhook": _build_webhook,
            "message_bus": _build_message_bus,
        },
    )
