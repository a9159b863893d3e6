# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Domus-Messaging contributors

"""No-op event publisher for testing."""

import logging
import threading
from typing import Any

from domus_config import DriverConfig_MessageBus_Noop

from .base import EventPublisher

logger = logging.getLogger(__name__)


class NoopPublisher(EventPublisher):
    """No-op publisher for testing that stores events in memory."""

    def __init__(self) -> None:
        self.published_events: list[dict[str, Any]] = []
        self.connected = False
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, driver_config: DriverConfig_MessageBus_Noop) -> "NoopPublisher":
        del driver_config
        return cls()

    def connect(self) -> None:
        """Pretend to connect (always succeeds)."""
        self.connected = True
        logger.debug("NoopPublisher: connected")

    def disconnect(self) -> None:
        """Pretend to disconnect."""
        self.connected = False
        logger.debug("NoopPublisher: disconnected")

    def publish(self, exchange: str, routing_key: str, event: dict[str, Any]) -> None:
        """Store event without publishing to a real message bus."""
        with self._lock:
            self.published_events.append(
                {
                    "exchange": exchange,
                    "routing_key": routing_key,
                    "event": event,
                }
            )
        logger.debug("NoopPublisher: published %s to %s/%s", event.get("event_type"), exchange, routing_key)

    def clear_events(self) -> None:
        """Clear all stored events (useful for testing)."""
        with self._lock:
            self.published_events.clear()

    def get_events(self, event_type: str | None = None) -> list[dict[str, Any]]:
        """Get stored events, optionally filtered by event type.

        Args:
            event_type: Optional event type to filter by

        Returns:
            List of published events
        """
        with self._lock:
            if event_type is None:
                return list(self.published_events)
            return [e for e in self.published_events if e["event"].get("event_type") == event_type]
