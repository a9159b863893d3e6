# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Domus-Messaging contributors

"""Abstract base class for message bus publishers."""

from abc import ABC, abstractmethod
from typing import Any


class EventPublisher(ABC):
    """Abstract base class for event publishers."""

    @abstractmethod
    def publish(self, exchange: str, routing_key: str, event: dict[str, Any]) -> None:
        """Publish an event to the message bus.

        Args:
            exchange: Exchange name (e.g., "domus.events")
            routing_key: Routing key (e.g., "message.posted")
            event: Event data as dictionary

        Raises:
            Exception: If publishing fails for any reason
        """
        pass

    @abstractmethod
    def connect(self) -> None:
        """Connect to the message bus.

        Raises:
            Exception: If connection fails for any reason
        """
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Disconnect from the message bus."""
        pass
