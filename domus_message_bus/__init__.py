# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Domus-Messaging contributors

"""Domus Messaging Message Bus Adapter.

Publishes message insert-events and notifications so that other
processes can mirror realtime delivery.
"""

__version__ = "0.1.0"

from .base import EventPublisher
from .factory import create_publisher
from .noop_publisher import NoopPublisher

__all__ = [
    "__version__",
    "EventPublisher",
    "NoopPublisher",
    "create_publisher",
]
