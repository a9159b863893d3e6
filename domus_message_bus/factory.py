# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Domus-Messaging contributors

"""Factory functions for creating message bus publishers."""

from typing import TypeAlias

from domus_config import (
    AdapterConfig_MessageBus,
    DriverConfig_MessageBus_Noop,
    DriverConfig_MessageBus_Rabbitmq,
    create_adapter,
)

from .base import EventPublisher

_DriverConfig: TypeAlias = DriverConfig_MessageBus_Rabbitmq | DriverConfig_MessageBus_Noop


def _build_publisher_rabbitmq(config: _DriverConfig) -> EventPublisher:
    from .rabbitmq_publisher import RabbitMQPublisher

    if not isinstance(config, DriverConfig_MessageBus_Rabbitmq):
        raise TypeError("driver config must be DriverConfig_MessageBus_Rabbitmq")
    return RabbitMQPublisher.from_config(config)


def _build_publisher_noop(config: _DriverConfig) -> EventPublisher:
    from .noop_publisher import NoopPublisher

    if not isinstance(config, DriverConfig_MessageBus_Noop):
        raise TypeError("driver config must be DriverConfig_MessageBus_Noop")
    return NoopPublisher.from_config(config)


def create_publisher(config: AdapterConfig_MessageBus) -> EventPublisher:
    """Create an event publisher from a typed adapter config.

    Raises:
        ValueError: If config is missing or message_bus_type is unknown
    """
    return create_adapter(
        config,
        adapter_name="message_bus",
        get_driver_type=lambda c: c.message_bus_type,
        get_driver_config=lambda c: c.driver,
        drivers={
            "rabbitmq": _build_publisher_rabbitmq,
            "noop": _build_publisher_noop,
        },
    )
