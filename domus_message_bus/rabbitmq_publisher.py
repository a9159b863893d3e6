# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Domus-Messaging contributors

"""RabbitMQ event publisher implementation."""

import json
import logging
import threading
import time
from typing import Any

import pika
import pika.exceptions

from domus_config import DriverConfig_MessageBus_Rabbitmq

from .base import EventPublisher

logger = logging.getLogger(__name__)

_RECONNECTABLE_ERRORS = (
    pika.exceptions.ChannelWrongStateError,
    pika.exceptions.ChannelClosedByBroker,
    pika.exceptions.ConnectionClosedByBroker,
    pika.exceptions.AMQPConnectionError,
    pika.exceptions.StreamLostError,
)


class RabbitMQPublisher(EventPublisher):
    """RabbitMQ-based event publisher with persistent messages.

    A ``BlockingConnection`` is not thread-safe, so publishes are serialized
    through an internal lock.
    """

    def __init__(
        self,
        host: str | None = None,
        port: int | None = None,
        username: str | None = None,
        password: str | None = None,
        exchange: str = "domus.events",
        exchange_type: str = "topic",
        enable_publisher_confirms: bool = True,
        max_reconnect_attempts: int = 3,
        reconnect_delay: float = 2.0,
    ):
        """Initialize RabbitMQ publisher.

        Args:
            host: RabbitMQ host (required)
            port: RabbitMQ port (required)
            username: RabbitMQ username (required)
            password: RabbitMQ password (required)
            exchange: Default exchange name
            exchange_type: Exchange type (topic, direct, fanout, headers)
            enable_publisher_confirms: Enable publisher confirms for guaranteed delivery
            max_reconnect_attempts: Maximum number of reconnection attempts
            reconnect_delay: Base delay between reconnection attempts in seconds

        Raises:
            ValueError: If required parameters (host, port, username, password) are not provided
        """
        if not host:
            raise ValueError(
                "RabbitMQ host is required. "
                "Provide the RabbitMQ server hostname or IP address."
            )
        if port is None:
            raise ValueError(
                "RabbitMQ port is required. "
                "Provide the RabbitMQ server port number."
            )
        if not username:
            raise ValueError(
                "RabbitMQ username is required. "
                "Provide the username for authentication."
            )
        if not password:
            raise ValueError(
                "RabbitMQ password is required. "
                "Provide the password for authentication."
            )

        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.exchange = exchange
        self.exchange_type = exchange_type
        self.enable_publisher_confirms = enable_publisher_confirms
        self.max_reconnect_attempts = max_reconnect_attempts
        self.reconnect_delay = reconnect_delay
        self.connection: Any = None
        self.channel: Any = None
        self._last_reconnect_time = 0.0
        self._reconnect_count = 0
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, driver_config: DriverConfig_MessageBus_Rabbitmq) -> "RabbitMQPublisher":
        """Create publisher from typed driver config."""
        return cls(
            host=driver_config.rabbitmq_host,
            port=driver_config.rabbitmq_port,
            username=driver_config.rabbitmq_username,
            password=driver_config.rabbitmq_password,
            exchange=driver_config.exchange,
            exchange_type=driver_config.exchange_type,
        )

    def connect(self) -> None:
        """Connect to RabbitMQ and declare the exchange."""
        credentials = pika.PlainCredentials(self.username, self.password)
        parameters = pika.ConnectionParameters(
            host=self.host,
            port=self.port,
            credentials=credentials,
            connection_attempts=3,
            retry_delay=2,
        )
        self.connection = pika.BlockingConnection(parameters)
        self.channel = self.connection.channel()

        if self.enable_publisher_confirms:
            self.channel.confirm_delivery()
            logger.info("Publisher confirms enabled")

        self.channel.exchange_declare(
            exchange=self.exchange,
            exchange_type=self.exchange_type,
            durable=True,
        )
        logger.info("Connected to RabbitMQ at %s:%s", self.host, self.port)

    def disconnect(self) -> None:
        """Disconnect from RabbitMQ."""
        try:
            if self.connection and not self.connection.is_closed:
                self.connection.close()
            logger.info("Disconnected from RabbitMQ")
        except pika.exceptions.AMQPError as e:
            logger.error("Error disconnecting from RabbitMQ: %s", e)

    def _is_connected(self) -> bool:
        return (
            self.connection is not None
            and not self.connection.is_closed
            and self.channel is not None
            and self.channel.is_open
        )

    def _reconnect(self) -> bool:
        """Attempt to reconnect, throttled with exponential backoff.

        Returns:
            True if reconnection succeeded, False otherwise
        """
        now = time.time()
        backoff_delay = min(self.reconnect_delay * (2 ** (self._reconnect_count + 1)), 60.0)
        if now - self._last_reconnect_time < backoff_delay and self._reconnect_count > 0:
            logger.warning("Reconnection throttled (backoff %.1fs)", backoff_delay)
            return False
        self._last_reconnect_time = now

        if self._reconnect_count >= self.max_reconnect_attempts:
            logger.error("Maximum reconnection attempts (%d) exceeded", self.max_reconnect_attempts)
            return False

        self.channel = None
        self.connection = None
        self._reconnect_count += 1
        logger.info("Attempting reconnection %d/%d...", self._reconnect_count, self.max_reconnect_attempts)

        try:
            self.connect()
        except pika.exceptions.AMQPError as e:
            logger.error("Reconnection attempt %d failed: %s", self._reconnect_count, e)
            return False

        self._reconnect_count = 0
        logger.info("Reconnection successful")
        return True

    def publish(self, exchange: str, routing_key: str, event: dict[str, Any]) -> None:
        """Publish an event as a persistent JSON message.

        Raises:
            ConnectionError: If not connected and reconnection fails
            pika.exceptions.UnroutableError: If message is unroutable
            pika.exceptions.NackError: If message is rejected by broker
        """
        with self._lock:
            if not self._is_connected():
                logger.warning("Channel closed, attempting reconnection...")
                if not self._reconnect():
                    raise ConnectionError("Not connected to RabbitMQ and reconnection failed")

            body = json.dumps(event, default=str)
            properties = pika.BasicProperties(
                delivery_mode=2,
                content_type="application/json",
            )
            try:
                self.channel.basic_publish(
                    exchange=exchange,
                    routing_key=routing_key,
                    body=body,
                    properties=properties,
                    mandatory=True,
                )
            except _RECONNECTABLE_ERRORS as e:
                logger.warning("Publish failed (%s), reconnecting and retrying once", e)
                if not self._reconnect():
                    raise ConnectionError("Publish failed and reconnection failed") from e
                self.channel.basic_publish(
                    exchange=exchange,
                    routing_key=routing_key,
                    body=body,
                    properties=properties,
                    mandatory=True,
                )

        logger.debug("Published event to %s/%s: %s", exchange, routing_key, event.get("event_type"))
