# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Domus-Messaging contributors

"""Tests for message bus publishers."""

import json
from unittest.mock import patch

import pika.exceptions
import pytest

from domus_config import AdapterConfig_MessageBus, DriverConfig_MessageBus_Noop, DriverConfig_MessageBus_Rabbitmq
from domus_message_bus import EventPublisher, NoopPublisher, create_publisher
from domus_message_bus.rabbitmq_publisher import RabbitMQPublisher


class TestCreatePublisher:
    """Tests for create_publisher factory function."""

    def test_create_noop(self):
        """Test creating a no-op publisher."""
        publisher = create_publisher(
            AdapterConfig_MessageBus(message_bus_type="noop", driver=DriverConfig_MessageBus_Noop())
        )

        assert isinstance(publisher, NoopPublisher)
        assert isinstance(publisher, EventPublisher)

    def test_create_rabbitmq(self):
        """Test creating a RabbitMQ publisher from config."""
        publisher = create_publisher(
            AdapterConfig_MessageBus(
                message_bus_type="rabbitmq",
                driver=DriverConfig_MessageBus_Rabbitmq(
                    rabbitmq_host="rabbit",
                    rabbitmq_port=5672,
                    rabbitmq_username="guest",
                    rabbitmq_password="guest",
                    exchange="lodging.events",
                ),
            )
        )

        assert isinstance(publisher, RabbitMQPublisher)
        assert publisher.host == "rabbit"
        assert publisher.exchange == "lodging.events"

    def test_unknown_type(self):
        """Test that unknown bus types are rejected."""
        with pytest.raises(ValueError, match="Unknown message_bus driver"):
            create_publisher(AdapterConfig_MessageBus(message_bus_type="kafka", driver=DriverConfig_MessageBus_Noop()))


class TestNoopPublisher:
    """Tests for NoopPublisher."""

    def test_records_events(self):
        """Test that published events are kept with their routing."""
        publisher = NoopPublisher()
        publisher.connect()

        publisher.publish("domus.events", "message.posted", {"event_type": "MessagePosted", "data": {}})
        publisher.publish("domus.events", "message.notification", {"event_type": "NewMessageNotification"})

        assert publisher.connected is True
        assert len(publisher.get_events()) == 2
        posted = publisher.get_events("MessagePosted")
        assert len(posted) == 1
        assert posted[0]["routing_key"] == "message.posted"

    def test_clear_events(self):
        """Test clearing recorded events."""
        publisher = NoopPublisher()
        publisher.publish("x", "y", {"event_type": "E"})

        publisher.clear_events()

        assert publisher.get_events() == []


class TestRabbitMQPublisher:
    """Tests for RabbitMQPublisher with a mocked pika connection."""

    def _publisher(self):
        return RabbitMQPublisher(host="rabbit", port=5672, username="guest", password="guest")

    def test_requires_credentials(self):
        """Test constructor validation."""
        with pytest.raises(ValueError, match="host is required"):
            RabbitMQPublisher(host=None, port=5672, username="u", password="p")
        with pytest.raises(ValueError, match="username is required"):
            RabbitMQPublisher(host="rabbit", port=5672, username=None, password="p")
        with pytest.raises(ValueError, match="password is required"):
            RabbitMQPublisher(host="rabbit", port=5672, username="u", password=None)

    @patch("domus_message_bus.rabbitmq_publisher.pika.BlockingConnection")
    def test_connect_declares_exchange(self, mock_connection_cls):
        """Test that connecting enables confirms and declares a durable exchange."""
        publisher = self._publisher()

        publisher.connect()

        channel = mock_connection_cls.return_value.channel.return_value
        channel.confirm_delivery.assert_called_once()
        channel.exchange_declare.assert_called_once_with(
            exchange="domus.events", exchange_type="topic", durable=True
        )

    @patch("domus_message_bus.rabbitmq_publisher.pika.BlockingConnection")
    def test_publish_persistent_json(self, mock_connection_cls):
        """Test that events are published as persistent JSON."""
        connection = mock_connection_cls.return_value
        connection.is_closed = False
        channel = connection.channel.return_value
        channel.is_open = True
        publisher = self._publisher()
        publisher.connect()

        publisher.publish("domus.events", "message.posted", {"event_type": "MessagePosted", "data": {"id": "m1"}})

        kwargs = channel.basic_publish.call_args.kwargs
        assert kwargs["exchange"] == "domus.events"
        assert kwargs["routing_key"] == "message.posted"
        assert kwargs["mandatory"] is True
        assert kwargs["properties"].delivery_mode == 2
        assert json.loads(kwargs["body"])["data"]["id"] == "m1"

    @patch("domus_message_bus.rabbitmq_publisher.pika.BlockingConnection")
    def test_publish_retries_once_after_stream_loss(self, mock_connection_cls):
        """Test that a lost stream triggers one reconnect and retry."""
        connection = mock_connection_cls.return_value
        connection.is_closed = False
        channel = connection.channel.return_value
        channel.is_open = True
        channel.basic_publish.side_effect = [pika.exceptions.StreamLostError("lost"), None]
        publisher = self._publisher()
        publisher.connect()

        publisher.publish("domus.events", "message.posted", {"event_type": "MessagePosted"})

        assert channel.basic_publish.call_count == 2
        assert mock_connection_cls.call_count == 2

    @patch("domus_message_bus.rabbitmq_publisher.pika.BlockingConnection")
    def test_publish_when_reconnect_fails(self, mock_connection_cls):
        """Test that an unreachable broker raises ConnectionError."""
        mock_connection_cls.side_effect = pika.exceptions.AMQPConnectionError("refused")
        publisher = self._publisher()

        with pytest.raises(ConnectionError):
            publisher.publish("domus.events", "message.posted", {"event_type": "MessagePosted"})
