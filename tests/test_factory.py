# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Domus-Messaging contributors

"""Tests for create_messaging_service."""

import pytest

from domus_config import (
    AdapterConfig_Logger,
    AdapterConfig_MessageBus,
    DriverConfig_Logger_Silent,
    DriverConfig_MessageBus_Noop,
    MessagingConfig,
)
from domus_messaging import (
    DocumentStoreIdentityProvider,
    Identity,
    MessagingService,
    create_messaging_service,
)
from tests.fixtures import ADMIN, LODGER


def _config(**overrides):
    values = dict(
        logger=AdapterConfig_Logger(logger_type="silent", driver=DriverConfig_Logger_Silent()),
    )
    values.update(overrides)
    return MessagingConfig(**values)


class TestCreateMessagingService:
    """Tests for wiring a service from configuration."""

    def test_defaults_are_in_memory(self):
        """Test that the default config builds a working service."""
        service = create_messaging_service(_config())

        assert isinstance(service, MessagingService)
        assert isinstance(service.identity_provider, DocumentStoreIdentityProvider)
        assert service.thread_store.document_store.connected
        assert service.publisher.connected
        assert service.delivery.publisher is None
        assert service.message_log.page_size == 100

    def test_profiles_back_identity(self):
        """Test that the default identity provider reads the profiles collection."""
        service = create_messaging_service(_config())
        service.identity_provider.save_identity(Identity(ADMIN, "admin", "Ada Admin"))
        service.identity_provider.save_identity(Identity(LODGER, "lodger", "Lena Lodger"))

        case = service.raise_complaint(LODGER, "Leak", "Kitchen tap")

        assert case.assignee_id == ADMIN

    def test_insert_events_wired(self):
        """Test that enabling insert-events hands the publisher to delivery."""
        service = create_messaging_service(_config(publish_insert_events=True, exchange="lodging"))

        assert service.delivery.publisher is service.publisher
        assert service.delivery.exchange == "lodging"

    def test_conflict_retries_and_page_size(self):
        """Test that tuning options reach the components."""
        service = create_messaging_service(_config(conflict_retries=3, page_size=25))

        assert service.retry_policy.config.max_attempts == 4
        assert service.message_log.page_size == 25

    def test_unknown_driver(self):
        """Test that an unsupported driver fails fast."""
        config = _config(
            message_bus=AdapterConfig_MessageBus(message_bus_type="kafka", driver=DriverConfig_MessageBus_Noop())
        )

        with pytest.raises(ValueError, match="Unknown message_bus driver"):
            create_messaging_service(config)

    def test_close_releases_connections(self):
        """Test that close disconnects the adapters it owns."""
        service = create_messaging_service(_config())

        service.close()

        assert not service.thread_store.document_store.connected
        assert not service.publisher.connected
