# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Domus-Messaging contributors

"""Typed adapter configuration models.

Each adapter has one ``AdapterConfig_<Adapter>`` carrying a discriminant and a
driver-specific ``DriverConfig_<Adapter>_<Driver>``. Factories dispatch on the
discriminant through :func:`domus_config.adapter_factory.create_adapter`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TypeAlias


# ============================================================================
# Document store
# ============================================================================

@dataclass
class DriverConfig_DocumentStore_Inmemory:
    """In-memory document store (tests and local development)."""


@dataclass
class DriverConfig_DocumentStore_Mongodb:
    host: str | None = "localhost"
    port: int | None = 27017
    database: str | None = "domus"
    username: str | None = None
    password: str | None = None


@dataclass
class AdapterConfig_DocumentStore:
    doc_store_type: str
    driver: DriverConfig_DocumentStore_Inmemory | DriverConfig_DocumentStore_Mongodb


# ============================================================================
# Blob store
# ============================================================================

@dataclass
class DriverConfig_BlobStore_Inmemory:
    base_url: str = "memory://attachments"


@dataclass
class DriverConfig_BlobStore_Local:
    base_path: str = "/data/attachments"
    base_url: str | None = None


@dataclass
class DriverConfig_BlobStore_AzureBlob:
    account_name: str | None = None
    account_key: str | None = None
    sas_token: str | None = None
    container_name: str = "attachments"
    prefix: str = ""
    connection_string: str | None = None


@dataclass
class AdapterConfig_BlobStore:
    blob_store_type: str
    driver: DriverConfig_BlobStore_Inmemory | DriverConfig_BlobStore_Local | DriverConfig_BlobStore_AzureBlob


# ============================================================================
# Message bus
# ============================================================================

@dataclass
class DriverConfig_MessageBus_Noop:
    """No-op publisher that keeps events in memory."""


@dataclass
class DriverConfig_MessageBus_Rabbitmq:
    rabbitmq_host: str | None = "messagebus"
    rabbitmq_port: int | None = 5672
    rabbitmq_username: str | None = None
    rabbitmq_password: str | None = None
    exchange: str = "domus.events"
    exchange_type: str = "topic"


@dataclass
class AdapterConfig_MessageBus:
    message_bus_type: str
    driver: DriverConfig_MessageBus_Noop | DriverConfig_MessageBus_Rabbitmq


# ============================================================================
# Metrics
# ============================================================================

@dataclass
class DriverConfig_Metrics_Noop:
    """In-memory metrics collector."""


@dataclass
class DriverConfig_Metrics_Prometheus:
    namespace: str = "domus"
    raise_on_error: bool = False


@dataclass
class AdapterConfig_Metrics:
    metrics_type: str
    driver: DriverConfig_Metrics_Noop | DriverConfig_Metrics_Prometheus


# ============================================================================
# Logger
# ============================================================================

@dataclass
class DriverConfig_Logger_Stdout:
    level: str = "INFO"
    name: str | None = None


@dataclass
class DriverConfig_Logger_Silent:
    level: str = "INFO"
    name: str | None = None


@dataclass
class AdapterConfig_Logger:
    logger_type: str
    driver: DriverConfig_Logger_Stdout | DriverConfig_Logger_Silent


# ============================================================================
# Notifier
# ============================================================================

@dataclass
class DriverConfig_Notifier_Noop:
    """Notifier that records notifications in memory."""


@dataclass
class DriverConfig_Notifier_Webhook:
    url: str | None = None
    timeout_seconds: float = 5.0
    preview_max_length: int = 120


@dataclass
class DriverConfig_Notifier_MessageBus:
    exchange: str = "domus.events"
    routing_key: str = "message.notification"


@dataclass
class AdapterConfig_Notifier:
    notifier_type: str
    driver: DriverConfig_Notifier_Noop | DriverConfig_Notifier_Webhook | DriverConfig_Notifier_MessageBus


DriverConfig: TypeAlias = (
    DriverConfig_DocumentStore_Inmemory
    | DriverConfig_DocumentStore_Mongodb
    | DriverConfig_BlobStore_Inmemory
    | DriverConfig_BlobStore_Local
    | DriverConfig_BlobStore_AzureBlob
    | DriverConfig_MessageBus_Noop
    | DriverConfig_MessageBus_Rabbitmq
    | DriverConfig_Metrics_Noop
    | DriverConfig_Metrics_Prometheus
    | DriverConfig_Logger_Stdout
    | DriverConfig_Logger_Silent
    | DriverConfig_Notifier_Noop
    | DriverConfig_Notifier_Webhook
    | DriverConfig_Notifier_MessageBus
)


# ============================================================================
# Service
# ============================================================================

@dataclass
class MessagingConfig:
    """Complete configuration for a messaging service instance.

    Attributes:
        document_store: Thread, message, marker and attachment persistence
        blob_store: Physical storage for attachment bytes
        message_bus: Publisher for realtime insert-events
        metrics: Metrics backend
        logger: Structured audit logger
        notifier: New-message notification sink
        exchange: Exchange that insert-events are published to
        publish_insert_events: Whether posted messages are bridged to the bus
        conflict_retries: Retries of a conflicting direct-thread lookup
        page_size: Batch size used when scanning a thread's messages
    """
    document_store: AdapterConfig_DocumentStore = field(
        default_factory=lambda: AdapterConfig_DocumentStore(
            doc_store_type="inmemory", driver=DriverConfig_DocumentStore_Inmemory()
        )
    )
    blob_store: AdapterConfig_BlobStore = field(
        default_factory=lambda: AdapterConfig_BlobStore(
            blob_store_type="inmemory", driver=DriverConfig_BlobStore_Inmemory()
        )
    )
    message_bus: AdapterConfig_MessageBus = field(
        default_factory=lambda: AdapterConfig_MessageBus(
            message_bus_type="noop", driver=DriverConfig_MessageBus_Noop()
        )
    )
    metrics: AdapterConfig_Metrics = field(
        default_factory=lambda: AdapterConfig_Metrics(
            metrics_type="noop", driver=DriverConfig_Metrics_Noop()
        )
    )
    logger: AdapterConfig_Logger = field(
        default_factory=lambda: AdapterConfig_Logger(
            logger_type="stdout", driver=DriverConfig_Logger_Stdout()
        )
    )
    notifier: AdapterConfig_Notifier = field(
        default_factory=lambda: AdapterConfig_Notifier(
            notifier_type="noop", driver=DriverConfig_Notifier_Noop()
        )
    )
    exchange: str = "domus.events"
    publish_insert_events: bool = False
    conflict_retries: int = 1
    page_size: int = 100
