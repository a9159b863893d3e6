# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Domus-Messaging contributors

"""Build a :class:`MessagingConfig` from a configuration provider.

Environment variables (all optional):

    DOCUMENT_STORE_TYPE       inmemory | mongodb
    DOCUMENT_DATABASE_HOST    MongoDB host
    DOCUMENT_DATABASE_PORT    MongoDB port
    DOCUMENT_DATABASE_NAME    MongoDB database
    DOCUMENT_DATABASE_USER    MongoDB username
    DOCUMENT_DATABASE_PASSWORD
    BLOB_STORE_TYPE           inmemory | local | azure_blob
    BLOB_STORE_PATH           Base directory for the local driver
    BLOB_STORE_BASE_URL       Public URL prefix for stored blobs
    AZURE_STORAGE_ACCOUNT, AZURE_STORAGE_KEY, AZURE_STORAGE_SAS_TOKEN,
    AZURE_STORAGE_CONTAINER, AZURE_STORAGE_PREFIX,
    AZURE_STORAGE_CONNECTION_STRING
    MESSAGE_BUS_TYPE          noop | rabbitmq
    RABBITMQ_HOST, RABBITMQ_PORT, RABBITMQ_USERNAME, RABBITMQ_PASSWORD
    MESSAGE_BUS_EXCHANGE      Exchange for insert-events and notifications
    PUBLISH_INSERT_EVENTS     Bridge posted messages to the message bus
    METRICS_BACKEND           noop | prometheus
    METRICS_NAMESPACE
    LOG_TYPE                  stdout | silent
    LOG_LEVEL                 DEBUG | INFO | WARNING | ERROR
    LOG_NAME
    NOTIFY_ENABLED            Enable new-message notifications
    NOTIFIER_TYPE             noop | webhook | message_bus
    NOTIFY_WEBHOOK_URL
    CONFLICT_RETRIES
    MESSAGE_PAGE_SIZE
"""

from __future__ import annotations

import logging

from .adapters import (
    AdapterConfig_BlobStore,
    AdapterConfig_DocumentStore,
    AdapterConfig_Logger,
    AdapterConfig_MessageBus,
    AdapterConfig_Metrics,
    AdapterConfig_Notifier,
    DriverConfig_BlobStore_AzureBlob,
    DriverConfig_BlobStore_Inmemory,
    DriverConfig_BlobStore_Local,
    DriverConfig_DocumentStore_Inmemory,
    DriverConfig_DocumentStore_Mongodb,
    DriverConfig_Logger_Silent,
    DriverConfig_Logger_Stdout,
    DriverConfig_MessageBus_Noop,
    DriverConfig_MessageBus_Rabbitmq,
    DriverConfig_Metrics_Noop,
    DriverConfig_Metrics_Prometheus,
    DriverConfig_Notifier_MessageBus,
    DriverConfig_Notifier_Noop,
    DriverConfig_Notifier_Webhook,
    MessagingConfig,
)
from .base import ConfigProvider
from .env_provider import EnvConfigProvider

logger = logging.getLogger(__name__)


def _document_store_config(provider: ConfigProvider) -> AdapterConfig_DocumentStore:
    store_type = str(provider.get("DOCUMENT_STORE_TYPE", "inmemory")).lower()
    if store_type == "mongodb":
        driver = DriverConfig_DocumentStore_Mongodb(
            host=provider.get("DOCUMENT_DATABASE_HOST", "localhost"),
            port=provider.get_int("DOCUMENT_DATABASE_PORT", 27017),
            database=provider.get("DOCUMENT_DATABASE_NAME", "domus"),
            username=provider.get("DOCUMENT_DATABASE_USER"),
            password=provider.get("DOCUMENT_DATABASE_PASSWORD"),
        )
    else:
        driver = DriverConfig_DocumentStore_Inmemory()
    return AdapterConfig_DocumentStore(doc_store_type=store_type, driver=driver)


def _blob_store_config(provider: ConfigProvider) -> AdapterConfig_BlobStore:
    store_type = str(provider.get("BLOB_STORE_TYPE", "inmemory")).lower()
    if store_type == "local":
        driver = DriverConfig_BlobStore_Local(
            base_path=provider.get("BLOB_STORE_PATH", "/data/attachments"),
            base_url=provider.get("BLOB_STORE_BASE_URL"),
        )
    elif store_type == "azure_blob":
        driver = DriverConfig_BlobStore_AzureBlob(
            account_name=provider.get("AZURE_STORAGE_ACCOUNT"),
            account_key=provider.get("AZURE_STORAGE_KEY"),
            sas_token=provider.get("AZURE_STORAGE_SAS_TOKEN"),
            container_name=provider.get("AZURE_STORAGE_CONTAINER", "attachments"),
            prefix=provider.get("AZURE_STORAGE_PREFIX", ""),
            connection_string=provider.get("AZURE_STORAGE_CONNECTION_STRING"),
        )
    else:
        driver = DriverConfig_BlobStore_Inmemory(
            base_url=provider.get("BLOB_STORE_BASE_URL", "memory://attachments"),
        )
    return AdapterConfig_BlobStore(blob_store_type=store_type, driver=driver)


def _message_bus_config(provider: ConfigProvider, exchange: str) -> AdapterConfig_MessageBus:
    bus_type = str(provider.get("MESSAGE_BUS_TYPE", "noop")).lower()
    if bus_type == "rabbitmq":
        driver = DriverConfig_MessageBus_Rabbitmq(
            rabbitmq_host=provider.get("RABBITMQ_HOST", "messagebus"),
            rabbitmq_port=provider.get_int("RABBITMQ_PORT", 5672),
            rabbitmq_username=provider.get("RABBITMQ_USERNAME"),
            rabbitmq_password=provider.get("RABBITMQ_PASSWORD"),
            exchange=exchange,
        )
    else:
        driver = DriverConfig_MessageBus_Noop()
    return AdapterConfig_MessageBus(message_bus_type=bus_type, driver=driver)


def _metrics_config(provider: ConfigProvider) -> AdapterConfig_Metrics:
    backend = str(provider.get("METRICS_BACKEND", "noop")).lower()
    if backend == "prometheus":
        driver = DriverConfig_Metrics_Prometheus(
            namespace=provider.get("METRICS_NAMESPACE", "domus"),
        )
    else:
        driver = DriverConfig_Metrics_Noop()
    return AdapterConfig_Metrics(metrics_type=backend, driver=driver)


def _logger_config(provider: ConfigProvider) -> AdapterConfig_Logger:
    logger_type = str(provider.get("LOG_TYPE", "stdout")).lower()
    level = str(provider.get("LOG_LEVEL", "INFO")).upper()
    name = provider.get("LOG_NAME", "domus-messaging")
    if logger_type == "silent":
        driver = DriverConfig_Logger_Silent(level=level, name=name)
    else:
        driver = DriverConfig_Logger_Stdout(level=level, name=name)
    return AdapterConfig_Logger(logger_type=logger_type, driver=driver)


def _notifier_config(provider: ConfigProvider, exchange: str) -> AdapterConfig_Notifier:
    if not provider.get_bool("NOTIFY_ENABLED", False):
        return AdapterConfig_Notifier(notifier_type="noop", driver=DriverConfig_Notifier_Noop())

    notifier_type = str(provider.get("NOTIFIER_TYPE", "webhook")).lower()
    if notifier_type == "webhook":
        driver = DriverConfig_Notifier_Webhook(url=provider.get("NOTIFY_WEBHOOK_URL"))
    elif notifier_type == "message_bus":
        driver = DriverConfig_Notifier_MessageBus(exchange=exchange)
    else:
        driver = DriverConfig_Notifier_Noop()
    return AdapterConfig_Notifier(notifier_type=notifier_type, driver=driver)


def load_messaging_config(provider: ConfigProvider | None = None) -> MessagingConfig:
    """Load the messaging service configuration.

    Args:
        provider: Configuration source. Defaults to the process environment.

    Returns:
        Fully populated MessagingConfig. Unknown driver names are passed
        through so that the adapter factories can reject them.
    """
    provider = provider or EnvConfigProvider()
    exchange = provider.get("MESSAGE_BUS_EXCHANGE", "domus.events")

    config = MessagingConfig(
        document_store=_document_store_config(provider),
        blob_store=_blob_store_config(provider),
        message_bus=_message_bus_config(provider, exchange),
        metrics=_metrics_config(provider),
        logger=_logger_config(provider),
        notifier=_notifier_config(provider, exchange),
        exchange=exchange,
        publish_insert_events=provider.get_bool("PUBLISH_INSERT_EVENTS", False),
        conflict_retries=provider.get_int("CONFLICT_RETRIES", 1),
        page_size=provider.get_int("MESSAGE_PAGE_SIZE", 100),
    )
    logger.debug(
        "Loaded messaging config: document_store=%s blob_store=%s message_bus=%s",
        config.document_store.doc_store_type,
        config.blob_store.blob_store_type,
        config.message_bus.message_bus_type,
    )
    return config
