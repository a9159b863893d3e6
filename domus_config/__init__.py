# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Domus-Messaging contributors

"""Domus Messaging Configuration Adapter.

Typed adapter configuration and configuration providers shared by the
messaging adapters and the messaging service.
"""

__version__ = "0.1.0"

from .adapter_factory import create_adapter
from .adapters import (
    AdapterConfig_BlobStore,
    AdapterConfig_DocumentStore,
    AdapterConfig_Logger,
    AdapterConfig_MessageBus,
    AdapterConfig_Metrics,
    AdapterConfig_Notifier,
    DriverConfig,
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
from .env_provider import EnvConfigProvider, StaticConfigProvider
from .loader import load_messaging_config

__all__ = [
    # Version
    "__version__",
    # Configuration Providers
    "ConfigProvider",
    "EnvConfigProvider",
    "StaticConfigProvider",
    # Adapter factory helper
    "create_adapter",
    # Typed configuration
    "AdapterConfig_BlobStore",
    "AdapterConfig_DocumentStore",
    "AdapterConfig_Logger",
    "AdapterConfig_MessageBus",
    "AdapterConfig_Metrics",
    "AdapterConfig_Notifier",
    "DriverConfig",
    "DriverConfig_BlobStore_AzureBlob",
    "DriverConfig_BlobStore_Inmemory",
    "DriverConfig_BlobStore_Local",
    "DriverConfig_DocumentStore_Inmemory",
    "DriverConfig_DocumentStore_Mongodb",
    "DriverConfig_Logger_Silent",
    "DriverConfig_Logger_Stdout",
    "DriverConfig_MessageBus_Noop",
    "DriverConfig_MessageBus_Rabbitmq",
    "DriverConfig_Metrics_Noop",
    "DriverConfig_Metrics_Prometheus",
    "DriverConfig_Notifier_MessageBus",
    "DriverConfig_Notifier_Noop",
    "DriverConfig_Notifier_Webhook",
    "MessagingConfig",
    "load_messaging_config",
]
