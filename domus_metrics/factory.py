# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Domus-Messaging contributors

"""Factory functions for creating metrics collectors."""

from typing import TypeAlias

from domus_config import (
    AdapterConfig_Metrics,
    DriverConfig_Metrics_Noop,
    DriverConfig_Metrics_Prometheus,
    create_adapter,
)

from .base import MetricsCollector

_DriverConfig: TypeAlias = DriverConfig_Metrics_Prometheus | DriverConfig_Metrics_Noop


def _build_prometheus(config: _DriverConfig) -> MetricsCollector:
    from .prometheus_metrics import PrometheusMetricsCollector

    if not isinstance(config, DriverConfig_Metrics_Prometheus):
        raise TypeError("driver config must be DriverConfig_Metrics_Prometheus")
    return PrometheusMetricsCollector.from_config(config)


def _build_noop(config: _DriverConfig) -> MetricsCollector:
    from .noop_metrics import NoOpMetricsCollector

    if not isinstance(config, DriverConfig_Metrics_Noop):
        raise TypeError("driver config must be DriverConfig_Metrics_Noop")
    return NoOpMetricsCollector.from_config(config)


def create_metrics_collector(config: AdapterConfig_Metrics) -> MetricsCollector:
    """Create a metrics collector from a typed adapter config.

    Supported drivers:
    - "prometheus": Prometheus metrics exposed through prometheus_client
    - "noop": in-memory collector for tests and local development

    Raises:
        ValueError: If config is missing or the driver is unknown
    """
    return create_adapter(
        config,
        adapter_name="metrics",
        get_driver_type=lambda c: c.metrics_type,
        get_driver_config=lambda c: c.driver,
        drivers={
            "prometheus": _build_prometheus,
            "noop": _build_noop,
        },
    )
