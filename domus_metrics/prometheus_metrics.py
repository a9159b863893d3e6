# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Domus-Messaging contributors

"""Prometheus metrics collector implementation."""

import logging
import threading
from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram

from domus_config import DriverConfig_Metrics_Prometheus

from .base import MetricsCollector

logger = logging.getLogger(__name__)


class PrometheusMetricsCollector(MetricsCollector):
    """Prometheus metrics collector for production observability.

    Metric objects are created lazily on first use and cached by
    ``(name, label names)``. All calls for one metric name must use the same
    tag keys; Prometheus rejects mixed label sets.
    """

    def __init__(
        self,
        registry: Optional[CollectorRegistry] = None,
        namespace: str = "domus",
        raise_on_error: bool = False,
    ):
        """Initialize Prometheus metrics collector.

        Args:
            registry: Optional Prometheus registry (uses default if None)
            namespace: Namespace prefix for all metrics
            raise_on_error: If True, raise exceptions on metric errors (useful for testing).
                           If False, log errors and continue.
        """
        self.registry = registry
        self.namespace = namespace
        self.raise_on_error = raise_on_error
        self._counters: dict[tuple[str, tuple[str, ...]], Counter] = {}
        self._histograms: dict[tuple[str, tuple[str, ...]], Histogram] = {}
        self._gauges: dict[tuple[str, tuple[str, ...]], Gauge] = {}
        self._metrics_errors_count = 0
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, driver_config: DriverConfig_Metrics_Prometheus) -> "PrometheusMetricsCollector":
        return cls(
            namespace=driver_config.namespace,
            raise_on_error=driver_config.raise_on_error,
        )

    def _get_or_create(self, cache: dict, metric_type: type, name: str, tags: dict[str, str] | None):
        labelnames = tuple(sorted(tags.keys())) if tags else ()
        cache_key = (name, labelnames)
        with self._lock:
            if cache_key not in cache:
                kwargs = {
                    "name": name,
                    "documentation": f"{metric_type.__name__} metric: {name}",
                    "labelnames": labelnames,
                    "namespace": self.namespace,
                }
                if self.registry is not None:
                    kwargs["registry"] = self.registry
                cache[cache_key] = metric_type(**kwargs)
            return cache[cache_key]

    def _record_error(self, action: str, name: str, error: Exception) -> None:
        self._metrics_errors_count += 1
        logger.error("Failed to %s %s: %s", action, name, error)
        if self.raise_on_error:
            raise error

    def increment(self, name: str, value: float = 1.0, tags: dict[str, str] | None = None) -> None:
        try:
            counter = self._get_or_create(self._counters, Counter, name, tags)
            if tags:
                counter.labels(**tags).inc(value)
            else:
                counter.inc(value)
        except ValueError as e:
            self._record_error("increment counter", name, e)

    def observe(self, name: str, value: float, tags: dict[str, str] | None = None) -> None:
        try:
            histogram = self._get_or_create(self._histograms, Histogram, name, tags)
            if tags:
                histogram.labels(**tags).observe(value)
            else:
                histogram.observe(value)
        except ValueError as e:
            self._record_error("observe histogram", name, e)

    def gauge(self, name: str, value: float, tags: dict[str, str] | None = None) -> None:
        try:
            gauge = self._get_or_create(self._gauges, Gauge, name, tags)
            if tags:
                gauge.labels(**tags).set(value)
            else:
                gauge.set(value)
        except ValueError as e:
            self._record_error("set gauge", name, e)

    def get_errors_count(self) -> int:
        """Get the count of metrics collection errors."""
        return self._metrics_errors_count
