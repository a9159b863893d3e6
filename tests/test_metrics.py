# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Domus-Messaging contributors

"""Tests for metrics collectors."""

import pytest
from prometheus_client import CollectorRegistry

from domus_config import AdapterConfig_Metrics, DriverConfig_Metrics_Noop, DriverConfig_Metrics_Prometheus
from domus_metrics import (
    MetricsCollector,
    NoOpMetricsCollector,
    PrometheusMetricsCollector,
    create_metrics_collector,
)


class TestCreateMetricsCollector:
    """Tests for create_metrics_collector factory function."""

    def test_create_noop(self):
        """Test creating the in-memory collector."""
        collector = create_metrics_collector(
            AdapterConfig_Metrics(metrics_type="noop", driver=DriverConfig_Metrics_Noop())
        )

        assert isinstance(collector, NoOpMetricsCollector)
        assert isinstance(collector, MetricsCollector)

    def test_create_prometheus(self):
        """Test creating the Prometheus collector."""
        collector = create_metrics_collector(
            AdapterConfig_Metrics(
                metrics_type="prometheus", driver=DriverConfig_Metrics_Prometheus(namespace="factory_test")
            )
        )

        assert isinstance(collector, PrometheusMetricsCollector)
        assert collector.namespace == "factory_test"

    def test_unknown_backend(self):
        """Test that unknown backends are rejected."""
        with pytest.raises(ValueError, match="Unknown metrics driver"):
            create_metrics_collector(
                AdapterConfig_Metrics(metrics_type="statsd", driver=DriverConfig_Metrics_Noop())
            )


class TestNoOpMetricsCollector:
    """Tests for NoOpMetricsCollector."""

    def test_counter_totals(self):
        """Test summing counters with and without a tag filter."""
        collector = NoOpMetricsCollector()

        collector.increment("messaging_messages_posted_total", tags={"kind": "direct"})
        collector.increment("messaging_messages_posted_total", tags={"kind": "direct"})
        collector.increment("messaging_messages_posted_total", tags={"kind": "group"})

        assert collector.get_counter_total("messaging_messages_posted_total") == 3
        assert collector.get_counter_total("messaging_messages_posted_total", tags={"kind": "direct"}) == 2
        assert collector.get_counter_total("other") == 0

    def test_observations_and_gauges(self):
        """Test histogram samples and the latest gauge value."""
        collector = NoOpMetricsCollector()

        collector.observe("messaging_post_latency_seconds", 0.1)
        collector.observe("messaging_post_latency_seconds", 0.2)
        collector.gauge("subscribers", 1)
        collector.gauge("subscribers", 4)

        assert collector.get_observations("messaging_post_latency_seconds") == [0.1, 0.2]
        assert collector.get_gauge_value("subscribers") == 4
        assert collector.get_gauge_value("missing") is None

    def test_clear_metrics(self):
        """Test that clear_metrics forgets everything."""
        collector = NoOpMetricsCollector()
        collector.increment("a")
        collector.observe("b", 1.0)

        collector.clear_metrics()

        assert collector.counters == []
        assert collector.observations == []


class TestPrometheusMetricsCollector:
    """Tests for PrometheusMetricsCollector with an isolated registry."""

    def test_increment_with_labels(self):
        """Test that labelled counters accumulate."""
        registry = CollectorRegistry()
        collector = PrometheusMetricsCollector(registry=registry, namespace="domus")

        collector.increment("messaging_messages_posted_total", tags={"kind": "direct"})
        collector.increment("messaging_messages_posted_total", value=2, tags={"kind": "direct"})

        value = registry.get_sample_value("domus_messaging_messages_posted_total", {"kind": "direct"})
        assert value == 3

    def test_observe_and_gauge(self):
        """Test histograms and gauges without labels."""
        registry = CollectorRegistry()
        collector = PrometheusMetricsCollector(registry=registry, namespace="domus")

        collector.observe("messaging_post_latency_seconds", 0.25)
        collector.gauge("messaging_subscribers", 5)

        assert registry.get_sample_value("domus_messaging_post_latency_seconds_count") == 1
        assert registry.get_sample_value("domus_messaging_post_latency_seconds_sum") == 0.25
        assert registry.get_sample_value("domus_messaging_subscribers") == 5

    def test_metric_error_is_counted(self):
        """Test that a conflicting label set is logged and counted, not raised."""
        registry = CollectorRegistry()
        collector = PrometheusMetricsCollector(registry=registry, namespace="domus")

        collector.increment("messaging_uploads_total", tags={"kind": "image"})
        collector.increment("messaging_uploads_total", tags={"owner": "u1"})

        assert collector.get_errors_count() == 1

    def test_metric_error_raised_when_configured(self):
        """Test raise_on_error surfaces the failure."""
        registry = CollectorRegistry()
        collector = PrometheusMetricsCollector(registry=registry, namespace="domus", raise_on_error=True)
        collector.increment("messaging_uploads_total", tags={"kind": "image"})

        with pytest.raises(ValueError):
            collector.increment("messaging_uploads_total", tags={"owner": "u1"})
