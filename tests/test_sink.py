"""Tests for MetricSink over a private prometheus registry."""

import pytest
from prometheus_client import CollectorRegistry
from prometheus_client.parser import text_string_to_metric_families

from nsq_exporter.metrics import (
    CHANNEL_DEPTH,
    CLUSTER_NODE_COUNT,
    TOPIC_DEPTH,
    WATCHER_ERROR_COUNT,
    MetricSink,
)


def scraped_samples(body):
    """Exposition text -> {(name, sorted labels): value}."""
    return {
        (sample.name, tuple(sorted(sample.labels.items()))): sample.value
        for family in text_string_to_metric_families(body)
        for sample in family.samples
    }


@pytest.fixture
def sink(registry) -> MetricSink:
    return MetricSink(registry=registry)


class TestMetricSink:

    def test_set_gauge_with_labels(self, sink, registry):
        sink.set_gauge(TOPIC_DEPTH, {"topic": "orders", "node": "nsqd-a:4151"}, 7)

        assert registry.get_sample_value(
            "nsq_topic_depth", {"topic": "orders", "node": "nsqd-a:4151"}
        ) == 7.0

    def test_set_unlabeled_gauge(self, sink, registry):
        sink.set_unlabeled_gauge(CLUSTER_NODE_COUNT, 3)

        assert registry.get_sample_value("nsq_cluster_node_count") == 3.0

    def test_inc_counter(self, sink, registry):
        sink.inc_counter(WATCHER_ERROR_COUNT)
        sink.inc_counter(WATCHER_ERROR_COUNT)

        assert registry.get_sample_value("nsq_watcher_error_count_total") == 2.0

    def test_remove_series(self, sink, registry):
        labels = {"topic": "orders", "channel": "billing"}
        sink.set_gauge(CHANNEL_DEPTH, labels, 3)
        sink.remove_series(CHANNEL_DEPTH, labels)

        assert registry.get_sample_value("nsq_channel_depth", labels) is None

    def test_remove_absent_series_is_noop(self, sink, registry):
        sink.remove_series(CHANNEL_DEPTH, {"topic": "orders", "channel": "never"})

    def test_unknown_metric(self, sink):
        with pytest.raises(KeyError):
            sink.set_unlabeled_gauge("nope", 1)

    def test_kind_mismatch(self, sink):
        with pytest.raises(KeyError):
            sink.inc_counter(CLUSTER_NODE_COUNT)

    def test_custom_namespace(self):
        registry = CollectorRegistry()
        sink = MetricSink(registry=registry, namespace="cluster")
        sink.set_unlabeled_gauge(CLUSTER_NODE_COUNT, 1)

        assert registry.get_sample_value("cluster_cluster_node_count") == 1.0

    def test_render_contains_help_and_series(self, sink):
        sink.set_gauge(CHANNEL_DEPTH, {"topic": "orders", "channel": "billing"}, 3)
        body = sink.render().decode()

        assert "# HELP nsq_channel_depth" in body
        assert scraped_samples(body)[("nsq_channel_depth", (("channel", "billing"), ("topic", "orders")))] == 3.0

    def test_two_sinks_do_not_collide(self):
        # Each sink owns its registry, declaring the same names twice is fine.
        MetricSink()
        MetricSink()
