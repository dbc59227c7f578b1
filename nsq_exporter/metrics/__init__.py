"""Prometheus metrics exported for the NSQ cluster."""

from .definitions import (
    CHANNEL_DEPTH,
    CLUSTER_NODE_COUNT,
    DEFAULT_METRICS,
    TOPIC_DEPTH,
    TOPIC_MESSAGE_COUNT,
    WATCHER_ERROR_COUNT,
    MetricDefinition,
    MetricKind,
)
from .sink import MetricSink

__all__ = [
    "CHANNEL_DEPTH",
    "CLUSTER_NODE_COUNT",
    "DEFAULT_METRICS",
    "TOPIC_DEPTH",
    "TOPIC_MESSAGE_COUNT",
    "WATCHER_ERROR_COUNT",
    "MetricDefinition",
    "MetricKind",
    "MetricSink",
]
