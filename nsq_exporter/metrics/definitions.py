"""Metric names, help text and label schemas exported by the exporter."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Tuple


class MetricKind(Enum):
    GAUGE = "gauge"
    COUNTER = "counter"


@dataclass(frozen=True)
class MetricDefinition:
    name: str
    documentation: str
    kind: MetricKind
    labels: Tuple[str, ...] = ()


CLUSTER_NODE_COUNT = "cluster_node_count"
WATCHER_ERROR_COUNT = "watcher_error_count"
TOPIC_DEPTH = "topic_depth"
TOPIC_MESSAGE_COUNT = "topic_message_count"
CHANNEL_DEPTH = "channel_depth"

TOPIC_NODE_LABELS = ("topic", "node")
TOPIC_CHANNEL_LABELS = ("topic", "channel")

DEFAULT_METRICS: Tuple[MetricDefinition, ...] = (
    MetricDefinition(
        CLUSTER_NODE_COUNT,
        "The amount of active nsqd nodes in our cluster",
        MetricKind.GAUGE,
    ),
    MetricDefinition(
        WATCHER_ERROR_COUNT,
        "The amount of errors the cluster observer fired since the process started",
        MetricKind.COUNTER,
    ),
    MetricDefinition(
        TOPIC_DEPTH,
        "Depth of a topic on a specific nsqd, messages pile up here while the topic has no channel",
        MetricKind.GAUGE,
        TOPIC_NODE_LABELS,
    ),
    MetricDefinition(
        TOPIC_MESSAGE_COUNT,
        "Message count of a topic on a specific nsqd",
        MetricKind.GAUGE,
        TOPIC_NODE_LABELS,
    ),
    MetricDefinition(
        CHANNEL_DEPTH,
        "Depth of a channel in a topic, aggregated across nsqd nodes",
        MetricKind.GAUGE,
        TOPIC_CHANNEL_LABELS,
    ),
)
