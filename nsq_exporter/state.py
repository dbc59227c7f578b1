"""Exporter state shared by the observation router and the janitor."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

from prometheus_client import CollectorRegistry

from .liveness import LivenessLedger
from .metrics import CLUSTER_NODE_COUNT, MetricSink
from .observations.filters import EphemeralFilter

Clock = Callable[[], float]


@dataclass
class ExporterState:
    """Ledgers, metric sink and filter for one running exporter.

    `lock` serializes every ledger/sink mutation: observation handling and
    janitor ticks must never interleave.
    """

    nodes: LivenessLedger
    topics: LivenessLedger
    channels: LivenessLedger
    sink: MetricSink
    ephemeral: EphemeralFilter = field(default_factory=EphemeralFilter)
    clock: Clock = time.monotonic
    lock: threading.RLock = field(default_factory=threading.RLock)

    @classmethod
    def create(
        cls,
        node_ttl: float = 60,
        topic_channel_ttl: float = 120,
        ephemeral: Optional[EphemeralFilter] = None,
        sink: Optional[MetricSink] = None,
        registry: Optional[CollectorRegistry] = None,
        metrics_namespace: str = "nsq",
        clock: Clock = time.monotonic,
    ) -> "ExporterState":
        if sink is None:
            sink = MetricSink(registry=registry, namespace=metrics_namespace)
        return cls(
            nodes=LivenessLedger("nodes", node_ttl),
            topics=LivenessLedger("topics", topic_channel_ttl),
            channels=LivenessLedger("channels", topic_channel_ttl),
            sink=sink,
            ephemeral=ephemeral if ephemeral is not None else EphemeralFilter(),
            clock=clock,
        )

    def now(self) -> float:
        return self.clock()

    def publish_node_count(self) -> None:
        """Node count is always the node ledger's cardinality."""
        self.sink.set_unlabeled_gauge(CLUSTER_NODE_COUNT, len(self.nodes))

    def snapshot(self) -> dict:
        with self.lock:
            return {
                "nodes": self.nodes.stats,
                "topics": self.topics.stats,
                "channels": self.channels.stats,
                "ephemeral_filter": {
                    "enabled": self.ephemeral.enabled,
                    "suffix": self.ephemeral.suffix,
                },
            }
