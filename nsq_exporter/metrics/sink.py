"""Metric sink: thin adapter over prometheus_client.

Metric objects are declared once, at construction, inside a dedicated
CollectorRegistry so several exporters (and tests) never share state
through the global default registry.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, Mapping, Optional, Union

from prometheus_client import CollectorRegistry, Counter, Gauge, generate_latest

from .definitions import DEFAULT_METRICS, MetricDefinition, MetricKind

logger = logging.getLogger(__name__)

Metric = Union[Gauge, Counter]


class MetricSink:
    """Sets, increments and removes labelled series in a registry."""

    def __init__(
        self,
        registry: Optional[CollectorRegistry] = None,
        namespace: str = "nsq",
        definitions: Iterable[MetricDefinition] = DEFAULT_METRICS,
    ):
        self.registry = registry if registry is not None else CollectorRegistry()
        self.namespace = namespace
        self._definitions: Dict[str, MetricDefinition] = {}
        self._metrics: Dict[str, Metric] = {}

        for definition in definitions:
            self._declare(definition)

    def _declare(self, definition: MetricDefinition) -> None:
        cls = Gauge if definition.kind is MetricKind.GAUGE else Counter
        self._metrics[definition.name] = cls(
            definition.name,
            definition.documentation,
            labelnames=definition.labels,
            namespace=self.namespace,
            registry=self.registry,
        )
        self._definitions[definition.name] = definition

    def _get(self, name: str, kind: MetricKind) -> Metric:
        definition = self._definitions.get(name)
        if definition is None:
            raise KeyError(f"unknown metric: {name}")
        if definition.kind is not kind:
            raise KeyError(f"metric {name} is a {definition.kind.value}, not a {kind.value}")
        return self._metrics[name]

    def set_gauge(self, name: str, labels: Mapping[str, str], value: float) -> None:
        self._get(name, MetricKind.GAUGE).labels(**labels).set(value)

    def set_unlabeled_gauge(self, name: str, value: float) -> None:
        self._get(name, MetricKind.GAUGE).set(value)

    def inc_counter(self, name: str, amount: float = 1) -> None:
        self._get(name, MetricKind.COUNTER).inc(amount)

    def remove_series(self, name: str, labels: Mapping[str, str]) -> None:
        """Drop one labelled series; no-op when it does not exist."""
        metric = self._metrics.get(name)
        if metric is None:
            raise KeyError(f"unknown metric: {name}")
        definition = self._definitions[name]
        values = [labels[label] for label in definition.labels]
        try:
            metric.remove(*values)
        except KeyError:
            logger.debug("[SINK] series %s%s already absent", name, dict(labels))

    def render(self) -> bytes:
        """Prometheus text exposition of every declared metric."""
        return generate_latest(self.registry)
