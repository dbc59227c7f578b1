from typing import Any, Dict

import pytest
from prometheus_client import CollectorRegistry

from nsq_exporter.janitor import Janitor
from nsq_exporter.observations import EphemeralFilter, ObservationRouter
from nsq_exporter.state import ExporterState


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def registry() -> CollectorRegistry:
    return CollectorRegistry()


@pytest.fixture
def state(clock, registry) -> ExporterState:
    return ExporterState.create(
        node_ttl=60,
        topic_channel_ttl=120,
        ephemeral=EphemeralFilter(enabled=True, suffix="#ephemeral"),
        registry=registry,
        clock=clock,
    )


@pytest.fixture
def router(state) -> ObservationRouter:
    return ObservationRouter(state)


@pytest.fixture
def janitor(state) -> Janitor:
    return Janitor(state, interval_seconds=15)


@pytest.fixture
def node_a() -> Dict[str, Any]:
    return {"broadcast_address": "nsqd-a", "http_port": 4151, "tcp_port": 4150}


@pytest.fixture
def node_b() -> Dict[str, Any]:
    return {"broadcast_address": "nsqd-b", "http_port": 4151, "tcp_port": 4150}
