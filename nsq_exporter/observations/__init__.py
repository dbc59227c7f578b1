"""Observations from the cluster observer and how they are applied.

Estructura:
- events.py: typed events and payload models
- filters.py: ephemeral topic/channel filter
- router.py: events -> ledgers + metrics
- pump.py: asyncio delivery and emitter binding
"""

from .events import (
    NodeIdentity,
    NodeStatus,
    Observation,
    Ready,
    TopicChannelDepth,
    TopicDepth,
    TopicMeta,
    WatcherError,
)
from .filters import EphemeralFilter
from .router import ObservationRouter, RouterStats
from .pump import ObservationPump, bind_emitter

__all__ = [
    "NodeIdentity",
    "NodeStatus",
    "Observation",
    "Ready",
    "TopicChannelDepth",
    "TopicDepth",
    "TopicMeta",
    "WatcherError",
    "EphemeralFilter",
    "ObservationRouter",
    "RouterStats",
    "ObservationPump",
    "bind_emitter",
]
