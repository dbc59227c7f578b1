"""Observation router.

Translates observer events into ledger touches and metric updates:

  status              -> node ledger + cluster_node_count
  topic-depth         -> topic ledger + topic_depth / topic_message_count
  topic-channel-depth -> channel ledger + channel_depth (per channel)
  error               -> log + watcher_error_count
  ready               -> log

Ephemeral topics/channels are dropped before anything is recorded.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable, Dict, Mapping, Type

from pydantic import ValidationError

from ..metrics import (
    CHANNEL_DEPTH,
    TOPIC_DEPTH,
    TOPIC_MESSAGE_COUNT,
    WATCHER_ERROR_COUNT,
)
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

if TYPE_CHECKING:
    from ..state import ExporterState

logger = logging.getLogger(__name__)


class RouterStats:
    """Counters for handled, filtered and malformed observations."""

    def __init__(self):
        self.handled: Dict[str, int] = {}
        self.filtered = 0
        self.malformed = 0
        self.last_event_at: float = 0

    def record(self, kind: str) -> None:
        self.handled[kind] = self.handled.get(kind, 0) + 1

    def __str__(self) -> str:
        return (
            f"Stats: handled={self.handled} filtered={self.filtered} "
            f"malformed={self.malformed}"
        )

    def to_dict(self) -> dict:
        return {
            "handled": dict(self.handled),
            "filtered": self.filtered,
            "malformed": self.malformed,
            "last_event_at": self.last_event_at,
        }


class ObservationRouter:
    """Applies observations to an ExporterState.

    Uso:
        router = ObservationRouter(state)
        router.handle(TopicDepth("orders", 5, {"message_count": 10}, node))
    """

    def __init__(self, state: "ExporterState"):
        self._state = state
        self._stats = RouterStats()
        self._handlers: Dict[Type[Any], Callable[[Any], None]] = {
            Ready: self.on_ready,
            WatcherError: self.on_error,
            NodeStatus: self.on_status,
            TopicDepth: self.on_topic_depth,
            TopicChannelDepth: self.on_topic_channel_depth,
        }

    @property
    def stats(self) -> RouterStats:
        return self._stats

    def handle(self, event: Observation) -> None:
        """Dispatch one event to its handler."""
        handler = self._handlers.get(type(event))
        if handler is None:
            raise TypeError(f"unsupported observation: {type(event).__name__}")
        handler(event)

    def on_ready(self, event: Ready) -> None:
        self._stats.record("ready")
        logger.info("[READY] cluster observer finished initial sync")

    def on_error(self, event: WatcherError) -> None:
        with self._state.lock:
            self._stats.record("error")
            logger.error("[ERROR] cluster observer error: %s", event.error)
            self._state.sink.inc_counter(WATCHER_ERROR_COUNT)

    def on_status(self, event: NodeStatus) -> None:
        try:
            node = NodeIdentity.parse(event.node)
        except ValidationError as e:
            self._malformed("status", e)
            return

        with self._state.lock:
            now = self._state.now()
            self._state.nodes.touch(node.key, now)
            self._state.publish_node_count()
            self._stats.record("status")
            self._stats.last_event_at = now

    def on_topic_depth(self, event: TopicDepth) -> None:
        if not isinstance(event.topic, str):
            self._malformed("topic-depth", TypeError(f"topic must be a string, got {event.topic!r}"))
            return
        if self._state.ephemeral.matches(event.topic):
            self._stats.filtered += 1
            return

        try:
            node = NodeIdentity.parse(event.node)
            meta = TopicMeta.parse(event.meta)
            depth = _as_depth(event.depth)
        except (ValidationError, ValueError) as e:
            self._malformed("topic-depth", e)
            return

        labels = {"topic": event.topic, "node": node.key}
        with self._state.lock:
            now = self._state.now()
            self._state.topics.touch((event.topic, node.key), now)
            self._state.sink.set_gauge(TOPIC_DEPTH, labels, depth)
            self._state.sink.set_gauge(TOPIC_MESSAGE_COUNT, labels, meta.message_count)
            self._stats.record("topic-depth")
            self._stats.last_event_at = now

    def on_topic_channel_depth(self, event: TopicChannelDepth) -> None:
        if not isinstance(event.topic, str):
            self._malformed(
                "topic-channel-depth", TypeError(f"topic must be a string, got {event.topic!r}")
            )
            return
        if self._state.ephemeral.matches(event.topic):
            self._stats.filtered += 1
            return
        if not isinstance(event.channel_depths, Mapping):
            self._malformed(
                "topic-channel-depth",
                TypeError(f"channel depths must be a mapping, got {event.channel_depths!r}"),
            )
            return

        with self._state.lock:
            now = self._state.now()
            for channel, raw_depth in event.channel_depths.items():
                if not isinstance(channel, str):
                    self._malformed(
                        "topic-channel-depth", TypeError(f"channel must be a string, got {channel!r}")
                    )
                    continue
                if self._state.ephemeral.matches(channel):
                    self._stats.filtered += 1
                    continue

                try:
                    depth = _as_depth(raw_depth)
                except ValueError as e:
                    self._malformed("topic-channel-depth", e)
                    continue

                self._state.channels.touch((event.topic, channel), now)
                self._state.sink.set_gauge(
                    CHANNEL_DEPTH, {"topic": event.topic, "channel": channel}, depth
                )
            self._stats.record("topic-channel-depth")
            self._stats.last_event_at = now

    def _malformed(self, kind: str, error: Exception) -> None:
        self._stats.malformed += 1
        logger.warning("[ROUTER] Malformed %s observation skipped: %s", kind, error)


def _as_depth(value: Any) -> float:
    """Depths must be finite, non-negative numbers."""
    if isinstance(value, bool):
        raise ValueError(f"depth must be a number, got {value!r}")
    try:
        depth = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"depth must be a number, got {value!r}") from None
    if depth != depth or depth in (float("inf"), float("-inf")) or depth < 0:
        raise ValueError(f"depth out of range: {value!r}")
    return depth
