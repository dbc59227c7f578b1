"""Janitor: periodic eviction of entities that stopped reporting.

On every tick the three ledgers are scanned; expired keys are removed
together with the Prometheus series they fed, so stale label
combinations disappear from the scrape output.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Hashable, List, Optional

from .liveness import LivenessLedger
from .metrics import CHANNEL_DEPTH, TOPIC_DEPTH, TOPIC_MESSAGE_COUNT
from .state import ExporterState

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 15.0


@dataclass
class TickResult:
    """Keys evicted by one tick."""
    now: float
    nodes: List[Hashable] = field(default_factory=list)
    channels: List[Hashable] = field(default_factory=list)
    topics: List[Hashable] = field(default_factory=list)
    failures: int = 0

    @property
    def evicted(self) -> int:
        return len(self.nodes) + len(self.channels) + len(self.topics)


@dataclass
class JanitorStats:
    ticks: int = 0
    ticks_failed: int = 0
    ticks_skipped: int = 0
    nodes_evicted: int = 0
    channels_evicted: int = 0
    topics_evicted: int = 0
    eviction_failures: int = 0
    last_tick_at: Optional[float] = None
    last_tick_duration_ms: Optional[float] = None


class Janitor:
    """Evicts expired ledger entries and retracts their metric series.

    Uso:
        janitor = Janitor(state, interval_seconds=15)
        await janitor.start()
        ...
        await janitor.stop()
    """

    def __init__(
        self,
        state: ExporterState,
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
    ):
        if interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be > 0, got {interval_seconds}")
        self._state = state
        self._interval = float(interval_seconds)
        self._running = False
        self._task: Optional[asyncio.Task] = None
        self._stats = JanitorStats()

        shortest_ttl = min(state.nodes.ttl_seconds, state.topics.ttl_seconds)
        if self._interval > shortest_ttl / 2:
            logger.warning(
                "[JANITOR] interval %.1fs is longer than half the shortest TTL (%.1fs), "
                "expired entries will linger",
                self._interval, shortest_ttl,
            )

        logger.info(
            "Janitor initialized: interval=%.1fs node_ttl=%.1fs topic_channel_ttl=%.1fs",
            self._interval, state.nodes.ttl_seconds, state.topics.ttl_seconds,
        )

    @property
    def interval_seconds(self) -> float:
        return self._interval

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the periodic task on the running loop."""
        if self._running:
            return

        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        logger.info("Janitor started")

    async def stop(self) -> None:
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Janitor stopped")

    async def _run_loop(self) -> None:
        delay = self._interval
        while self._running:
            try:
                await asyncio.sleep(delay)
            except asyncio.CancelledError:
                break

            started = time.perf_counter()
            try:
                self.tick()
            except Exception as e:
                self._stats.ticks_failed += 1
                logger.exception("[JANITOR] tick failed: %s", e)
            elapsed = time.perf_counter() - started
            delay = self._next_delay(elapsed)

    def _next_delay(self, elapsed: float) -> float:
        """Time to the next tick boundary; overrun ticks are skipped, not queued."""
        if elapsed < self._interval:
            return self._interval - elapsed
        skipped = int(elapsed // self._interval)
        self._stats.ticks_skipped += skipped
        logger.warning(
            "[JANITOR] tick took %.3fs (interval %.1fs), skipping %d tick(s)",
            elapsed, self._interval, skipped,
        )
        return self._interval - (elapsed % self._interval)

    def tick(self, now: Optional[float] = None) -> TickResult:
        """Run one eviction pass at `now` (defaults to the state clock)."""
        started = time.perf_counter()
        with self._state.lock:
            if now is None:
                now = self._state.now()
            result = TickResult(now=now)

            result.nodes = self._evict(self._state.nodes, now, result)
            self._state.publish_node_count()

            result.channels = self._evict(
                self._state.channels, now, result, self._retract_channel
            )
            result.topics = self._evict(
                self._state.topics, now, result, self._retract_topic
            )

        self._stats.ticks += 1
        self._stats.nodes_evicted += len(result.nodes)
        self._stats.channels_evicted += len(result.channels)
        self._stats.topics_evicted += len(result.topics)
        self._stats.eviction_failures += result.failures
        self._stats.last_tick_at = now
        self._stats.last_tick_duration_ms = (time.perf_counter() - started) * 1000
        return result

    def _evict(
        self,
        ledger: LivenessLedger,
        now: float,
        result: TickResult,
        retract: Optional[Callable[[Hashable], None]] = None,
    ) -> List[Hashable]:
        expired = ledger.expired(now)
        if not expired:
            return []

        logger.info("[CLEANUP] delete all timed out %s: %s", ledger.name, expired)

        evicted = []
        for key in expired:
            try:
                if retract is not None:
                    retract(key)
                ledger.remove(key)
                evicted.append(key)
            except Exception as e:
                result.failures += 1
                logger.exception("[CLEANUP] failed to evict %s key=%s: %s", ledger.name, key, e)
        return evicted

    def _retract_channel(self, key: Hashable) -> None:
        topic, channel = key
        self._state.sink.remove_series(CHANNEL_DEPTH, {"topic": topic, "channel": channel})

    def _retract_topic(self, key: Hashable) -> None:
        topic, node = key
        labels = {"topic": topic, "node": node}
        # Both series are attempted; the first failure is re-raised after.
        first_error: Optional[Exception] = None
        for name in (TOPIC_DEPTH, TOPIC_MESSAGE_COUNT):
            try:
                self._state.sink.remove_series(name, labels)
            except Exception as e:
                if first_error is None:
                    first_error = e
        if first_error is not None:
            raise first_error

    def get_stats(self) -> dict:
        return {
            "running": self._running,
            "interval_seconds": self._interval,
            "ticks": self._stats.ticks,
            "ticks_failed": self._stats.ticks_failed,
            "ticks_skipped": self._stats.ticks_skipped,
            "nodes_evicted": self._stats.nodes_evicted,
            "channels_evicted": self._stats.channels_evicted,
            "topics_evicted": self._stats.topics_evicted,
            "eviction_failures": self._stats.eviction_failures,
            "last_tick_at": self._stats.last_tick_at,
            "last_tick_duration_ms": self._stats.last_tick_duration_ms,
        }
