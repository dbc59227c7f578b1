"""Delivery of observer events onto the exporter's event loop.

Observers either call the router directly or push typed events into an
ObservationPump. The pump drains an asyncio.Queue on the same loop that
runs the janitor, so observation handling and janitor ticks never
interleave.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Optional

from .events import (
    EVENT_ERROR,
    EVENT_READY,
    EVENT_STATUS,
    EVENT_TOPIC_CHANNEL_DEPTH,
    EVENT_TOPIC_DEPTH,
    NodeStatus,
    Observation,
    Ready,
    TopicChannelDepth,
    TopicDepth,
    WatcherError,
)
from .router import ObservationRouter

logger = logging.getLogger(__name__)

ObservationHandler = Callable[[Observation], Any]


class ObservationPump:
    """Queue of observations consumed by a background task.

    Uso:
        pump = ObservationPump(router)
        await pump.start()
        pump.submit(NodeStatus(stats, node))
        ...
        await pump.stop()
    """

    DEFAULT_MAX_QUEUE_SIZE = 10000

    def __init__(
        self,
        router: ObservationRouter,
        max_queue_size: int = DEFAULT_MAX_QUEUE_SIZE,
    ):
        self._router = router
        self._max_queue_size = max_queue_size
        self._queue: Optional[asyncio.Queue] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._task: Optional[asyncio.Task] = None
        self._running = False

        self._submitted = 0
        self._processed = 0
        self._dropped = 0
        self._failed = 0

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        if self._running:
            return

        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue(maxsize=self._max_queue_size)
        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        logger.info("ObservationPump started: max_queue_size=%d", self._max_queue_size)

    async def stop(self) -> None:
        """Cancel the consumer; queued events are discarded."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        discarded = self._queue.qsize() if self._queue is not None else 0
        logger.info(
            "ObservationPump stopped: processed=%d dropped=%d failed=%d discarded=%d",
            self._processed, self._dropped, self._failed, discarded,
        )

    def submit(self, event: Observation) -> bool:
        """Enqueue from the loop thread. Returns False if the event was dropped."""
        if self._queue is None:
            raise RuntimeError("ObservationPump is not started")
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            self._dropped += 1
            logger.warning(
                "[PUMP] queue full (%d), dropping %s", self._max_queue_size, type(event).__name__
            )
            return False
        self._submitted += 1
        return True

    def submit_threadsafe(self, event: Observation) -> None:
        """Enqueue from an observer thread."""
        if self._loop is None:
            raise RuntimeError("ObservationPump is not started")
        self._loop.call_soon_threadsafe(self.submit, event)

    async def join(self) -> None:
        """Wait until every queued event has been handled."""
        if self._queue is not None:
            await self._queue.join()

    async def _run_loop(self) -> None:
        while self._running:
            event = await self._queue.get()
            try:
                self._router.handle(event)
                self._processed += 1
            except Exception as e:
                self._failed += 1
                logger.exception("[PUMP] failed to handle %s: %s", type(event).__name__, e)
            finally:
                self._queue.task_done()

    @property
    def stats(self) -> dict:
        return {
            "running": self._running,
            "queue_size": self._queue.qsize() if self._queue is not None else 0,
            "max_queue_size": self._max_queue_size,
            "submitted": self._submitted,
            "processed": self._processed,
            "dropped": self._dropped,
            "failed": self._failed,
        }


def bind_emitter(emitter: Any, handler: ObservationHandler) -> None:
    """Register callbacks on an emitter-style observer.

    The observer must expose `on(event_name, callback)` and fire the
    nsq-watch event names with positional arguments:

        ready()
        error(*args)
        status(stats, node)
        topic-depth(topic, depth, meta, node)
        topic-channel-depth(topic, depth, channel_depths)
    """

    def on_error(*args):
        handler(WatcherError(args[0] if len(args) == 1 else args))

    emitter.on(EVENT_READY, lambda *args: handler(Ready()))
    emitter.on(EVENT_ERROR, on_error)
    emitter.on(EVENT_STATUS, lambda stats, node: handler(NodeStatus(stats, node)))
    emitter.on(
        EVENT_TOPIC_DEPTH,
        lambda topic, depth, meta, node: handler(TopicDepth(topic, depth, meta, node)),
    )
    emitter.on(
        EVENT_TOPIC_CHANNEL_DEPTH,
        lambda topic, depth, channel_depths: handler(
            TopicChannelDepth(topic, depth, channel_depths)
        ),
    )
