from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI, Request, Response
from prometheus_client import CONTENT_TYPE_LATEST

from common.config import Settings, get_settings

from .janitor import Janitor
from .observations import EphemeralFilter, ObservationPump, ObservationRouter, bind_emitter
from .state import ExporterState

logger = logging.getLogger(__name__)


def build_state(settings: Settings) -> ExporterState:
    ephemeral = EphemeralFilter(
        enabled=settings.ignore_ephemeral,
        suffix=settings.ephemeral_suffix,
    )
    return ExporterState.create(
        node_ttl=settings.node_ttl,
        topic_channel_ttl=settings.topic_channel_ttl,
        ephemeral=ephemeral,
        metrics_namespace=settings.metrics_namespace,
    )


def create_app(
    settings: Optional[Settings] = None,
    state: Optional[ExporterState] = None,
    observer: Optional[Any] = None,
) -> FastAPI:
    """Build the scrape app.

    `observer` is any emitter-style cluster observer (`on(name, callback)`);
    its events are queued onto the app loop. Observers with `start()` /
    `stop()` are started and stopped with the app.
    """
    settings = settings or get_settings()
    state = state or build_state(settings)
    router = ObservationRouter(state)
    pump = ObservationPump(router)
    janitor = Janitor(state, interval_seconds=settings.janitor_interval)
    observer_bound = False

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        nonlocal observer_bound
        logger.info("[HTTP] Settings: %s", settings.describe())
        await pump.start()
        await janitor.start()
        if observer is not None:
            # Handlers stay registered across restarts of the same app.
            if not observer_bound:
                bind_emitter(observer, pump.submit_threadsafe)
                observer_bound = True
            if hasattr(observer, "start"):
                observer.start()
        try:
            yield
        finally:
            if observer is not None and hasattr(observer, "stop"):
                observer.stop()
            await janitor.stop()
            await pump.stop()

    app = FastAPI(title="NSQ Prometheus Exporter", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.exporter = state
    app.state.router = router
    app.state.pump = pump
    app.state.janitor = janitor

    @app.get("/metrics")
    def metrics(request: Request) -> Response:
        body = request.app.state.exporter.sink.render()
        return Response(content=body, media_type=CONTENT_TYPE_LATEST)

    # Prometheus is usually pointed at /metrics, but any scrape of / works too.
    app.add_api_route("/", metrics, methods=["GET"], include_in_schema=False)

    @app.get("/health")
    def health(request: Request):
        s = request.app.state
        return {
            "status": "ok",
            "ledgers": s.exporter.snapshot(),
            "router": s.router.stats.to_dict(),
            "pump": s.pump.stats,
            "janitor": s.janitor.get_stats(),
        }

    return app
