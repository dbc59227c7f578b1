"""CLI entry point: serve the exporter's scrape endpoint."""

from __future__ import annotations

import argparse
import logging
import signal
import sys
from typing import Optional, Sequence

import uvicorn

from common.config import ConfigError, get_settings

from .main import create_app

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="NSQ cluster metrics exporter for Prometheus")
    p.add_argument("--port", type=int, default=None, help="port to serve prometheus metrics")
    p.add_argument("--node-ttl", type=int, default=None,
                   help="seconds a node is assumed alive without hearing from it")
    p.add_argument("--topic-channel-ttl", type=int, default=None,
                   help="seconds a topic/channel is assumed alive without hearing from it")
    p.add_argument("--janitor-interval", type=float, default=None,
                   help="seconds between eviction passes")
    eph = p.add_mutually_exclusive_group()
    eph.add_argument("--ignore-ephemeral", dest="ignore_ephemeral", action="store_true", default=None,
                     help="ignore topics and channels ending with the ephemeral suffix")
    eph.add_argument("--keep-ephemeral", dest="ignore_ephemeral", action="store_false",
                     help="export ephemeral topics and channels too")
    p.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING, ERROR")
    return p.parse_args(argv)


def _install_signal_logging() -> None:
    # uvicorn replaces these while serving.
    def on_signal(signum, frame):
        logger.info("[PROCESS] received %s, stopping application", signal.Signals(signum).name)
        raise KeyboardInterrupt

    signal.signal(signal.SIGINT, on_signal)
    signal.signal(signal.SIGTERM, on_signal)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)

    try:
        settings = get_settings().with_overrides(
            port=args.port,
            node_ttl=args.node_ttl,
            topic_channel_ttl=args.topic_channel_ttl,
            janitor_interval=args.janitor_interval,
            ignore_ephemeral=args.ignore_ephemeral,
            log_level=args.log_level.upper() if args.log_level else None,
        )
    except ConfigError as e:
        print(f"invalid configuration: {e}", file=sys.stderr)
        return 2

    logging.basicConfig(
        level=settings.log_level_value,
        format="%(asctime)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler()],
    )
    logger.info("NSQ exporter starting")
    logger.info("Config: %s", settings.describe())

    _install_signal_logging()
    app = create_app(settings)
    try:
        uvicorn.run(app, host="0.0.0.0", port=settings.port, log_level=settings.log_level.lower())
    except KeyboardInterrupt:
        logger.info("[PROCESS] stopped")
    return 0


if __name__ == "__main__":
    sys.exit(main())
