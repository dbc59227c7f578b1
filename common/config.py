from __future__ import annotations

import logging
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Optional, Tuple

from dotenv import load_dotenv

_TRUE = ("1", "true", "yes", "on")
_FALSE = ("0", "false", "no", "off")
_LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


class ConfigError(ValueError):
    """A setting is missing or has an invalid value."""

    def __init__(self, setting: str, message: str):
        super().__init__(f"{setting}: {message}")
        self.setting = setting


def _default_env_file() -> str:
    return str(Path.cwd() / ".env")


@dataclass(frozen=True)
class Settings:
    port: int = 3000
    lookupd_http_addresses: Tuple[str, ...] = ()
    # Only consumed by the cluster observer: it lists topics with this
    # prefix and strips it from topic names.
    namespace: Optional[str] = None
    nsqd_poll_interval: int = 30
    lookupd_poll_interval: int = 30

    ignore_ephemeral: bool = True
    ephemeral_suffix: str = "#ephemeral"
    node_ttl: int = 60
    topic_channel_ttl: int = 120
    janitor_interval: float = 15.0

    metrics_namespace: str = "nsq"
    log_level: str = "INFO"

    def __post_init__(self):
        _check_port("port", self.port)
        for name in ("nsqd_poll_interval", "lookupd_poll_interval", "node_ttl", "topic_channel_ttl"):
            _check_nat(name, getattr(self, name))
        if self.janitor_interval <= 0:
            raise ConfigError("janitor_interval", f"must be > 0, got {self.janitor_interval}")
        if self.ignore_ephemeral and not self.ephemeral_suffix:
            raise ConfigError("ephemeral_suffix", "must not be empty when ignore_ephemeral is on")
        if self.log_level.upper() not in _LOG_LEVELS:
            raise ConfigError("log_level", f"must be one of {', '.join(_LOG_LEVELS)}")
        for address in self.lookupd_http_addresses:
            _check_server_address("lookupd_http_addresses", address)

    def with_overrides(self, **overrides) -> "Settings":
        """Copy with the non-None overrides applied (CLI flags)."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    def describe(self) -> str:
        return (
            f"port={self.port} lookupd={','.join(self.lookupd_http_addresses) or '-'} "
            f"namespace={self.namespace or '-'} nsqd_poll={self.nsqd_poll_interval}s "
            f"lookupd_poll={self.lookupd_poll_interval}s ignore_ephemeral={self.ignore_ephemeral} "
            f"node_ttl={self.node_ttl}s topic_channel_ttl={self.topic_channel_ttl}s "
            f"janitor_interval={self.janitor_interval}s metrics_namespace={self.metrics_namespace}"
        )

    @property
    def log_level_value(self) -> int:
        return getattr(logging, self.log_level.upper())


def _check_port(setting: str, value: int) -> None:
    if not 0 <= value <= 65535:
        raise ConfigError(setting, f"must be a port number, got {value}")


def _check_nat(setting: str, value: int) -> None:
    if value < 0:
        raise ConfigError(setting, f"must be a natural number, got {value}")


def _check_server_address(setting: str, value: str) -> None:
    parts = value.split(":")
    if len(parts) != 2 or not parts[0] or not parts[1].isdigit():
        raise ConfigError(setting, f"must be a list of hostname:port combinations, got {value!r}")


def _env_int(name: str, setting: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(setting, f"{name}={raw!r} is not an integer") from None


def _env_float(name: str, setting: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(setting, f"{name}={raw!r} is not a number") from None


def _env_bool(name: str, setting: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    v = raw.strip().lower()
    if v in _TRUE:
        return True
    if v in _FALSE:
        return False
    raise ConfigError(setting, f"{name}={raw!r} is not a boolean")


def parse_server_list(raw: Optional[str]) -> Tuple[str, ...]:
    """'lookup-one:4161,lookup-two:4161' -> ('lookup-one:4161', 'lookup-two:4161')"""
    if not raw:
        return ()
    return tuple(item.strip() for item in raw.split(",") if item.strip())


def get_settings() -> Settings:
    # Load env file (if present) but still allow overriding via real environment variables.
    env_file = os.getenv("NSQ_EXPORTER_ENV_FILE", _default_env_file())
    if env_file and Path(env_file).exists():
        load_dotenv(env_file, override=False)

    return Settings(
        port=_env_int("PORT", "port", 3000),
        lookupd_http_addresses=parse_server_list(os.getenv("LOOKUPD_HTTP_ADDRESSES")),
        namespace=os.getenv("TOPIC_NAMESPACE") or None,
        nsqd_poll_interval=_env_int("NSQD_POLL_INTERVAL", "nsqd_poll_interval", 30),
        lookupd_poll_interval=_env_int("LOOKUPD_POLL_INTERVAL", "lookupd_poll_interval", 30),
        ignore_ephemeral=_env_bool("IGNORE_EPHEMERAL", "ignore_ephemeral", True),
        ephemeral_suffix=os.getenv("EPHEMERAL_SUFFIX", "#ephemeral"),
        node_ttl=_env_int("NODE_TTL", "node_ttl", 60),
        topic_channel_ttl=_env_int("TOPIC_CHANNEL_TTL", "topic_channel_ttl", 120),
        janitor_interval=_env_float("JANITOR_INTERVAL", "janitor_interval", 15.0),
        metrics_namespace=os.getenv("METRICS_NAMESPACE", "nsq"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )
