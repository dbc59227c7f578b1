"""Typed observation events delivered by the cluster observer.

The observer polls nsqlookupd/nsqd and reports what it sees as one of the
events below. Payload fields keep the observer's raw shape (usually dicts
decoded from nsqd JSON); the router validates them with the pydantic
models defined here.

Expected shapes:
    node: {"broadcast_address": "nsqd-1", "http_port": 4151, ...}
    meta: {"message_count": 1234, "depth": 0, ...}
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Union

from pydantic import BaseModel, ConfigDict, Field


class NodeIdentity(BaseModel):
    """Identity of one nsqd node as reported by nsqlookupd."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    broadcast_address: str = Field(..., min_length=1, alias="broadcastAddress")
    http_port: int = Field(..., ge=0, le=65535, alias="httpPort")

    @property
    def key(self) -> str:
        return f"{self.broadcast_address}:{self.http_port}"

    @classmethod
    def parse(cls, raw: Any) -> "NodeIdentity":
        if isinstance(raw, cls):
            return raw
        return cls.model_validate(raw, from_attributes=True)


class TopicMeta(BaseModel):
    """Per-topic stats of one nsqd; only the message count is exported."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    message_count: float = Field(..., ge=0, alias="messageCount")

    @classmethod
    def parse(cls, raw: Any) -> "TopicMeta":
        if isinstance(raw, cls):
            return raw
        return cls.model_validate(raw, from_attributes=True)


@dataclass(frozen=True)
class Ready:
    """Observer finished its initial directory sync."""


@dataclass(frozen=True)
class WatcherError:
    error: Any


@dataclass(frozen=True)
class NodeStatus:
    stats: Any
    node: Any


@dataclass(frozen=True)
class TopicDepth:
    topic: str
    depth: float
    meta: Any
    node: Any


@dataclass(frozen=True)
class TopicChannelDepth:
    topic: str
    depth: float
    channel_depths: Mapping[str, float] = field(default_factory=dict)


Observation = Union[Ready, WatcherError, NodeStatus, TopicDepth, TopicChannelDepth]

# Event names used by emitter-style observers (`observer.on(name, callback)`).
EVENT_READY = "ready"
EVENT_ERROR = "error"
EVENT_STATUS = "status"
EVENT_TOPIC_DEPTH = "topic-depth"
EVENT_TOPIC_CHANNEL_DEPTH = "topic-channel-depth"
