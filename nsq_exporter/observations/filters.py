"""Ephemeral topic/channel filter."""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_EPHEMERAL_SUFFIX = "#ephemeral"


@dataclass(frozen=True)
class EphemeralFilter:
    """Suffix match on topic and channel names.

    nsqd does not buffer `#ephemeral` topics/channels to disk, so they are
    usually left out of the exported metrics.
    """

    enabled: bool = True
    suffix: str = DEFAULT_EPHEMERAL_SUFFIX

    def __post_init__(self):
        if self.enabled and not self.suffix:
            raise ValueError("ephemeral suffix must not be empty when the filter is enabled")

    def matches(self, name: str) -> bool:
        return self.enabled and name.endswith(self.suffix)

    @classmethod
    def disabled(cls) -> "EphemeralFilter":
        return cls(enabled=False)
