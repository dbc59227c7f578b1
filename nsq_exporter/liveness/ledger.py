"""Liveness ledger: last-seen timestamps per entity.

Each ledger maps an entity key (node, topic-on-node or topic/channel combo)
to the monotonic time it was last observed. The janitor uses `expired()`
to find entries that stopped reporting.
"""

from __future__ import annotations

import logging
from typing import Dict, Hashable, Iterator, List, Optional, Tuple

logger = logging.getLogger(__name__)


class LivenessLedger:
    """Mapping of entity key -> last-seen timestamp with a fixed TTL.

    Keys are refreshed on every observation (overwrite, never accumulate).
    A timestamp older than the stored one is ignored so the last-seen
    value never moves backwards.
    """

    def __init__(self, name: str, ttl_seconds: float):
        if ttl_seconds < 0:
            raise ValueError(f"ttl_seconds must be >= 0, got {ttl_seconds}")
        self.name = name
        self.ttl_seconds = float(ttl_seconds)
        self._entries: Dict[Hashable, float] = {}
        self._stale_touches = 0

    def touch(self, key: Hashable, now: float) -> None:
        """Insert or refresh `key` with timestamp `now`."""
        previous = self._entries.get(key)
        if previous is not None and now < previous:
            self._stale_touches += 1
            logger.debug(
                "[LEDGER] %s ignoring out-of-order touch key=%s now=%.3f last_seen=%.3f",
                self.name, key, now, previous,
            )
            return
        self._entries[key] = now

    def remove(self, key: Hashable) -> None:
        self._entries.pop(key, None)

    def last_seen(self, key: Hashable) -> Optional[float]:
        return self._entries.get(key)

    def all_entries(self) -> Iterator[Tuple[Hashable, float]]:
        """Iterate over a snapshot of (key, last_seen) pairs.

        The snapshot lets callers remove keys while scanning.
        """
        return iter(list(self._entries.items()))

    def expired(self, now: float) -> List[Hashable]:
        """Keys whose age at `now` reached the TTL."""
        return [
            key for key, last_seen in self.all_entries()
            if now - last_seen >= self.ttl_seconds
        ]

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: Hashable) -> bool:
        return key in self._entries

    @property
    def stats(self) -> dict:
        return {
            "name": self.name,
            "size": len(self._entries),
            "ttl_seconds": self.ttl_seconds,
            "stale_touches": self._stale_touches,
        }
