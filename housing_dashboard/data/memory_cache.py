"""Short-lived in-process cache of decoded series.

Never the source of truth: entries expire after the TTL and are dropped on the
next lookup.
"""

import time
from typing import Any, Callable


DEFAULT_TTL_SECONDS = 5 * 60


class MemoryCache:
    """TTL map keyed by series id (or any string key)."""

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, tuple[Any, float]] = {}

    def get(self, key: str) -> Any | None:
        """Return the cached value if younger than the TTL, else evict it."""
        entry = self._entries.get(key)
        if entry is None:
            return None

        value, cached_at = entry
        if self._clock() - cached_at > self.ttl_seconds:
            del self._entries[key]
            return None
        return value

    def put(self, key: str, value: Any) -> None:
        self._entries[key] = (value, self._clock())

    def invalidate(self, key: str) -> None:
        self._entries.pop(key, None)

    def prune(self) -> int:
        """Drop every expired entry. Returns the number removed."""
        now = self._clock()
        expired = [k for k, (_, ts) in self._entries.items() if now - ts > self.ttl_seconds]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def __len__(self) -> int:
        return len(self._entries)
