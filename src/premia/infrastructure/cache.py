"""TTL-based in-memory cache.

Used by the price source for short-lived previous-close and option-chain
entries. The clock is injectable so expiry can be tested without sleeping.
"""

import time
from collections.abc import Callable
from typing import Any


class TTLCache:
    """Simple time-to-live cache backed by a plain dict.

    Not thread-safe; intended for use from a single event loop.
    """

    def __init__(
        self,
        ttl_seconds: float = 300,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._store: dict[str, tuple[Any, float]] = {}

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def get(self, key: str) -> Any | None:
        """Return cached value if still within TTL, else None."""
        entry = self._store.get(key)
        if entry is None:
            return None
        value, ts = entry
        if self._clock() - ts < self._ttl:
            return value
        del self._store[key]
        return None

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def set(self, key: str, value: Any) -> None:
        """Store value with current timestamp."""
        self._store[key] = (value, self._clock())

    def clear(self) -> None:
        """Invalidate all cached entries."""
        self._store.clear()

    def invalidate(self, key: str) -> None:
        """Invalidate a single cache entry."""
        self._store.pop(key, None)
