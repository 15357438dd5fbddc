"""Short-lived result cache for expensive snapshot builds."""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 30.0


@dataclass
class CacheEntry:
    """Cached artifact stamped with the clock reading at build time."""

    value: Any
    built_at: float


class ResultCache:
    """One artifact per key, fresh for ``ttl_seconds`` after it was built.

    Not an LRU: callers are expected to use a small fixed set of keys.
    ``get_or_build`` serializes builds per key, so concurrent misses share
    a single rebuild.
    """

    def __init__(self, ttl_seconds: float = DEFAULT_TTL_SECONDS,
                 clock: Callable[[], float] = time.monotonic):
        if ttl_seconds <= 0:
            raise ConfigurationError(f"Cache ttl must be positive, got {ttl_seconds}")
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

        # Stats
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def _is_fresh(self, entry: CacheEntry) -> bool:
        return self._clock() - entry.built_at < self.ttl_seconds

    def get(self, key: str) -> Optional[Any]:
        """Return the cached value if still fresh, else None."""
        entry = self._entries.get(key)
        if entry is not None and self._is_fresh(entry):
            return entry.value
        return None

    def set(self, key: str, value: Any) -> None:
        self._entries[key] = CacheEntry(value=value, built_at=self._clock())

    def invalidate(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    async def get_or_build(self, key: str, builder: Callable[[], Awaitable[Any]]) -> Any:
        """Return the fresh cached value for ``key`` or await ``builder`` to make one."""
        entry = self._entries.get(key)
        if entry is not None and self._is_fresh(entry):
            self.hits += 1
            logger.debug(f"Cache hit for '{key}'")
            return entry.value

        lock = self._locks.setdefault(key, asyncio.Lock())
        async with lock:
            # Another caller may have rebuilt while we waited
            entry = self._entries.get(key)
            if entry is not None and self._is_fresh(entry):
                self.hits += 1
                return entry.value

            self.misses += 1
            logger.debug(f"Cache miss for '{key}', rebuilding")
            value = await builder()
            self.set(key, value)
            return value
