"""In-memory key/value cache with passive time-to-live expiry."""

import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Optional, TypeVar

from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="cache/ttl_cache")

T = TypeVar("T")


@dataclass
class CacheEntry(Generic[T]):
    """Cached value with the monotonic time it was stored."""
    value: T
    stored_at: float


class TTLCache(Generic[T]):
    """TTL-aware cache for single-threaded (event loop) use.

    Reads never delete: an expired entry is reported as absent and stays in
    place until the next `set` for the same key overwrites it.
    """

    def __init__(self, ttl_seconds: float = 10.0, clock: Callable[[], float] = time.monotonic) -> None:
        """Initialize the cache with a TTL (seconds) and a monotonic clock."""
        logger.debug("Initializing TTLCache", extra={"ttl_seconds": ttl_seconds})
        self.ttl = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, CacheEntry[T]] = {}

    def _expired(self, entry: CacheEntry[T]) -> bool:
        """Return True once the entry's age reaches the TTL."""
        return self._clock() - entry.stored_at >= self.ttl

    def set(self, key: str, value: T) -> None:
        """Store `value` under `key`, replacing any prior entry."""
        self._entries[key] = CacheEntry(value=value, stored_at=self._clock())

    def get(self, key: str) -> Optional[T]:
        """Return the cached value, or None if missing or expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._expired(entry):
            logger.debug("Cache entry expired", extra={"key": key})
            return None
        return entry.value

    def __contains__(self, key: Any) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        """Number of stored entries, expired ones included."""
        return len(self._entries)
