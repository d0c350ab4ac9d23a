"""Key/value cache collaborator.

The cache is never required for correctness: callers treat every error
as a miss. It is the only state shared between independent requests.
"""
import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional, Tuple

logger = logging.getLogger(__name__)


class CacheError(Exception):
    """Raised by cache backends on storage failures."""
    pass


class ResultCache(ABC):
    """Abstract cache with get/set semantics."""

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """Return the cached value, or None on a miss or expiry."""
        pass

    @abstractmethod
    def set(self, key: str, value: Any, ttl_hint: Optional[float] = None) -> None:
        """Store a value. ``ttl_hint`` is seconds; backends may ignore it."""
        pass


class InMemoryTTLCache(ResultCache):
    """Process-local cache with per-entry expiry.

    Bounded by ``max_entries``; when full, expired entries are purged
    first and then the oldest insertion is evicted.
    """

    def __init__(
        self,
        default_ttl_seconds: float = 300.0,
        max_entries: int = 10000,
        clock: Callable[[], float] = time.monotonic,
    ):
        if default_ttl_seconds <= 0:
            raise ValueError("default_ttl_seconds must be positive")
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")

        self.default_ttl_seconds = default_ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: Dict[str, Tuple[float, Any]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: Any, ttl_hint: Optional[float] = None) -> None:
        ttl = ttl_hint if ttl_hint and ttl_hint > 0 else self.default_ttl_seconds
        with self._lock:
            if key not in self._entries and len(self._entries) >= self.max_entries:
                self._evict()
            self._entries[key] = (self._clock() + ttl, value)

    def __len__(self) -> int:
        return len(self._entries)

    def _evict(self) -> None:
        now = self._clock()
        expired = [k for k, (expires_at, _) in self._entries.items() if now >= expires_at]
        for key in expired:
            del self._entries[key]
        if len(self._entries) >= self.max_entries:
            oldest = next(iter(self._entries))
            del self._entries[oldest]
            logger.debug("CACHE_EVICTED", extra={"reason": "capacity"})
