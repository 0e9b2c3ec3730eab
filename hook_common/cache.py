"""
Cache interface used to hold fetched Jenkins job configurations.

MemoryCache is a process-local implementation. While one caller refreshes an
expired entry, other callers keep receiving the stale value for up to
race_condition_ttl seconds instead of all hitting Jenkins at once.
"""

import logging
import threading
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)


class Cache(ABC):
    """Abstract get-or-compute cache with explicit invalidation."""

    @abstractmethod
    def fetch(
        self,
        key: str,
        compute: Callable[[], Any],
        expires_in: float,
        race_condition_ttl: float = 0,
    ) -> Any:
        """
        Return the cached value for key, computing and storing it when missing.

        Args:
            key: Cache key
            compute: Called without arguments to produce a missing value
            expires_in: Seconds the computed value stays fresh
            race_condition_ttl: Seconds an expired value may still be served
                to other callers while one caller recomputes it

        Returns:
            Cached or freshly computed value
        """
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove key from the cache (no error if absent)."""
        pass


@dataclass
class _Entry:
    value: Any
    expires_at: float


class MemoryCache(Cache):
    """
    Thread-safe in-memory cache.

    The lock only guards the dictionary; compute() always runs outside it.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._entries: dict[str, _Entry] = {}
        self._lock = threading.Lock()
        self._clock = clock

    def fetch(
        self,
        key: str,
        compute: Callable[[], Any],
        expires_in: float,
        race_condition_ttl: float = 0,
    ) -> Any:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None:
                if now < entry.expires_at:
                    return entry.value
                if race_condition_ttl > 0 and now < entry.expires_at + race_condition_ttl:
                    # Extend the stale entry so concurrent callers keep using it
                    # while this caller refreshes.
                    entry.expires_at = now + race_condition_ttl
                else:
                    del self._entries[key]

        logger.debug(f"Cache miss for {key}")
        value = compute()

        with self._lock:
            self._entries[key] = _Entry(value=value, expires_at=self._clock() + expires_in)
        return value

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)
