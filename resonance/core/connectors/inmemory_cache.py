"""
InMemoryCache - In-memory cache implementation for unit tests and local runs.

Simple dict-based cache without persistence. Values are JSON round-tripped
on write so hits behave exactly like the Redis backend.
"""

import json
import time
from typing import Optional, Any, Dict, Callable, List
from dataclasses import dataclass

from resonance.core.errors import CacheUnavailableError


@dataclass
class CacheEntry:
    """Cache entry with optional expiration."""
    value: str
    expires_at: Optional[float] = None

    def is_expired(self, now: float) -> bool:
        """Check if entry is expired."""
        if self.expires_at is None:
            return False
        return now >= self.expires_at


class InMemoryCache:
    """
    In-memory cache implementation.

    Implements CacheProtocol for unit testing.
    No persistence - data lost on restart.

    Args:
        clock: Monotonic time source; tests pass a fake clock to expire entries
        available: When False every operation raises CacheUnavailableError
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic, available: bool = True):
        self._store: Dict[str, CacheEntry] = {}
        self._clock = clock
        self.available = available

    def _check_available(self, key: str) -> None:
        if not self.available:
            raise CacheUnavailableError("In-memory cache marked unavailable", data={"key": key})

    async def get(self, key: str) -> Optional[Any]:
        """Get value by key."""
        self._check_available(key)
        entry = self._store.get(key)
        if entry is None:
            return None
        if entry.is_expired(self._clock()):
            del self._store[key]
            return None
        return json.loads(entry.value)

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        """Set value with optional TTL in seconds."""
        self._check_available(key)
        expires_at = None
        if ttl:
            expires_at = self._clock() + ttl
        self._store[key] = CacheEntry(value=json.dumps(value, default=str), expires_at=expires_at)

    async def delete(self, key: str) -> None:
        """Delete key."""
        self._check_available(key)
        self._store.pop(key, None)

    async def ping(self) -> bool:
        """In-memory backend is reachable unless marked otherwise."""
        return self.available

    def keys(self) -> List[str]:
        """Get all non-expired keys."""
        now = self._clock()
        self._store = {k: v for k, v in self._store.items() if not v.is_expired(now)}
        return list(self._store.keys())

    def clear(self) -> None:
        """Clear all cache."""
        self._store.clear()
