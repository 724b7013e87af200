"""
Cache Protocol - Interface for cache backends.

Implementations:
- RedisCache (resonance.core.connectors.redis_cache)
- InMemoryCache (resonance.core.connectors.inmemory_cache)

Backends raise CacheUnavailableError when the server cannot be reached;
callers decide whether that is fatal.
"""

from typing import Protocol, Optional, Any, runtime_checkable


@runtime_checkable
class CacheProtocol(Protocol):
    """Protocol for async key-value cache backends (DI interface)."""

    async def get(self, key: str) -> Optional[Any]:
        """Get value by key."""
        ...

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        """Set value with optional TTL in seconds."""
        ...

    async def delete(self, key: str) -> None:
        """Delete key."""
        ...

    async def ping(self) -> bool:
        """Check backend connectivity."""
        ...
