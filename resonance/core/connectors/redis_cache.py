"""
RedisCache - Redis-based cache implementation for production.

Values are stored as JSON strings. Connection failures surface as
CacheUnavailableError so callers can fall back to direct computation.
"""

from typing import Optional, Any
import json

import redis.asyncio as aioredis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from resonance.common.logging import get_logger
from resonance.core.errors import CacheUnavailableError

logger = get_logger(__name__)

_UNAVAILABLE = (RedisConnectionError, RedisTimeoutError, OSError)


class RedisCache:
    """
    Redis-based cache implementation.

    Implements CacheProtocol for production use.
    Requires Redis server.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        prefix: str = "resonance:",
        socket_timeout: float = 1.0,
        client: Optional[aioredis.Redis] = None,
    ):
        """
        Initialize Redis cache.

        Args:
            url: Redis connection URL (redis://host:port/db)
            prefix: Key prefix for namespacing
            socket_timeout: Seconds before a round-trip counts as unavailable
            client: Pre-built async client (tests, shared pools)
        """
        if client is None:
            if not url:
                raise ValueError("Redis URL required when no client is given")
            client = aioredis.from_url(
                url,
                decode_responses=True,
                socket_timeout=socket_timeout,
                socket_connect_timeout=socket_timeout,
            )
        self.client = client
        self.prefix = prefix
        logger.info("Redis cache initialized", data={"url": url, "prefix": prefix})

    def _key(self, key: str) -> str:
        """Add prefix to key."""
        return f"{self.prefix}{key}"

    async def get(self, key: str) -> Optional[Any]:
        """Get value by key."""
        try:
            value = await self.client.get(self._key(key))
        except _UNAVAILABLE as e:
            raise CacheUnavailableError("Redis get failed", data={"key": key}, cause=e) from e
        if value is None:
            return None
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            logger.warning("Discarding undecodable cache value", data={"key": key})
            return None

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        """Set value with optional TTL in seconds."""
        serialized = json.dumps(value, default=str)
        try:
            if ttl:
                await self.client.setex(self._key(key), ttl, serialized)
            else:
                await self.client.set(self._key(key), serialized)
        except _UNAVAILABLE as e:
            raise CacheUnavailableError("Redis set failed", data={"key": key}, cause=e) from e

    async def delete(self, key: str) -> None:
        """Delete key."""
        try:
            await self.client.delete(self._key(key))
        except _UNAVAILABLE as e:
            raise CacheUnavailableError("Redis delete failed", data={"key": key}, cause=e) from e

    async def ping(self) -> bool:
        """Check Redis connection."""
        try:
            return bool(await self.client.ping())
        except _UNAVAILABLE:
            return False

    async def close(self) -> None:
        """Release the connection pool."""
        await self.client.aclose()
