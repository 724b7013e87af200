"""
SimilarityCache - read-through cache in front of SimilarityQueryEngine.

Key space:
    similarity:{track_id}:{method}:{limit}
    similarity:{track_id}:combined@{s}-{a}-{c}:{limit}   (non-default weights)

Staleness is bounded by TTL only. When the backend is unreachable the
request is served straight from the engine and the failure is logged, never
raised. Concurrent misses for one key may each recompute.
"""

from typing import Optional

from resonance.common.logging import get_logger
from resonance.core.config import Settings, get_settings
from resonance.core.errors import CacheUnavailableError
from resonance.core.interfaces import CacheProtocol
from resonance.core.monitoring import record_cache_error, record_cache_hit, record_cache_miss

from .engine import SimilarityQueryEngine
from .models import SimilarityMethod, SimilarityRequest, SimilarityResult, SimilarityWeights

logger = get_logger(__name__)

KEY_PREFIX = "similarity"


class SimilarityCache:
    """Cache-aside wrapper owning TTL and key policy for similarity results."""

    def __init__(
        self,
        engine: SimilarityQueryEngine,
        cache: CacheProtocol,
        settings: Optional[Settings] = None,
    ):
        """
        Args:
            engine: Query engine used on a miss
            cache: Cache backend (Redis in production)
            settings: TTL source (default: environment)
        """
        settings = settings or get_settings()
        self.engine = engine
        self.cache = cache
        self.ttl = settings.similarity_cache_ttl

    def cache_key(self, request: SimilarityRequest) -> str:
        """Key for an already validated request."""
        method = request.method.value
        if request.method is SimilarityMethod.COMBINED and request.weights is not None:
            fingerprint = request.weights.fingerprint()
            if fingerprint != self.engine.default_weights.fingerprint():
                method = f"{method}@{fingerprint}"
        return f"{KEY_PREFIX}:{request.track_id}:{method}:{request.limit}"

    async def similar(
        self,
        track_id: str,
        method: SimilarityMethod,
        limit: int,
        weights: Optional[SimilarityWeights] = None,
    ) -> SimilarityResult:
        return await self.get(SimilarityRequest(track_id, SimilarityMethod(method), limit, weights))

    async def get(self, request: SimilarityRequest) -> SimilarityResult:
        """Return cached result for the request, computing and storing it on a miss."""
        request = request.validated(self.engine.max_results)
        key = self.cache_key(request)

        cached = await self._read(key)
        if cached is not None:
            record_cache_hit()
            logger.debug("Similarity cache hit", data={"key": key})
            return cached

        record_cache_miss()
        result = await self.engine.execute(request)
        await self._write(key, result)
        return result

    async def invalidate(self, request: SimilarityRequest) -> None:
        """Drop one cached result. Best effort: an unreachable backend is logged."""
        key = self.cache_key(request.validated(self.engine.max_results))
        try:
            await self.cache.delete(key)
        except CacheUnavailableError:
            record_cache_error("delete")
            logger.warning("Similarity cache unavailable, entry not invalidated", data={"key": key})

    async def _read(self, key: str) -> Optional[SimilarityResult]:
        try:
            payload = await self.cache.get(key)
        except CacheUnavailableError:
            record_cache_error("get")
            logger.warning("Similarity cache unavailable, serving uncached result", data={"key": key})
            return None
        if payload is None:
            return None
        try:
            return SimilarityResult.from_dict(payload)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Ignoring malformed similarity cache entry", data={"key": key, "error": str(e)})
            return None

    async def _write(self, key: str, result: SimilarityResult) -> None:
        try:
            await self.cache.set(key, result.to_dict(), ttl=self.ttl)
        except CacheUnavailableError:
            record_cache_error("set")
            logger.warning("Similarity cache unavailable, result not stored", data={"key": key})
