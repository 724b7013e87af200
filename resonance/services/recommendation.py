"""
RecommendationService - caller-facing facade over the engine modules.

    service = RecommendationService.from_settings()
    result = await service.similar("track-1", SimilarityMethod.COMBINED, 20)
    clusters = await service.cluster_user_taste("user-1")
    entry = await service.predict_next("user-1", "track-1")
    await service.close()

Clustering is CPU-bound and runs on a dedicated thread pool so it never
competes with the default executor used by the I/O connectors.
"""

import asyncio
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from typing import List, Optional, Sequence

from resonance.common.logging import get_logger
from resonance.core.config import Settings, create_cache_client, get_settings
from resonance.core.interfaces import CacheProtocol, CatalogStore, ListeningHistoryProvider
from resonance.modules.prefetch import PrefetchEntry, PrefetchMode, PrefetchPredictor
from resonance.modules.similarity import (
    SimilarityCache,
    SimilarityMethod,
    SimilarityQueryEngine,
    SimilarityResult,
    SimilarityWeights,
)
from resonance.modules.taste import TasteCluster, TasteClusteringEngine

logger = get_logger(__name__)


class RecommendationService:
    """Wires catalog, history and cache into the similarity, taste and prefetch modules."""

    def __init__(
        self,
        catalog: CatalogStore,
        history: ListeningHistoryProvider,
        cache: CacheProtocol,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.catalog = catalog
        self.history = history
        self.cache = cache

        self.engine = SimilarityQueryEngine(catalog, self.settings)
        self.similarity = SimilarityCache(self.engine, cache, self.settings)
        self.clustering = TasteClusteringEngine(self.settings)
        self.prefetch = PrefetchPredictor(self.similarity, catalog, history, cache, self.settings)

        self._executor = ThreadPoolExecutor(
            max_workers=max(1, self.settings.cluster_workers),
            thread_name_prefix="taste-clustering",
        )

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "RecommendationService":
        """Build with the SQLite catalog (also the history provider) and the configured cache."""
        from resonance.core.connectors import SQLiteCatalog

        settings = settings or get_settings()
        catalog = SQLiteCatalog(settings.catalog_db_path)
        cache = create_cache_client(
            settings.cache_backend, url=settings.redis_url, prefix=settings.cache_prefix
        )
        return cls(catalog, catalog, cache, settings)

    async def similar(
        self,
        track_id: str,
        method: SimilarityMethod = SimilarityMethod.COMBINED,
        limit: int = 10,
        weights: Optional[SimilarityWeights] = None,
    ) -> SimilarityResult:
        return await self.similarity.similar(track_id, method, limit, weights)

    async def cluster_user_taste(self, user_id: str) -> List[TasteCluster]:
        """Cluster the embeddings of the user's recent history. Tracks without embeddings are skipped."""
        track_ids = await self.history.history_track_ids(user_id, self.settings.cluster_history_limit)
        features = await self.catalog.get_features(track_ids) if track_ids else {}

        points = [
            (tid, features[tid].embedding)
            for tid in track_ids
            if tid in features and features[tid].has_embedding
        ]
        skipped = len(track_ids) - len(points)
        if skipped:
            logger.debug("History tracks without embeddings skipped", data={
                "user_id": user_id, "skipped": skipped,
            })

        loop = asyncio.get_running_loop()
        clusters = await loop.run_in_executor(
            self._executor, partial(self.clustering.cluster, points, features)
        )
        logger.info("User taste clustered", data={
            "user_id": user_id,
            "tracks": len(points),
            "clusters": len(clusters),
        })
        return clusters

    async def predict_next(
        self,
        user_id: str,
        current_track_id: str,
        count: Optional[int] = None,
        mode: PrefetchMode = PrefetchMode.AUTOPLAY,
        next_track_ids: Optional[Sequence[str]] = None,
    ) -> PrefetchEntry:
        return await self.prefetch.predict_next(user_id, current_track_id, count, mode, next_track_ids)

    async def get_prefetched(self, user_id: str, current_track_id: str) -> Optional[PrefetchEntry]:
        return await self.prefetch.get_prefetched(user_id, current_track_id)

    async def close(self) -> None:
        """Stop the clustering pool and release the cache connection."""
        self._executor.shutdown(wait=False)
        close = getattr(self.cache, "close", None)
        if close is not None:
            await close()
