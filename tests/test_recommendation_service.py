"""
Unit tests for RecommendationService.

Tests cover:
1. similar / predict_next delegation through the cache
2. cluster_user_taste over listening history (off-loop clustering)
3. Lifecycle
"""

from datetime import timedelta

import pytest

from resonance.core.models import TrackFeatureRecord
from resonance.modules.prefetch import PrefetchMode
from resonance.modules.similarity import SimilarityMethod
from resonance.services import RecommendationService


@pytest.fixture
def service(catalog, history, memory_cache, settings):
    service = RecommendationService(catalog, history, memory_cache, settings)
    yield service
    service._executor.shutdown(wait=True)


@pytest.mark.unit
class TestRecommendationService:
    """Tests for the facade."""

    @pytest.mark.asyncio
    async def test_similar_is_cached(self, service, memory_cache):
        result = await service.similar("A", SimilarityMethod.COMBINED, 5)

        assert result.track_ids[0] == "B"
        assert "similarity:A:combined:5" in memory_cache.keys()

    @pytest.mark.asyncio
    async def test_cluster_user_taste(self, service, catalog, history, now):
        """
        ЧТО ПРОВЕРЯЕМ:
            History embeddings are clustered; tracks without embeddings are skipped
        """
        centers = [(0.0, 0.0, 5.0), (5.0, 0.0, 0.0), (0.0, 5.0, 0.0)]
        for b, (x, y, z) in enumerate(centers):
            for i in range(4):
                track_id = f"h{b}{i}"
                catalog.add(TrackFeatureRecord.build(track_id, embedding=[x + 0.1 * i, y, z]))
                history.record_play("u1", track_id, now - timedelta(minutes=b * 10 + i))
        history.record_play("u1", "E", now)  # no embedding

        clusters = await service.cluster_user_taste("u1")

        groups = sorted(sorted(c.track_ids) for c in clusters)
        assert groups == [
            [f"h0{i}" for i in range(4)],
            [f"h1{i}" for i in range(4)],
            [f"h2{i}" for i in range(4)],
        ]
        assert all("E" not in c.track_ids for c in clusters)

    @pytest.mark.asyncio
    async def test_cluster_empty_history(self, service):
        assert await service.cluster_user_taste("nobody") == []

    @pytest.mark.asyncio
    async def test_predict_next_and_read_back(self, service):
        entry = await service.predict_next("u1", "A", count=2, mode=PrefetchMode.QUEUE, next_track_ids=["C", "B"])

        assert entry.track_ids == ["C", "B"]
        assert await service.get_prefetched("u1", "A") == entry

    @pytest.mark.asyncio
    async def test_close(self, catalog, history, memory_cache, settings):
        service = RecommendationService(catalog, history, memory_cache, settings)
        await service.close()

        assert service._executor._shutdown is True

    def test_from_settings_uses_sqlite(self, tmp_path, settings):
        from resonance.core.connectors import InMemoryCache, SQLiteCatalog

        settings.catalog_db_path = str(tmp_path / "catalog.db")
        service = RecommendationService.from_settings(settings)

        try:
            assert isinstance(service.catalog, SQLiteCatalog)
            assert service.history is service.catalog
            assert isinstance(service.cache, InMemoryCache)
        finally:
            service._executor.shutdown(wait=True)

    def test_from_settings_builds_cache_from_given_settings(self, tmp_path, monkeypatch):
        """
        ЧТО ПРОВЕРЯЕМ:
            Redis URL and key prefix come from the settings passed in,
            not from the environment singleton
        """
        from resonance.core.config import CacheBackend, Settings
        from resonance.core.connectors import RedisCache

        monkeypatch.delenv("REDIS_URL", raising=False)
        monkeypatch.delenv("CACHE_PREFIX", raising=False)
        settings = Settings(
            cache_backend=CacheBackend.REDIS,
            redis_url="redis://cache-host:6380/3",
            cache_prefix="custom:",
            catalog_db_path=str(tmp_path / "catalog.db"),
        )
        service = RecommendationService.from_settings(settings)

        try:
            assert isinstance(service.cache, RedisCache)
            assert service.cache.prefix == "custom:"
            assert service.cache.client.connection_pool.connection_kwargs["host"] == "cache-host"
        finally:
            service._executor.shutdown(wait=True)
