"""
Unit tests for SQLiteCatalog.

Tests cover:
1. Feature and metadata round-trip
2. Candidate retrieval per signal (relevance-ranked, larger catalogs)
3. Listening history and queue
4. Engine queries against the SQLite store
5. Cancellation interrupts the running statement
"""

import asyncio
import sqlite3
import time
from datetime import datetime, timedelta, timezone

import pytest

from resonance.core.connectors import SQLiteCatalog
from resonance.core.errors import DimensionMismatchError, StoreUnavailableError
from resonance.core.interfaces import CatalogStore, ListeningHistoryProvider
from resonance.core.models import TrackFeatureRecord
from resonance.modules.similarity import SimilarityMethod, SimilarityQueryEngine


@pytest.fixture
def store(tmp_path, abc_records, metadata_factory):
    store = SQLiteCatalog(str(tmp_path / "db" / "catalog.db"))
    for record in abc_records:
        store.upsert_track(record, metadata_factory(record.track_id))
    return store


@pytest.mark.unit
class TestSQLiteCatalog:
    """Tests for the SQLite catalog store."""

    def test_implements_protocols(self, store):
        assert isinstance(store, CatalogStore)
        assert isinstance(store, ListeningHistoryProvider)

    @pytest.mark.asyncio
    async def test_features_round_trip(self, store, abc_records):
        """
        ЧТО ПРОВЕРЯЕМ:
            Records read back equal the records written
        """
        records = await store.get_features(["A", "B", "C", "missing"])

        assert set(records) == {"A", "B", "C"}
        for record in abc_records:
            assert records[record.track_id] == record

    @pytest.mark.asyncio
    async def test_metadata_round_trip(self, store, metadata_factory):
        metadata = await store.get_metadata(["B"])
        assert metadata["B"] == metadata_factory("B")

    @pytest.mark.asyncio
    async def test_upsert_replaces_wholesale(self, store):
        store.upsert_track(TrackFeatureRecord.build("A", genres=["jazz"]))
        record = (await store.get_features(["A"]))["A"]

        assert record.embedding is None
        assert record.genres == frozenset({"jazz"})
        assert record.moods == frozenset()

    @pytest.mark.asyncio
    async def test_candidate_ids_per_signal(self, store):
        """
        ЧТО ПРОВЕРЯЕМ:
            Candidates come back best first, reference excluded
        """
        assert await store.candidate_ids("A", "semantic", 10) == ["B", "C"]
        assert await store.candidate_ids("A", "acoustic", 1) == ["B"]
        assert await store.candidate_ids("A", "categorical", 10) == ["B"]
        assert await store.candidate_ids("missing", "semantic", 10) == []

    @pytest.mark.asyncio
    async def test_unknown_signal(self, store):
        with pytest.raises(ValueError):
            await store.candidate_ids("A", "lyrics", 10)

    @pytest.mark.asyncio
    async def test_history_and_queue(self, store):
        now = datetime.now(timezone.utc)
        store.record_play("u1", "A", now - timedelta(days=30))
        store.record_play("u1", "B", now - timedelta(hours=1))
        store.record_play("u1", "A", now - timedelta(days=20))
        store.set_queue("u1", ["C", "A"])

        assert await store.history_track_ids("u1", 10) == ["B", "A"]
        assert await store.history_track_ids("u1", 1) == ["B"]
        assert await store.recently_played("u1", timedelta(days=7)) == {"B"}
        assert await store.queued_track_ids("u1") == ["C", "A"]

        store.set_queue("u1", ["B"])
        assert await store.queued_track_ids("u1") == ["B"]

    @pytest.mark.asyncio
    async def test_engine_over_sqlite(self, store, settings):
        engine = SimilarityQueryEngine(store, settings)

        result = await engine.similar_combined("A", 5)

        assert result.track_ids == ["B", "C"]

    @pytest.mark.asyncio
    async def test_sqlite_error_maps_to_store_unavailable(self, store, monkeypatch):
        def broken_connect():
            raise sqlite3.OperationalError("disk I/O error")

        monkeypatch.setattr(store, "_connect", broken_connect)

        with pytest.raises(StoreUnavailableError):
            await store.get_features(["A"])


@pytest.mark.unit
class TestSQLiteCandidatePool:
    """Tests for candidate ranking over a catalog larger than the pool."""

    @pytest.fixture
    def crowded_store(self, tmp_path):
        store = SQLiteCatalog(str(tmp_path / "crowded.db"))
        features = {"energy": 0.8, "valence": 0.6, "loudness": -8}
        store.upsert_track(TrackFeatureRecord.build("ref", embedding=[1.0, 0.0], acoustic=features))
        store.upsert_track(TrackFeatureRecord.build("zz-twin", embedding=[1.0, 0.0], acoustic=features))
        for i in range(60):
            store.upsert_track(TrackFeatureRecord.build(
                f"t{i:04d}", embedding=[0.0, 1.0], acoustic={"energy": 0.0, "valence": 0.0},
            ))
        return store

    @pytest.mark.asyncio
    @pytest.mark.parametrize("method", [SimilarityMethod.SEMANTIC, SimilarityMethod.ACOUSTIC])
    async def test_identical_track_found_beyond_pool(self, crowded_store, settings, method):
        """
        ЧТО ПРОВЕРЯЕМ:
            An identical track whose ID sorts after the first `pool` IDs is still found
        """
        settings.similarity_candidate_pool = 50
        engine = SimilarityQueryEngine(crowded_store, settings)

        result = await engine.similar("ref", method, 1)

        assert result.track_ids == ["zz-twin"]
        assert result.tracks[0].score == pytest.approx(1.0)

    @pytest.mark.asyncio
    async def test_dimension_mismatch_kept_in_pool(self, crowded_store, settings):
        crowded_store.upsert_track(TrackFeatureRecord.build("zz-odd", embedding=[1.0, 0.0, 0.0]))
        settings.similarity_candidate_pool = 5
        engine = SimilarityQueryEngine(crowded_store, settings)

        with pytest.raises(DimensionMismatchError):
            await engine.similar_by_semantic("ref", 3)


@pytest.mark.unit
class TestSQLiteCancellation:
    """Tests for statement interruption on cancel."""

    @pytest.mark.asyncio
    @pytest.mark.slow
    async def test_timeout_interrupts_statement(self, store):
        """
        ЧТО ПРОВЕРЯЕМ:
            A cancelled query stops in its worker thread instead of running on
        """
        outcome = []
        long_count = (
            "WITH RECURSIVE c(x) AS (SELECT 1 UNION ALL SELECT x + 1 FROM c WHERE x < 200000000) "
            "SELECT count(*) FROM c"
        )

        def slow_query(conn):
            try:
                return conn.execute(long_count).fetchone()[0]
            except sqlite3.OperationalError as e:
                outcome.append(str(e))
                raise

        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(store._run(slow_query), timeout=0.2)

        deadline = time.monotonic() + 5.0
        while not outcome and time.monotonic() < deadline:
            await asyncio.sleep(0.05)

        assert outcome and "interrupt" in outcome[0]
