"""
Unit tests for SimilarityQueryEngine.

Tests cover:
1. Per-signal queries (semantic, acoustic, categorical)
2. Combined queries (merge, partial signals, weight validation)
3. Limits, self-exclusion, not-found and dimension errors
4. Query timeout
"""

import pytest

from resonance.core.connectors import InMemoryCatalog
from resonance.core.errors import (
    DimensionMismatchError,
    InvalidLimitError,
    InvalidWeightsError,
    QueryTimeoutError,
    TrackNotFoundError,
)
from resonance.core.models import TrackFeatureRecord
from resonance.modules.similarity import (
    SimilarityMethod,
    SimilarityQueryEngine,
    SimilarityWeights,
)


@pytest.fixture
def engine(catalog, settings):
    return SimilarityQueryEngine(catalog, settings)


# =============================================================================
# Semantic
# =============================================================================

@pytest.mark.unit
class TestSemantic:
    """Tests for embedding cosine queries."""

    @pytest.mark.asyncio
    async def test_excludes_reference_and_ranks(self, engine):
        """
        ЧТО ПРОВЕРЯЕМ:
            Reference never appears; B (closest embedding) ranks first
        """
        result = await engine.similar_by_semantic("A", 10)

        assert "A" not in result.track_ids
        assert result.track_ids == ["B", "D", "C"]
        assert result.method is SimilarityMethod.SEMANTIC
        assert all(t.method is SimilarityMethod.SEMANTIC for t in result.tracks)

    @pytest.mark.asyncio
    async def test_scores_clamped(self, engine):
        result = await engine.similar_by_semantic("A", 10)
        scores = {t.track_id: t.score for t in result.tracks}

        assert scores["C"] == 0.0
        assert 0.99 < scores["B"] <= 1.0

    @pytest.mark.asyncio
    async def test_limit_respected(self, engine):
        result = await engine.similar_by_semantic("A", 2)
        assert len(result) == 2

    @pytest.mark.asyncio
    async def test_reference_without_embedding(self, engine):
        """
        ЧТО ПРОВЕРЯЕМ:
            Reference lacking an embedding raises TrackNotFoundError
        """
        with pytest.raises(TrackNotFoundError, match="embedding"):
            await engine.similar_by_semantic("E", 5)

    @pytest.mark.asyncio
    async def test_dimension_mismatch_fails_closed(self, catalog, settings):
        catalog.add(TrackFeatureRecord.build("G", embedding=[1.0, 0.0]))
        engine = SimilarityQueryEngine(catalog, settings)

        with pytest.raises(DimensionMismatchError):
            await engine.similar_by_semantic("A", 5)


# =============================================================================
# Acoustic / Categorical
# =============================================================================

@pytest.mark.unit
class TestAcousticAndCategorical:
    """Tests for acoustic and categorical queries."""

    @pytest.mark.asyncio
    async def test_acoustic_skips_candidates_without_energy(self, engine):
        result = await engine.similar_by_acoustic("A", 10)

        assert set(result.track_ids) == {"B", "C", "D", "E"}
        assert result.track_ids[-1] == "C"

    @pytest.mark.asyncio
    async def test_acoustic_reference_without_features(self, engine):
        with pytest.raises(TrackNotFoundError, match="audio features"):
            await engine.similar_by_acoustic("F", 5)

    @pytest.mark.asyncio
    async def test_categorical_only_overlapping(self, engine):
        """
        ЧТО ПРОВЕРЯЕМ:
            Only candidates sharing a genre/mood/tag appear, ordered by overlap
        """
        result = await engine.similar_by_categorical("A", 10)

        assert result.track_ids == ["B", "E", "D"]
        assert [round(t.score, 4) for t in result.tracks] == [1.0, 0.6667, 0.25]

    @pytest.mark.asyncio
    async def test_unknown_track(self, engine):
        with pytest.raises(TrackNotFoundError):
            await engine.similar_by_categorical("missing", 5)


# =============================================================================
# Combined
# =============================================================================

@pytest.mark.unit
class TestCombined:
    """Tests for combined queries."""

    @pytest.mark.asyncio
    async def test_close_same_genre_ranks_above_far_other_genre(self, engine):
        """
        ЧТО ПРОВЕРЯЕМ:
            B (close embedding, same genre) ranks strictly above C (far, other genre)
        """
        result = await engine.similar_combined("A", 10)

        scores = {t.track_id: t.score for t in result.tracks}
        assert scores["B"] > scores["C"]
        assert result.track_ids.index("B") < result.track_ids.index("C")
        assert result.track_ids[0] == "B"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("weights", [
        SimilarityWeights(1.0, 0.0, 0.0),
        SimilarityWeights(0.0, 1.0, 0.0),
        SimilarityWeights(0.2, 0.2, 0.6),
        SimilarityWeights(0.3334, 0.3333, 0.3333),
    ])
    async def test_scores_in_unit_interval(self, engine, weights):
        result = await engine.similar_combined("A", 10, weights)

        assert all(0.0 <= t.score <= 1.0 for t in result.tracks)
        assert "A" not in result.track_ids

    @pytest.mark.asyncio
    async def test_invalid_weights_rejected(self, engine):
        with pytest.raises(InvalidWeightsError):
            await engine.similar_combined("A", 10, SimilarityWeights(0.5, 0.5, 0.5))

    @pytest.mark.asyncio
    async def test_missing_signal_contributes_zero(self, engine):
        """
        ЧТО ПРОВЕРЯЕМ:
            E has no embedding: semantic is skipped, others still rank, scores <= 0.5
        """
        result = await engine.similar_combined("E", 10)

        assert len(result) > 0
        assert "E" not in result.track_ids
        assert all(t.score <= 0.5 + 1e-9 for t in result.tracks)

    @pytest.mark.asyncio
    async def test_unknown_reference_propagates(self, engine):
        with pytest.raises(TrackNotFoundError):
            await engine.similar_combined("missing", 5)

    @pytest.mark.asyncio
    async def test_dimension_mismatch_propagates(self, catalog, settings):
        catalog.add(TrackFeatureRecord.build("G", embedding=[1.0, 0.0]))
        engine = SimilarityQueryEngine(catalog, settings)

        with pytest.raises(DimensionMismatchError):
            await engine.similar_combined("A", 5)


# =============================================================================
# Limits / Dispatch / Timeout
# =============================================================================

@pytest.mark.unit
class TestLimitsAndTimeout:
    """Tests for limit handling, dispatch and the query timeout."""

    @pytest.mark.asyncio
    async def test_zero_limit_rejected(self, engine):
        with pytest.raises(InvalidLimitError):
            await engine.similar("A", SimilarityMethod.SEMANTIC, 0)

    @pytest.mark.asyncio
    async def test_length_at_most_min_limit_100(self, settings):
        records = [
            TrackFeatureRecord.build(f"t{i:03d}", embedding=[1.0, i / 200.0])
            for i in range(150)
        ]
        engine = SimilarityQueryEngine(InMemoryCatalog(records), settings)

        result = await engine.similar("t000", SimilarityMethod.SEMANTIC, 500)

        assert len(result) == 100

    @pytest.mark.asyncio
    async def test_dispatch_accepts_string_method(self, engine):
        result = await engine.similar("A", "categorical", 3)
        assert result.method is SimilarityMethod.CATEGORICAL

    @pytest.mark.asyncio
    async def test_timeout_raises_retryable(self, abc_records, settings):
        """
        ЧТО ПРОВЕРЯЕМ:
            A store slower than the query timeout yields QueryTimeoutError (retryable)
        """
        settings.similarity_query_timeout = 0.05
        engine = SimilarityQueryEngine(InMemoryCatalog(abc_records, latency=0.5), settings)

        with pytest.raises(QueryTimeoutError) as exc_info:
            await engine.similar_combined("A", 5)

        assert exc_info.value.retryable is True


# =============================================================================
# Candidate pool
# =============================================================================

@pytest.mark.unit
class TestCandidatePool:
    """Tests for candidate retrieval when the catalog outgrows the pool."""

    @pytest.fixture
    def crowded_catalog(self):
        """
        ref and zz-twin are identical; 60 fillers point the other way and
        sort before zz-twin by ID.
        """
        features = {"energy": 0.8, "valence": 0.6, "bpm": 128}
        records = [
            TrackFeatureRecord.build("ref", embedding=[1.0, 0.0], acoustic=features, moods=["energetic"]),
            TrackFeatureRecord.build("zz-twin", embedding=[1.0, 0.0], acoustic=features, moods=["energetic"]),
        ]
        records += [
            TrackFeatureRecord.build(
                f"t{i:02d}", embedding=[0.0, 1.0], acoustic={"energy": 0.0, "valence": 0.0}, tags=["filler"]
            )
            for i in range(60)
        ]
        return InMemoryCatalog(records)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("method", [SimilarityMethod.SEMANTIC, SimilarityMethod.ACOUSTIC])
    async def test_best_match_beyond_pool_by_id(self, crowded_catalog, settings, method):
        """
        ЧТО ПРОВЕРЯЕМ:
            The pool is the most relevant candidates, not the first IDs in order
        """
        settings.similarity_candidate_pool = 50
        engine = SimilarityQueryEngine(crowded_catalog, settings)

        result = await engine.similar("ref", method, 1)

        assert result.track_ids == ["zz-twin"]
        assert result.tracks[0].score == pytest.approx(1.0)

    @pytest.mark.asyncio
    async def test_pool_ranked_and_excludes_reference(self, crowded_catalog):
        ids = await crowded_catalog.candidate_ids("ref", "semantic", 3)

        assert ids == ["zz-twin", "t00", "t01"]
        assert await crowded_catalog.candidate_ids("ref", "categorical", 10) == ["zz-twin"]
