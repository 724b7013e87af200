"""
SimilarityQueryEngine - ranks catalog tracks by similarity to a reference track.

Each public query:
    1. loads the reference record by ID
    2. asks the catalog for a candidate ID pool for the signal
    3. loads candidate records by ID set and scores them in numpy
    4. returns the top `limit` (descending score, ties by track ID)

All of it runs under one query timeout; on expiry the work is cancelled and
QueryTimeoutError (retryable) is raised. No partial results are returned.

Usage:
    engine = SimilarityQueryEngine(catalog)
    result = await engine.similar_combined("track-1", limit=20)
"""

import asyncio
import time
from typing import Awaitable, Dict, Optional, TypeVar

import numpy as np

from resonance.common.logging import get_logger
from resonance.core.config import Settings, get_settings
from resonance.core.errors import QueryTimeoutError, TrackNotFoundError
from resonance.core.interfaces import CatalogStore
from resonance.core.models import TrackFeatureRecord
from resonance.core.monitoring import similarity_query_seconds, similarity_query_timeouts_total

from .models import (
    SimilarityMethod,
    SimilarityRequest,
    SimilarityResult,
    SimilarityWeights,
    rank,
)
from .scoring import (
    acoustic_similarity,
    combine_scores,
    cosine_similarities,
    ensure_same_dimension,
    tag_overlap,
)

logger = get_logger(__name__)

T = TypeVar("T")


class SimilarityQueryEngine:
    """
    Executes semantic, acoustic, categorical and combined similarity queries.

    Holds no per-request state; the catalog handle is shared and read-only.
    """

    def __init__(self, catalog: CatalogStore, settings: Optional[Settings] = None):
        """
        Args:
            catalog: Catalog store queried by track ID set
            settings: Engine settings (default: environment)
        """
        settings = settings or get_settings()
        self.catalog = catalog
        self.default_weights = SimilarityWeights.from_sequence(settings.similarity_weights).validate()
        self.query_timeout = settings.similarity_query_timeout
        self.max_results = settings.similarity_max_results
        self.candidate_pool = settings.similarity_candidate_pool
        self.combined_fetch_factor = max(1, settings.similarity_combined_fetch_factor)
        self.mood_weight = settings.similarity_mood_weight

    # ============== Public API ==============

    async def similar(
        self,
        track_id: str,
        method: SimilarityMethod,
        limit: int,
        weights: Optional[SimilarityWeights] = None,
    ) -> SimilarityResult:
        """Dispatch on the similarity method."""
        request = SimilarityRequest(track_id, SimilarityMethod(method), limit, weights)
        return await self.execute(request)

    async def execute(self, request: SimilarityRequest) -> SimilarityResult:
        """Run a request. Validates limit and weights before touching the store."""
        request = request.validated(self.max_results)
        method = request.method

        if method is SimilarityMethod.COMBINED:
            work = self._combined(request.track_id, request.limit, request.weights or self.default_weights)
        else:
            work = self._single(request.track_id, method, request.limit)

        return await self._bounded(method, request.track_id, work)

    async def similar_by_semantic(self, track_id: str, limit: int) -> SimilarityResult:
        return await self.similar(track_id, SimilarityMethod.SEMANTIC, limit)

    async def similar_by_acoustic(self, track_id: str, limit: int) -> SimilarityResult:
        return await self.similar(track_id, SimilarityMethod.ACOUSTIC, limit)

    async def similar_by_categorical(self, track_id: str, limit: int) -> SimilarityResult:
        return await self.similar(track_id, SimilarityMethod.CATEGORICAL, limit)

    async def similar_combined(
        self,
        track_id: str,
        limit: int,
        weights: Optional[SimilarityWeights] = None,
    ) -> SimilarityResult:
        return await self.similar(track_id, SimilarityMethod.COMBINED, limit, weights)

    # ============== Execution ==============

    async def _bounded(self, method: SimilarityMethod, track_id: str, work: Awaitable[T]) -> T:
        started = time.perf_counter()
        try:
            return await asyncio.wait_for(work, timeout=self.query_timeout)
        except asyncio.TimeoutError as e:
            similarity_query_timeouts_total.labels(method=method.value).inc()
            raise QueryTimeoutError(
                f"Similarity query timed out after {self.query_timeout}s",
                data={"track_id": track_id, "method": method.value, "timeout": self.query_timeout},
            ) from e
        finally:
            similarity_query_seconds.labels(method=method.value).observe(time.perf_counter() - started)

    async def _reference(self, track_id: str) -> TrackFeatureRecord:
        records = await self.catalog.get_features([track_id])
        reference = records.get(track_id)
        if reference is None:
            raise TrackNotFoundError("Track not found", data={"track_id": track_id})
        return reference

    async def _single(self, track_id: str, method: SimilarityMethod, limit: int) -> SimilarityResult:
        reference = await self._reference(track_id)
        scores = await self._scores(reference, method)
        return SimilarityResult(track_id=track_id, method=method, tracks=rank(scores, method, limit))

    async def _combined(self, track_id: str, limit: int, weights: SimilarityWeights) -> SimilarityResult:
        reference = await self._reference(track_id)
        fetch_limit = limit * self.combined_fetch_factor
        signals = (SimilarityMethod.SEMANTIC, SimilarityMethod.ACOUSTIC, SimilarityMethod.CATEGORICAL)

        outcomes = await asyncio.gather(
            *(self._scores(reference, signal) for signal in signals),
            return_exceptions=True,
        )

        partial: Dict[SimilarityMethod, Dict[str, float]] = {}
        for signal, outcome in zip(signals, outcomes):
            if isinstance(outcome, TrackNotFoundError):
                logger.warning(
                    f"{signal.value.capitalize()} similarity unavailable, continuing with other methods",
                    data={"track_id": track_id, "method": signal.value, "error": outcome.message},
                )
                partial[signal] = {}
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                top = rank(outcome, signal, fetch_limit)
                partial[signal] = {t.track_id: t.score for t in top}

        candidates = set().union(*(scores.keys() for scores in partial.values()))
        combined = {
            tid: combine_scores(
                partial[SimilarityMethod.SEMANTIC].get(tid),
                partial[SimilarityMethod.ACOUSTIC].get(tid),
                partial[SimilarityMethod.CATEGORICAL].get(tid),
                weights,
            )
            for tid in candidates
        }
        return SimilarityResult(
            track_id=track_id,
            method=SimilarityMethod.COMBINED,
            tracks=rank(combined, SimilarityMethod.COMBINED, limit),
        )

    # ============== Scoring per signal ==============

    async def _candidates(self, reference: TrackFeatureRecord, signal: SimilarityMethod) -> Dict[str, TrackFeatureRecord]:
        ids = await self.catalog.candidate_ids(reference.track_id, signal.value, self.candidate_pool)
        ids = [tid for tid in ids if tid != reference.track_id]
        if not ids:
            return {}
        records = await self.catalog.get_features(ids)
        return {tid: records[tid] for tid in ids if tid in records}

    async def _scores(self, reference: TrackFeatureRecord, signal: SimilarityMethod) -> Dict[str, float]:
        if signal is SimilarityMethod.SEMANTIC:
            return await self._semantic_scores(reference)
        if signal is SimilarityMethod.ACOUSTIC:
            return await self._acoustic_scores(reference)
        if signal is SimilarityMethod.CATEGORICAL:
            return await self._categorical_scores(reference)
        raise ValueError(f"Not a single-signal method: {signal}")

    async def _semantic_scores(self, reference: TrackFeatureRecord) -> Dict[str, float]:
        if not reference.has_embedding:
            raise TrackNotFoundError(
                "Track embedding not found (run embedding generation first)",
                data={"track_id": reference.track_id},
            )
        candidates = await self._candidates(reference, SimilarityMethod.SEMANTIC)
        ids = [tid for tid, r in candidates.items() if r.has_embedding]
        if not ids:
            return {}

        vectors = [candidates[tid].embedding for tid in ids]
        dim = ensure_same_dimension(reference.embedding, vectors, ids)
        matrix = np.asarray(vectors, dtype=np.float64).reshape(len(ids), dim)
        sims = cosine_similarities(np.asarray(reference.embedding, dtype=np.float64), matrix)
        return dict(zip(ids, sims.tolist()))

    async def _acoustic_scores(self, reference: TrackFeatureRecord) -> Dict[str, float]:
        if reference.acoustic.energy is None and reference.acoustic.loudness is None:
            raise TrackNotFoundError(
                "Track audio features not found (run feature extraction first)",
                data={"track_id": reference.track_id},
            )
        candidates = await self._candidates(reference, SimilarityMethod.ACOUSTIC)
        return {
            tid: acoustic_similarity(reference.acoustic, record.acoustic)
            for tid, record in candidates.items()
            if record.acoustic.energy is not None
        }

    async def _categorical_scores(self, reference: TrackFeatureRecord) -> Dict[str, float]:
        candidates = await self._candidates(reference, SimilarityMethod.CATEGORICAL)
        scores = {
            tid: tag_overlap(reference, record, self.mood_weight)
            for tid, record in candidates.items()
        }
        return {tid: score for tid, score in scores.items() if score > 0}
