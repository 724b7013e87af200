"""
Similarity metrics and the score combiner.

Pure functions, no I/O. Every score returned here is in [0, 1].

Signals:
    semantic     cosine similarity of embeddings, negatives clamped to 0
    acoustic     1 - d/2 where d is the Euclidean distance of normalized features
    categorical  weighted Jaccard overlap of genre/mood/tag sets

The vector metrics live in resonance.core.ranking so catalog stores can rank
their candidate pools with the same formulas.
"""

from typing import List, Optional, Sequence

from resonance.core.errors import DimensionMismatchError
from resonance.core.models import TrackFeatureRecord
from resonance.core.ranking import (  # noqa: F401
    DEFAULT_MOOD_WEIGHT,
    acoustic_similarity,
    cosine_similarities,
)

from .models import SimilarityWeights


def combine_scores(
    semantic: Optional[float],
    acoustic: Optional[float],
    categorical: Optional[float],
    weights: SimilarityWeights,
) -> float:
    """
    Weighted sum of the three partial scores.

    A missing signal counts as 0 and keeps its weight in the denominator;
    callers that want to exclude a signal must renormalize the weights.
    """
    total = (
        weights.semantic * (semantic or 0.0)
        + weights.acoustic * (acoustic or 0.0)
        + weights.categorical * (categorical or 0.0)
    )
    return min(1.0, max(0.0, total))


def ensure_same_dimension(reference: Sequence[float], candidates: List[Sequence[float]], ids: List[str]) -> int:
    """Fail closed when any candidate embedding differs in length from the reference."""
    dim = len(reference)
    for track_id, vector in zip(ids, candidates):
        if len(vector) != dim:
            raise DimensionMismatchError(
                "Embedding dimension mismatch",
                data={"expected": dim, "actual": len(vector), "track_id": track_id},
            )
    return dim


def tag_overlap(
    reference: TrackFeatureRecord,
    candidate: TrackFeatureRecord,
    mood_weight: float = DEFAULT_MOOD_WEIGHT,
) -> float:
    """Weighted |A ∩ B| / |A ∪ B| over genres, moods (weighted) and tags."""
    pairs = (
        (reference.genres, candidate.genres, 1.0),
        (reference.moods, candidate.moods, mood_weight),
        (reference.tags, candidate.tags, 1.0),
    )
    shared = sum(w * len(a & b) for a, b, w in pairs)
    union = sum(w * len(a | b) for a, b, w in pairs)
    return shared / max(1.0, union)
