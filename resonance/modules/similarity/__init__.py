"""
Similarity - multi-signal track similarity with read-through caching.

    SimilarityCache (public entry point, cache-aside)
        └── SimilarityQueryEngine (semantic / acoustic / categorical / combined)
                └── scoring (cosine, inverse distance, weighted Jaccard, combiner)
"""

from .models import (
    MAX_SIMILARITY_RESULTS,
    WEIGHT_TOLERANCE,
    ScoredTrack,
    SimilarityMethod,
    SimilarityRequest,
    SimilarityResult,
    SimilarityWeights,
)
from .scoring import combine_scores
from .engine import SimilarityQueryEngine
from .cache import SimilarityCache

__all__ = [
    'MAX_SIMILARITY_RESULTS',
    'WEIGHT_TOLERANCE',
    'ScoredTrack',
    'SimilarityMethod',
    'SimilarityRequest',
    'SimilarityResult',
    'SimilarityWeights',
    'combine_scores',
    'SimilarityQueryEngine',
    'SimilarityCache',
]
