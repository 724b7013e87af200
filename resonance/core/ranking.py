"""
Vector metrics shared by the similarity engine and the catalog stores.

Stores use them to pick the most relevant candidate pool; the engine uses
them to score that pool. Every score returned here is in [0, 1].
"""

import math
from typing import Dict, List, Optional

import numpy as np

from resonance.core.errors import DimensionMismatchError
from resonance.core.models import AcousticFeatures

# Loudness is mapped from [-60, 0] dBFS onto [0, 1]; bpm is divided by 200.
LOUDNESS_FLOOR_DB = -60.0
BPM_SCALE = 200.0

DEFAULT_MOOD_WEIGHT = 2.0


def cosine_similarities(reference: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    """
    Cosine similarity of `reference` against every row of `matrix`, clamped to [0, 1].

    Zero-norm vectors have no direction and score 0.
    """
    if matrix.size == 0:
        return np.zeros(0, dtype=np.float64)
    if matrix.shape[1] != reference.shape[0]:
        raise DimensionMismatchError(
            "Embedding dimension mismatch",
            data={"expected": int(reference.shape[0]), "actual": int(matrix.shape[1])},
        )

    ref_norm = np.linalg.norm(reference)
    row_norms = np.linalg.norm(matrix, axis=1)
    denom = row_norms * ref_norm
    dots = matrix @ reference
    sims = np.divide(dots, denom, out=np.zeros_like(dots), where=denom > 0)
    return np.clip(sims, 0.0, 1.0)


def _normalized_dimensions(features: AcousticFeatures) -> List[Optional[float]]:
    loudness = None
    if features.loudness is not None:
        loudness = (features.loudness - LOUDNESS_FLOOR_DB) / -LOUDNESS_FLOOR_DB
    bpm = features.bpm / BPM_SCALE if features.bpm is not None else None
    return [features.energy, loudness, features.valence, features.danceability, bpm]


def acoustic_similarity(reference: AcousticFeatures, candidate: AcousticFeatures) -> float:
    """Inverse-distance similarity; a dimension missing on either side contributes 0."""
    squared = 0.0
    for a, b in zip(_normalized_dimensions(reference), _normalized_dimensions(candidate)):
        if a is None or b is None:
            continue
        squared += (b - a) ** 2
    return max(0.0, 1.0 - math.sqrt(squared) / 2.0)


def top_ids(scores: Dict[str, float], size: int) -> List[str]:
    """IDs of the `size` best scores, ties broken by ascending ID."""
    if size <= 0:
        return []
    ranked = sorted(scores.items(), key=lambda item: (-item[1], item[0]))
    return [track_id for track_id, _ in ranked[:size]]
