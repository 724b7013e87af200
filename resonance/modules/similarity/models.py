"""
Similarity request/result models.

SimilarityMethod is the tagged variant every dispatch point switches on.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from resonance.core.errors import InvalidLimitError, InvalidWeightsError

WEIGHT_TOLERANCE = 0.001
MAX_SIMILARITY_RESULTS = 100


class SimilarityMethod(str, Enum):
    """Signal used to rank candidates."""
    SEMANTIC = "semantic"
    ACOUSTIC = "acoustic"
    CATEGORICAL = "categorical"
    COMBINED = "combined"


@dataclass(frozen=True)
class SimilarityWeights:
    """Weight triple for combined scoring. Must sum to 1.0 within tolerance."""
    semantic: float = 0.5
    acoustic: float = 0.3
    categorical: float = 0.2

    @classmethod
    def from_sequence(cls, values: Sequence[float]) -> "SimilarityWeights":
        if len(values) != 3:
            raise InvalidWeightsError(
                "Weights must be a (semantic, acoustic, categorical) triple",
                data={"weights": list(values)},
            )
        return cls(float(values[0]), float(values[1]), float(values[2]))

    def as_tuple(self) -> tuple:
        return (self.semantic, self.acoustic, self.categorical)

    def validate(self) -> "SimilarityWeights":
        """Raise InvalidWeightsError unless weights are finite, non-negative and sum to 1."""
        values = self.as_tuple()
        if any(not math.isfinite(v) or v < 0 for v in values):
            raise InvalidWeightsError(
                "Weights must be finite and non-negative", data={"weights": list(values)}
            )
        total = sum(values)
        if abs(total - 1.0) > WEIGHT_TOLERANCE:
            raise InvalidWeightsError(
                f"Weights must sum to 1.0 (got {total:.4f})",
                data={"weights": list(values), "sum": total},
            )
        return self

    def fingerprint(self) -> str:
        return "{:.3f}-{:.3f}-{:.3f}".format(*self.as_tuple())


@dataclass(frozen=True)
class SimilarityRequest:
    """
    A request for tracks similar to a reference track.

    weights only matter for the combined method; None means configured defaults.
    """
    track_id: str
    method: SimilarityMethod = SimilarityMethod.COMBINED
    limit: int = 10
    weights: Optional[SimilarityWeights] = None

    def validated(self, max_results: int = MAX_SIMILARITY_RESULTS) -> "SimilarityRequest":
        """Reject non-positive limits and bad weights; clamp limit to max_results."""
        if self.limit < 1:
            raise InvalidLimitError(
                f"Limit must be at least 1 (got {self.limit})",
                data={"track_id": self.track_id, "limit": self.limit},
            )
        if self.weights is not None:
            self.weights.validate()
        return SimilarityRequest(
            track_id=self.track_id,
            method=SimilarityMethod(self.method),
            limit=min(self.limit, max_results),
            weights=self.weights,
        )


@dataclass(frozen=True)
class ScoredTrack:
    """One ranked candidate."""
    track_id: str
    score: float
    method: SimilarityMethod

    def to_dict(self) -> Dict[str, Any]:
        return {"track_id": self.track_id, "score": self.score, "method": self.method.value}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScoredTrack":
        return cls(
            track_id=str(data["track_id"]),
            score=float(data["score"]),
            method=SimilarityMethod(data["method"]),
        )


@dataclass
class SimilarityResult:
    """Ranked candidates for one reference track, best first."""
    track_id: str
    method: SimilarityMethod
    tracks: List[ScoredTrack] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.tracks)

    @property
    def track_ids(self) -> List[str]:
        return [t.track_id for t in self.tracks]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "track_id": self.track_id,
            "method": self.method.value,
            "tracks": [t.to_dict() for t in self.tracks],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SimilarityResult":
        return cls(
            track_id=str(data["track_id"]),
            method=SimilarityMethod(data["method"]),
            tracks=[ScoredTrack.from_dict(t) for t in data.get("tracks", [])],
        )


def rank(scores: Dict[str, float], method: SimilarityMethod, limit: int) -> List[ScoredTrack]:
    """Sort by descending score, ties by track ID, and keep the top `limit`."""
    ordered = sorted(scores.items(), key=lambda item: (-item[1], item[0]))
    return [ScoredTrack(track_id=tid, score=score, method=method) for tid, score in ordered[:limit]]
