"""Taste cluster result model."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class TasteCluster:
    """
    A group of tracks representing one distinct taste preference.

    cluster_id is 0-based and stable for a given input order and seed.
    """
    cluster_id: int
    centroid: List[float]
    track_ids: List[str]
    suggested_name: str
    validity_score: float = 0.0  # mean silhouette of members, in [-1, 1]

    dominant_genre: Optional[str] = None
    dominant_mood: Optional[str] = None
    average_energy: float = 0.5
    average_valence: float = 0.5

    @property
    def size(self) -> int:
        return len(self.track_ids)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'cluster_id': self.cluster_id,
            'centroid': self.centroid,
            'track_ids': self.track_ids,
            'suggested_name': self.suggested_name,
            'validity_score': self.validity_score,
            'dominant_genre': self.dominant_genre,
            'dominant_mood': self.dominant_mood,
            'average_energy': self.average_energy,
            'average_valence': self.average_valence,
        }


@dataclass
class ClusterAttributes:
    """Naming inputs gathered from a cluster's member tracks."""
    genres: List[str] = field(default_factory=list)
    moods: List[str] = field(default_factory=list)
    average_energy: float = 0.5
    average_valence: float = 0.5
