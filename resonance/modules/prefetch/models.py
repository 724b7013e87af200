"""Prefetch staging models."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from resonance.core.models import TrackMetadata


class PrefetchMode(str, Enum):
    """How the next tracks are chosen."""
    AUTOPLAY = "autoplay"  # similarity-driven
    QUEUE = "queue"        # explicit upcoming queue


@dataclass(frozen=True)
class PrefetchedTrack:
    track_id: str
    metadata: TrackMetadata
    score: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'track_id': self.track_id,
            'metadata': self.metadata.to_dict(),
            'score': self.score,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PrefetchedTrack":
        score = data.get('score')
        return cls(
            track_id=str(data['track_id']),
            metadata=TrackMetadata.from_dict(data['metadata']),
            score=float(score) if score is not None else None,
        )


@dataclass
class PrefetchEntry:
    """Tracks staged for one user after one anchor track."""
    user_id: str
    anchor_track_id: str
    mode: PrefetchMode
    tracks: List[PrefetchedTrack]
    ttl: int
    created_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    @property
    def track_ids(self) -> List[str]:
        return [t.track_id for t in self.tracks]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'user_id': self.user_id,
            'anchor_track_id': self.anchor_track_id,
            'mode': self.mode.value,
            'tracks': [t.to_dict() for t in self.tracks],
            'ttl': self.ttl,
            'created_at': self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PrefetchEntry":
        return cls(
            user_id=str(data['user_id']),
            anchor_track_id=str(data['anchor_track_id']),
            mode=PrefetchMode(data['mode']),
            tracks=[PrefetchedTrack.from_dict(t) for t in data.get('tracks', [])],
            ttl=int(data['ttl']),
            created_at=data.get('created_at', ''),
        )


def prefetch_key(user_id: str, anchor_track_id: str) -> str:
    return f"prefetch:{user_id}:{anchor_track_id}"
