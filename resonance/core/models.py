"""
Catalog models shared by the similarity, taste and prefetch modules.

TrackFeatureRecord is owned by the catalog store: immutable once computed,
replaced wholesale when a track is re-analysed.
"""

from dataclasses import dataclass, field, asdict
from typing import Optional, Tuple, FrozenSet, Dict, Any, Iterable


@dataclass(frozen=True)
class AcousticFeatures:
    """Acoustic descriptors of a track. Every field is optional."""
    bpm: Optional[float] = None
    energy: Optional[float] = None        # 0.0 - 1.0
    valence: Optional[float] = None       # 0.0 - 1.0
    danceability: Optional[float] = None  # 0.0 - 1.0
    loudness: Optional[float] = None      # dBFS, typically -60 .. 0

    @property
    def is_empty(self) -> bool:
        return all(value is None for value in asdict(self).values())

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "AcousticFeatures":
        if not data:
            return cls()

        def _num(key: str) -> Optional[float]:
            value = data.get(key)
            return float(value) if value is not None else None

        return cls(
            bpm=_num("bpm"),
            energy=_num("energy"),
            valence=_num("valence"),
            danceability=_num("danceability"),
            loudness=_num("loudness"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {key: value for key, value in asdict(self).items() if value is not None}


@dataclass(frozen=True)
class TrackFeatureRecord:
    """Everything the similarity engine knows about one catalog track."""
    track_id: str
    embedding: Optional[Tuple[float, ...]] = None
    acoustic: AcousticFeatures = field(default_factory=AcousticFeatures)
    genres: FrozenSet[str] = frozenset()
    moods: FrozenSet[str] = frozenset()
    tags: FrozenSet[str] = frozenset()

    @classmethod
    def build(
        cls,
        track_id: str,
        embedding: Optional[Iterable[float]] = None,
        acoustic: Optional[Dict[str, Any]] = None,
        genres: Iterable[str] = (),
        moods: Iterable[str] = (),
        tags: Iterable[str] = (),
    ) -> "TrackFeatureRecord":
        """Normalize loose inputs (lists, dicts, mixed-case tags) into a record."""
        return cls(
            track_id=str(track_id),
            embedding=tuple(float(v) for v in embedding) if embedding is not None else None,
            acoustic=AcousticFeatures.from_dict(acoustic),
            genres=frozenset(g.strip().lower() for g in genres if g and g.strip()),
            moods=frozenset(m.strip().lower() for m in moods if m and m.strip()),
            tags=frozenset(t.strip().lower() for t in tags if t and t.strip()),
        )

    @property
    def has_embedding(self) -> bool:
        return bool(self.embedding)


@dataclass(frozen=True)
class TrackMetadata:
    """Denormalized track snapshot used for prefetch staging."""
    track_id: str
    title: str
    artist_name: Optional[str] = None
    album_title: Optional[str] = None
    duration_ms: Optional[int] = None
    file_path: Optional[str] = None
    format: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TrackMetadata":
        return cls(
            track_id=str(data["track_id"]),
            title=data.get("title", ""),
            artist_name=data.get("artist_name"),
            album_title=data.get("album_title"),
            duration_ms=data.get("duration_ms"),
            file_path=data.get("file_path"),
            format=data.get("format"),
        )
