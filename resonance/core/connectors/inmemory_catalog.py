"""
In-memory catalog and listening history for unit tests and fixtures.

Implements CatalogStore and ListeningHistoryProvider over plain dicts.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Collection, Dict, Iterable, List, Optional, Set, Tuple

import numpy as np

from resonance.core.models import TrackFeatureRecord, TrackMetadata
from resonance.core.ranking import DEFAULT_MOOD_WEIGHT, acoustic_similarity, cosine_similarities, top_ids


class InMemoryCatalog:
    """
    Dict-backed CatalogStore.

    Args:
        records: Feature records to serve
        metadata: Metadata snapshots to serve
        latency: Seconds every call sleeps before answering (timeout tests)
    """

    def __init__(
        self,
        records: Iterable[TrackFeatureRecord] = (),
        metadata: Iterable[TrackMetadata] = (),
        latency: float = 0.0,
    ):
        self._records: Dict[str, TrackFeatureRecord] = {r.track_id: r for r in records}
        self._metadata: Dict[str, TrackMetadata] = {m.track_id: m for m in metadata}
        self.latency = latency

    def add(self, record: TrackFeatureRecord, metadata: Optional[TrackMetadata] = None) -> None:
        """Insert or replace a track wholesale."""
        self._records[record.track_id] = record
        if metadata is not None:
            self._metadata[metadata.track_id] = metadata

    async def _wait(self) -> None:
        if self.latency:
            await asyncio.sleep(self.latency)

    async def get_features(self, track_ids: Collection[str]) -> Dict[str, TrackFeatureRecord]:
        await self._wait()
        return {tid: self._records[tid] for tid in track_ids if tid in self._records}

    async def candidate_ids(self, track_id: str, signal: str, pool_size: int) -> List[str]:
        """The `pool_size` most relevant tracks for one signal, reference excluded."""
        await self._wait()
        reference = self._records.get(track_id)
        if reference is None:
            return []
        others = [r for tid, r in self._records.items() if tid != track_id]

        if signal == "semantic":
            if not reference.has_embedding:
                return []
            dim = len(reference.embedding)
            # Mismatched embeddings stay in the pool so the engine fails closed on them
            mismatched = sorted(r.track_id for r in others if r.has_embedding and len(r.embedding) != dim)
            matching = [r for r in others if r.has_embedding and len(r.embedding) == dim]
            scores: Dict[str, float] = {}
            if matching:
                sims = cosine_similarities(
                    np.asarray(reference.embedding, dtype=np.float64),
                    np.asarray([r.embedding for r in matching], dtype=np.float64),
                )
                scores = dict(zip((r.track_id for r in matching), sims.tolist()))
            mismatched = mismatched[:pool_size]
            return mismatched + top_ids(scores, pool_size - len(mismatched))

        if signal == "acoustic":
            scores = {
                r.track_id: acoustic_similarity(reference.acoustic, r.acoustic)
                for r in others
                if r.acoustic.energy is not None
            }
            return top_ids(scores, pool_size)

        if signal == "categorical":
            scores = {}
            for r in others:
                shared = (
                    len(r.genres & reference.genres)
                    + DEFAULT_MOOD_WEIGHT * len(r.moods & reference.moods)
                    + len(r.tags & reference.tags)
                )
                if shared:
                    scores[r.track_id] = shared
            return top_ids(scores, pool_size)

        raise ValueError(f"Unknown similarity signal: {signal}")

    async def get_metadata(self, track_ids: Collection[str]) -> Dict[str, TrackMetadata]:
        await self._wait()
        return {tid: self._metadata[tid] for tid in track_ids if tid in self._metadata}


class InMemoryHistory:
    """Dict-backed ListeningHistoryProvider."""

    def __init__(self):
        self._plays: Dict[str, List[Tuple[str, datetime]]] = {}
        self._queues: Dict[str, List[str]] = {}

    def record_play(self, user_id: str, track_id: str, played_at: Optional[datetime] = None) -> None:
        self._plays.setdefault(user_id, []).append(
            (track_id, played_at or datetime.now(timezone.utc))
        )

    def set_queue(self, user_id: str, track_ids: Iterable[str]) -> None:
        self._queues[user_id] = list(track_ids)

    async def history_track_ids(self, user_id: str, limit: int) -> List[str]:
        plays = sorted(self._plays.get(user_id, []), key=lambda p: p[1], reverse=True)
        seen: List[str] = []
        for track_id, _ in plays:
            if track_id not in seen:
                seen.append(track_id)
            if len(seen) >= limit:
                break
        return seen

    async def recently_played(self, user_id: str, within: timedelta) -> Set[str]:
        cutoff = datetime.now(timezone.utc) - within
        return {tid for tid, played_at in self._plays.get(user_id, []) if played_at >= cutoff}

    async def queued_track_ids(self, user_id: str) -> List[str]:
        return list(self._queues.get(user_id, []))
