"""
PrefetchPredictor - predicts and stages the next tracks of a listening session.

Modes:
    autoplay - combined similarity to the current track, minus the anchor,
               recently played tracks and anything already queued
    queue    - the upcoming queue as-is, no scoring

Staged entries live at prefetch:{user_id}:{anchor} with their own TTL.
A failed write is logged; the entry is still returned to the caller.
"""

from datetime import timedelta
from typing import Dict, List, Optional, Sequence

from resonance.common.logging import get_logger
from resonance.core.config import Settings, get_settings
from resonance.core.errors import CacheUnavailableError, InvalidLimitError
from resonance.core.interfaces import CacheProtocol, CatalogStore, ListeningHistoryProvider
from resonance.core.models import TrackMetadata
from resonance.core.monitoring import prefetch_entries_total, record_cache_error
from resonance.modules.similarity import (
    MAX_SIMILARITY_RESULTS,
    SimilarityCache,
    SimilarityMethod,
    SimilarityRequest,
)

from .models import PrefetchEntry, PrefetchedTrack, PrefetchMode, prefetch_key

logger = get_logger(__name__)


class PrefetchPredictor:
    """Builds PrefetchEntry objects and stages them in the cache."""

    def __init__(
        self,
        similarity: SimilarityCache,
        catalog: CatalogStore,
        history: ListeningHistoryProvider,
        cache: CacheProtocol,
        settings: Optional[Settings] = None,
    ):
        settings = settings or get_settings()
        self.similarity = similarity
        self.catalog = catalog
        self.history = history
        self.cache = cache
        self.default_count = settings.prefetch_count
        self.ttl = settings.prefetch_ttl
        self.recent_window = timedelta(days=settings.prefetch_recent_days)

    async def predict_next(
        self,
        user_id: str,
        current_track_id: str,
        count: Optional[int] = None,
        mode: PrefetchMode = PrefetchMode.AUTOPLAY,
        next_track_ids: Optional[Sequence[str]] = None,
    ) -> PrefetchEntry:
        """
        Predict the next `count` tracks after current_track_id and stage them.

        Args:
            user_id: Listener
            current_track_id: Anchor track (currently playing)
            count: Number of tracks to stage (default PREFETCH_COUNT)
            mode: autoplay or queue
            next_track_ids: Explicit upcoming queue for queue mode
                (default: the provider's queue)

        Raises:
            InvalidLimitError: count < 1
            TrackNotFoundError: unknown anchor in autoplay mode
        """
        count = self.default_count if count is None else count
        if count < 1:
            raise InvalidLimitError("Prefetch count must be at least 1", data={"count": count})
        count = min(count, MAX_SIMILARITY_RESULTS)
        mode = PrefetchMode(mode)

        if mode is PrefetchMode.QUEUE:
            tracks = await self._from_queue(user_id, count, next_track_ids)
        else:
            tracks = await self._from_similarity(user_id, current_track_id, count)

        entry = PrefetchEntry(
            user_id=user_id,
            anchor_track_id=current_track_id,
            mode=mode,
            tracks=tracks,
            ttl=self.ttl,
        )
        await self._stage(entry)
        prefetch_entries_total.labels(mode=mode.value).inc()

        logger.info("Prefetch staged", data={
            "user_id": user_id,
            "anchor": current_track_id,
            "mode": mode.value,
            "count": len(tracks),
        })
        return entry

    async def get_prefetched(self, user_id: str, current_track_id: str) -> Optional[PrefetchEntry]:
        """Staged entry for (user, anchor), or None if absent, expired or unreadable."""
        key = prefetch_key(user_id, current_track_id)
        try:
            payload = await self.cache.get(key)
        except CacheUnavailableError:
            record_cache_error("get")
            return None
        if payload is None:
            return None
        try:
            return PrefetchEntry.from_dict(payload)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Ignoring malformed prefetch entry", data={"key": key, "error": str(e)})
            return None

    # ============== Modes ==============

    async def _from_similarity(self, user_id: str, anchor: str, count: int) -> List[PrefetchedTrack]:
        recent = await self.history.recently_played(user_id, self.recent_window)
        queued = await self.history.queued_track_ids(user_id)
        excluded = set(recent) | set(queued) | {anchor}

        limit = min(count + len(excluded), MAX_SIMILARITY_RESULTS)
        result = await self.similarity.get(
            SimilarityRequest(anchor, SimilarityMethod.COMBINED, limit)
        )

        eligible = [t for t in result.tracks if t.track_id not in excluded]
        metadata = await self.catalog.get_metadata([t.track_id for t in eligible])
        hydrated = [
            PrefetchedTrack(t.track_id, metadata[t.track_id], t.score)
            for t in eligible
            if self._has_metadata(metadata, t.track_id)
        ]
        return hydrated[:count]

    async def _from_queue(
        self,
        user_id: str,
        count: int,
        next_track_ids: Optional[Sequence[str]],
    ) -> List[PrefetchedTrack]:
        if next_track_ids is None:
            next_track_ids = await self.history.queued_track_ids(user_id)
        upcoming = list(next_track_ids)
        metadata = await self.catalog.get_metadata(upcoming)
        hydrated = [
            PrefetchedTrack(track_id, metadata[track_id])
            for track_id in upcoming
            if self._has_metadata(metadata, track_id)
        ]
        return hydrated[:count]

    @staticmethod
    def _has_metadata(metadata: Dict[str, TrackMetadata], track_id: str) -> bool:
        if track_id in metadata:
            return True
        logger.debug("No metadata for prefetch candidate, skipping", data={"track_id": track_id})
        return False

    async def _stage(self, entry: PrefetchEntry) -> None:
        key = prefetch_key(entry.user_id, entry.anchor_track_id)
        try:
            await self.cache.set(key, entry.to_dict(), ttl=entry.ttl)
        except CacheUnavailableError:
            record_cache_error("set")
            logger.warning("Prefetch cache unavailable, entry not staged", data={"key": key})
