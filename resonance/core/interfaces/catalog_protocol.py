"""
Catalog and listening-history protocols.

Implementations:
- InMemoryCatalog (resonance.core.connectors.inmemory_catalog)
- SQLiteCatalog (resonance.core.connectors.sqlite_catalog)

The catalog is always queried by track ID set. Candidate retrieval is the
store's job (vector index, tag index, or a batched scan with
resonance.core.ranking); the engine scores what it is given.
"""

from datetime import timedelta
from typing import Protocol, Collection, Dict, List, Set, runtime_checkable

from resonance.core.models import TrackFeatureRecord, TrackMetadata


@runtime_checkable
class CatalogStore(Protocol):
    """Read-only access to track features and metadata."""

    async def get_features(self, track_ids: Collection[str]) -> Dict[str, TrackFeatureRecord]:
        """Feature records for the given IDs. Unknown IDs are absent from the result."""
        ...

    async def candidate_ids(self, track_id: str, signal: str, pool_size: int) -> List[str]:
        """
        The `pool_size` track IDs most relevant to track_id for one signal
        ("semantic", "acoustic", "categorical"), best first. Ranked by the
        signal's own metric, never by ID order. May include track_id itself.
        """
        ...

    async def get_metadata(self, track_ids: Collection[str]) -> Dict[str, TrackMetadata]:
        """Metadata snapshots for the given IDs."""
        ...


@runtime_checkable
class ListeningHistoryProvider(Protocol):
    """Listening history and session state for a user."""

    async def history_track_ids(self, user_id: str, limit: int) -> List[str]:
        """Distinct track IDs from the user's history, most recent first."""
        ...

    async def recently_played(self, user_id: str, within: timedelta) -> Set[str]:
        """Track IDs played within the given window."""
        ...

    async def queued_track_ids(self, user_id: str) -> List[str]:
        """Track IDs in the user's queue, in queue order."""
        ...
