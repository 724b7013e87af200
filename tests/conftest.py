"""
Pytest configuration for resonance tests.

Defines markers and shared fixtures: a small catalog (tracks A, B, C, ...),
listening history, an in-memory cache with a controllable clock.
"""
import os
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import List

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from resonance.core.config import CacheBackend, Settings, reset_settings
from resonance.core.connectors import InMemoryCache, InMemoryCatalog, InMemoryHistory
from resonance.core.models import TrackFeatureRecord, TrackMetadata


# =============================================================================
# Pytest Markers
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "asyncio: Async tests")
    config.addinivalue_line("markers", "integration: Integration tests (requires services like Redis)")
    config.addinivalue_line("markers", "requires_redis: Requires Redis service")
    config.addinivalue_line("markers", "slow: Slow tests")


# =============================================================================
# Shared Fixtures
# =============================================================================

class FakeClock:
    """Monotonic clock the test advances by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def project_root() -> Path:
    """Return project root path."""
    return PROJECT_ROOT


@pytest.fixture(autouse=True)
def _fresh_settings():
    """Settings singleton is re-read from the environment for every test."""
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def settings() -> Settings:
    """Defaults with the in-memory cache backend."""
    return Settings(cache_backend=CacheBackend.MEMORY)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def memory_cache(clock) -> InMemoryCache:
    return InMemoryCache(clock=clock)


def make_metadata(track_id: str) -> TrackMetadata:
    return TrackMetadata(
        track_id=track_id,
        title=f"Title {track_id}",
        artist_name=f"Artist {track_id}",
        album_title="Album",
        duration_ms=180_000,
        file_path=f"/music/{track_id}.flac",
        format="flac",
    )


@pytest.fixture
def abc_records() -> List[TrackFeatureRecord]:
    """
    A: reference (rock, energetic)
    B: embedding close to A, same genre, similar acoustics
    C: embedding far from A, different genre, opposite acoustics
    """
    return [
        TrackFeatureRecord.build(
            "A", embedding=[1.0, 0.0, 0.0],
            acoustic={"energy": 0.8, "valence": 0.6, "danceability": 0.7, "bpm": 128, "loudness": -8},
            genres=["rock"], moods=["energetic"],
        ),
        TrackFeatureRecord.build(
            "B", embedding=[0.9, 0.1, 0.0],
            acoustic={"energy": 0.75, "valence": 0.55, "danceability": 0.7, "bpm": 126, "loudness": -9},
            genres=["rock"], moods=["energetic"],
        ),
        TrackFeatureRecord.build(
            "C", embedding=[0.0, 0.0, 1.0],
            acoustic={"energy": 0.1, "valence": 0.1, "danceability": 0.2, "bpm": 70, "loudness": -30},
            genres=["ambient"], moods=["calm"],
        ),
    ]


@pytest.fixture
def catalog(abc_records) -> InMemoryCatalog:
    """A, B, C plus a few extra tracks with partial data."""
    cat = InMemoryCatalog(abc_records, [make_metadata(r.track_id) for r in abc_records])
    cat.add(
        TrackFeatureRecord.build(
            "D", embedding=[0.7, 0.7, 0.0],
            acoustic={"energy": 0.6, "valence": 0.5},
            genres=["rock", "indie"],
        ),
        make_metadata("D"),
    )
    cat.add(
        TrackFeatureRecord.build("E", acoustic={"energy": 0.82, "valence": 0.6}, moods=["energetic"]),
        make_metadata("E"),
    )
    cat.add(TrackFeatureRecord.build("F", genres=["jazz"]), make_metadata("F"))
    return cat


@pytest.fixture
def history() -> InMemoryHistory:
    return InMemoryHistory()


@pytest.fixture
def now() -> datetime:
    return datetime.now(timezone.utc)


@pytest.fixture
def long_ago(now) -> datetime:
    return now - timedelta(days=30)


@pytest.fixture
def redis_url() -> str:
    return os.getenv("REDIS_URL", "redis://localhost:6379/15")


@pytest.fixture
def metadata_factory():
    return make_metadata
