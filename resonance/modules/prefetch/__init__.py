"""
Prefetch - stages upcoming tracks for low-latency playback.
"""

from .models import PrefetchEntry, PrefetchedTrack, PrefetchMode, prefetch_key
from .predictor import PrefetchPredictor

__all__ = [
    'PrefetchEntry',
    'PrefetchedTrack',
    'PrefetchMode',
    'prefetch_key',
    'PrefetchPredictor',
]
