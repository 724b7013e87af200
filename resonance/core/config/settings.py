"""
Settings - Application configuration using dataclasses.

Environment variables:
- CACHE_BACKEND: redis, memory
- REDIS_URL: Redis connection URL (cache backend and arq queue)
- CATALOG_DB_PATH: SQLite catalog database path
- LOG_LEVEL, LOG_JSON_FORMAT: logging overrides (unset: logging-config.yaml)
- SIMILARITY_*: similarity query and cache policy
- CLUSTER_*: taste clustering parameters
- PREFETCH_*: prefetch staging policy
- WORKER_*: arq worker limits
"""

import os
from enum import Enum
from typing import Optional, Tuple
from dataclasses import dataclass, field


class CacheBackend(str, Enum):
    """Cache backend options."""
    REDIS = "redis"
    MEMORY = "memory"


class LogLevel(str, Enum):
    """Log level options."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


def _float_tuple(raw: str) -> Tuple[float, ...]:
    return tuple(float(part) for part in raw.split(",") if part.strip())


def _int_tuple(raw: str) -> Tuple[int, ...]:
    return tuple(int(part) for part in raw.split(",") if part.strip())


@dataclass
class Settings:
    """Application settings from environment."""

    # Cache
    cache_backend: CacheBackend = field(
        default_factory=lambda: CacheBackend(os.getenv("CACHE_BACKEND", "redis"))
    )
    redis_url: Optional[str] = field(
        default_factory=lambda: os.getenv("REDIS_URL", "redis://localhost:6379/0")
    )
    cache_prefix: str = field(
        default_factory=lambda: os.getenv("CACHE_PREFIX", "resonance:")
    )

    # Catalog
    catalog_db_path: str = field(
        default_factory=lambda: os.getenv("CATALOG_DB_PATH", "data/catalog.db")
    )

    # Logging
    # None defers to logging-config.yaml
    log_level: Optional[LogLevel] = field(
        default_factory=lambda: LogLevel(os.environ["LOG_LEVEL"].upper()) if os.getenv("LOG_LEVEL") else None
    )
    log_json: Optional[bool] = field(
        default_factory=lambda: os.environ["LOG_JSON_FORMAT"].lower() == "true" if os.getenv("LOG_JSON_FORMAT") else None
    )

    # Similarity
    similarity_weights: Tuple[float, ...] = field(
        default_factory=lambda: _float_tuple(os.getenv("SIMILARITY_WEIGHTS", "0.5,0.3,0.2"))
    )
    similarity_cache_ttl: int = field(
        default_factory=lambda: int(os.getenv("SIMILARITY_CACHE_TTL", "600"))
    )
    similarity_query_timeout: float = field(
        default_factory=lambda: float(os.getenv("SIMILARITY_QUERY_TIMEOUT", "5.0"))
    )
    similarity_max_results: int = field(
        default_factory=lambda: int(os.getenv("SIMILARITY_MAX_RESULTS", "100"))
    )
    similarity_candidate_pool: int = field(
        default_factory=lambda: int(os.getenv("SIMILARITY_CANDIDATE_POOL", "1000"))
    )
    similarity_combined_fetch_factor: int = field(
        default_factory=lambda: int(os.getenv("SIMILARITY_COMBINED_FETCH_FACTOR", "3"))
    )
    similarity_mood_weight: float = field(
        default_factory=lambda: float(os.getenv("SIMILARITY_MOOD_WEIGHT", "2.0"))
    )

    # Taste clustering
    cluster_candidate_ks: Tuple[int, ...] = field(
        default_factory=lambda: _int_tuple(os.getenv("CLUSTER_CANDIDATE_KS", "2,3,4"))
    )
    cluster_silhouette_threshold: float = field(
        default_factory=lambda: float(os.getenv("CLUSTER_SILHOUETTE_THRESHOLD", "0.2"))
    )
    cluster_min_size: int = field(
        default_factory=lambda: int(os.getenv("CLUSTER_MIN_SIZE", "2"))
    )
    cluster_seed: int = field(
        default_factory=lambda: int(os.getenv("CLUSTER_SEED", "42"))
    )
    cluster_history_limit: int = field(
        default_factory=lambda: int(os.getenv("CLUSTER_HISTORY_LIMIT", "500"))
    )
    cluster_workers: int = field(
        default_factory=lambda: int(os.getenv("CLUSTER_WORKERS", "2"))
    )

    # Prefetch
    prefetch_count: int = field(
        default_factory=lambda: int(os.getenv("PREFETCH_COUNT", "5"))
    )
    prefetch_ttl: int = field(
        default_factory=lambda: int(os.getenv("PREFETCH_TTL", "3600"))
    )
    prefetch_recent_days: int = field(
        default_factory=lambda: int(os.getenv("PREFETCH_RECENT_DAYS", "7"))
    )

    # Worker
    worker_max_jobs: int = field(
        default_factory=lambda: int(os.getenv("WORKER_MAX_JOBS", "4"))
    )
    worker_job_timeout: int = field(
        default_factory=lambda: int(os.getenv("WORKER_JOB_TIMEOUT", "300"))
    )


# Singleton instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get settings singleton."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Drop the cached singleton so the next get_settings() re-reads the environment."""
    global _settings
    _settings = None
