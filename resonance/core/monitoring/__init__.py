"""Monitoring and metrics collection."""

from .metrics import (
    # Helper functions
    record_cache_hit,
    record_cache_miss,
    record_cache_error,
    record_clustering,

    # Metrics
    similarity_query_seconds,
    similarity_query_timeouts_total,
    cache_operations_total,
    clustering_runs_total,
    clustering_duration_seconds,
    prefetch_entries_total,
    arq_tasks_total,
)

__all__ = [
    'record_cache_hit',
    'record_cache_miss',
    'record_cache_error',
    'record_clustering',
    'similarity_query_seconds',
    'similarity_query_timeouts_total',
    'cache_operations_total',
    'clustering_runs_total',
    'clustering_duration_seconds',
    'prefetch_entries_total',
    'arq_tasks_total',
]
