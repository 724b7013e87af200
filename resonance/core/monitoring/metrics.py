"""
Engine metrics collection using Prometheus.

Tracks:
- Similarity query duration and timeouts
- Similarity cache hit/miss/degraded rate
- Taste clustering outcomes and chosen k
- Prefetch entries staged
- Worker task outcomes
"""

from prometheus_client import Counter, Histogram

# =============================================================================
# Similarity Metrics
# =============================================================================

similarity_query_seconds = Histogram(
    'similarity_query_seconds',
    'Similarity query duration in seconds',
    ['method'],  # semantic, acoustic, categorical, combined
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5]
)

similarity_query_timeouts_total = Counter(
    'similarity_query_timeouts_total',
    'Similarity queries cancelled by the query timeout',
    ['method']
)

# =============================================================================
# Cache Metrics
# =============================================================================

cache_operations_total = Counter(
    'similarity_cache_operations_total',
    'Similarity cache operations',
    ['operation', 'result']  # operation: get, set; result: hit, miss, error
)

# =============================================================================
# Clustering Metrics
# =============================================================================

clustering_runs_total = Counter(
    'taste_clustering_runs_total',
    'Taste clustering runs',
    ['outcome', 'k']  # outcome: clustered, below_threshold, degenerate, failed
)

clustering_duration_seconds = Histogram(
    'taste_clustering_duration_seconds',
    'Taste clustering duration in seconds',
    buckets=[0.05, 0.1, 0.5, 1, 2, 5, 10, 30]
)

# =============================================================================
# Prefetch / Worker Metrics
# =============================================================================

prefetch_entries_total = Counter(
    'prefetch_entries_total',
    'Prefetch entries staged',
    ['mode']  # autoplay, queue
)

arq_tasks_total = Counter(
    'arq_tasks_total',
    'Total ARQ tasks processed',
    ['task_name', 'status']  # status: success, failure
)

# =============================================================================
# Helper Functions
# =============================================================================

def record_cache_hit():
    """Record a cache hit."""
    cache_operations_total.labels(operation='get', result='hit').inc()


def record_cache_miss():
    """Record a cache miss."""
    cache_operations_total.labels(operation='get', result='miss').inc()


def record_cache_error(operation: str):
    """Record a cache operation that failed because the backend was unreachable."""
    cache_operations_total.labels(operation=operation, result='error').inc()


def record_clustering(outcome: str, k: int):
    """Record the outcome of a clustering run."""
    clustering_runs_total.labels(outcome=outcome, k=str(k)).inc()
