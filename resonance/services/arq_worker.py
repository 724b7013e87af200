"""
ARQ Worker - background clustering and prefetch jobs.

Run:
    arq resonance.services.arq_worker.WorkerSettings

Jobs are enqueued with deterministic IDs. A repeated request for the same user
(and anchor) is absorbed while the first job is queued or running; once that
job has finished its stored result is dropped and the job runs again, since
history and queue may have changed in between.
"""

import time
from typing import Any, Dict, List, Optional

from arq import create_pool
from arq.connections import ArqRedis, RedisSettings
from arq.constants import result_key_prefix
from arq.jobs import Job, JobStatus

from resonance.common.logging import get_logger, setup_logging
from resonance.common.logging.correlation import set_job_id, set_user_id
from resonance.core.config import get_settings
from resonance.core.errors import ResonanceError
from resonance.core.monitoring import arq_tasks_total
from resonance.modules.prefetch import PrefetchMode

logger = get_logger(__name__)


def get_redis_settings() -> RedisSettings:
    """Get Redis connection settings."""
    return RedisSettings.from_dsn(get_settings().redis_url or "redis://localhost:6379/0")


async def startup(ctx: dict) -> None:
    """Build one RecommendationService per worker process."""
    from resonance.services.recommendation import RecommendationService

    settings = get_settings()
    setup_logging(
        level=settings.log_level.value if settings.log_level else None,
        json_format=settings.log_json,
        component="worker",
    )
    ctx["service"] = RecommendationService.from_settings(settings)
    logger.info("Worker started")


async def shutdown(ctx: dict) -> None:
    service = ctx.get("service")
    if service is not None:
        await service.close()
    logger.info("Worker stopped")


async def cluster_user_taste_task(ctx: dict, user_id: str) -> Dict[str, Any]:
    """
    Cluster a user's listening history.

    Returns:
        {"status": "completed", "clusters": [...]} or {"status": "failed", "error": ...}
    """
    job_id = ctx.get("job_id", "unknown")
    set_job_id(job_id)
    set_user_id(user_id)
    started = time.time()

    try:
        clusters = await ctx["service"].cluster_user_taste(user_id)
    except ResonanceError as e:
        arq_tasks_total.labels(task_name="cluster_user_taste_task", status="failure").inc()
        return {"status": "failed", "error": e.message, "retryable": e.retryable, "user_id": user_id}

    arq_tasks_total.labels(task_name="cluster_user_taste_task", status="success").inc()
    return {
        "status": "completed",
        "user_id": user_id,
        "clusters": [c.to_dict() for c in clusters],
        "elapsed_sec": round(time.time() - started, 3),
    }


async def prefetch_task(
    ctx: dict,
    user_id: str,
    current_track_id: str,
    count: Optional[int] = None,
    mode: str = PrefetchMode.AUTOPLAY.value,
    next_track_ids: Optional[List[str]] = None,
) -> Dict[str, Any]:
    """Predict and stage the next tracks after current_track_id."""
    job_id = ctx.get("job_id", "unknown")
    set_job_id(job_id)
    set_user_id(user_id)

    try:
        entry = await ctx["service"].predict_next(
            user_id, current_track_id, count, PrefetchMode(mode), next_track_ids
        )
    except ResonanceError as e:
        arq_tasks_total.labels(task_name="prefetch_task", status="failure").inc()
        return {"status": "failed", "error": e.message, "retryable": e.retryable, "user_id": user_id}

    arq_tasks_total.labels(task_name="prefetch_task", status="success").inc()
    return {"status": "completed", "user_id": user_id, "entry": entry.to_dict()}


# ARQ Worker class
class WorkerSettings:
    """ARQ Worker settings for clustering and prefetch jobs."""
    functions = [cluster_user_taste_task, prefetch_task]
    on_startup = startup
    on_shutdown = shutdown
    redis_settings = get_redis_settings()

    max_jobs = get_settings().worker_max_jobs
    job_timeout = get_settings().worker_job_timeout
    keep_result = 3600
    max_tries = 1


# Redis pool for enqueueing jobs
_redis_pool: Optional[ArqRedis] = None


async def get_redis_pool() -> ArqRedis:
    """Get or create Redis connection pool."""
    global _redis_pool
    if _redis_pool is None:
        _redis_pool = await create_pool(get_redis_settings())
    return _redis_pool


def cluster_job_id(user_id: str) -> str:
    return f"taste-{user_id}"


def prefetch_job_id(user_id: str, current_track_id: str) -> str:
    return f"prefetch-{user_id}-{current_track_id}"


async def _enqueue_unique(function: str, job_id: str, *args: Any) -> str:
    """
    Enqueue under a deterministic job ID.

    arq refuses an ID while its job key or its result key exists. A queued or
    running job absorbs the request; a completed one has its result dropped
    first so the job is scheduled again.
    """
    pool = await get_redis_pool()
    status = await Job(job_id, redis=pool).status()
    if status == JobStatus.complete:
        await pool.delete(result_key_prefix + job_id)
        logger.debug("Previous job result dropped", data={"job_id": job_id})

    job = await pool.enqueue_job(function, *args, _job_id=job_id)
    if job is None:
        logger.info("Job already queued or running", data={"job_id": job_id, "function": function})
        return job_id
    return job.job_id


async def enqueue_cluster_user_taste(user_id: str) -> str:
    """Enqueue taste clustering for a user. Returns job ID."""
    return await _enqueue_unique("cluster_user_taste_task", cluster_job_id(user_id), user_id)


async def enqueue_prefetch(
    user_id: str,
    current_track_id: str,
    count: Optional[int] = None,
    mode: PrefetchMode = PrefetchMode.AUTOPLAY,
    next_track_ids: Optional[List[str]] = None,
) -> str:
    """Enqueue a prefetch for (user, anchor). Returns job ID."""
    return await _enqueue_unique(
        "prefetch_task",
        prefetch_job_id(user_id, current_track_id),
        user_id,
        current_track_id,
        count,
        PrefetchMode(mode).value,
        next_track_ids,
    )
