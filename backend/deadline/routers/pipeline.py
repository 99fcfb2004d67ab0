"""Endpoints that enqueue pipeline jobs on the ARQ worker."""

from collections.abc import AsyncIterator

from arq import create_pool
from arq.connections import ArqRedis, RedisSettings
from fastapi import APIRouter, Depends, HTTPException, status
from loguru import logger
from redis.exceptions import RedisError

from deadline.auth import require_api_key
from deadline.config import get_settings

router = APIRouter(prefix="/pipeline", tags=["pipeline"], dependencies=[Depends(require_api_key)])


async def get_arq_pool() -> AsyncIterator[ArqRedis]:
    """Redis connection for enqueueing; 503 when Redis is unreachable."""
    settings = get_settings()
    try:
        pool = await create_pool(RedisSettings.from_dsn(settings.redis_url))
    except (RedisError, OSError) as e:
        logger.error(f"[PIPELINE] Redis unavailable: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Task queue unavailable",
        ) from e

    try:
        yield pool
    finally:
        await pool.aclose()


async def enqueue(pool: ArqRedis, function: str, *args) -> dict:
    job = await pool.enqueue_job(function, *args)
    job_id = job.job_id if job else None
    logger.info(f"[PIPELINE] Enqueued {function}{args or ''}: {job_id}")
    return {"status": "queued", "task": function, "job_id": job_id}


@router.post("/details/{event_id}")
async def enqueue_details(event_id: int, pool: ArqRedis = Depends(get_arq_pool)):
    """Queue detail extraction for an event."""
    return await enqueue(pool, "extract_details_task", event_id)


@router.post("/updates/sweep")
async def enqueue_update_sweep(pool: ArqRedis = Depends(get_arq_pool)):
    """Queue update detection for every event with a search query."""
    return await enqueue(pool, "sweep_updates_task")


@router.post("/updates/{event_id}")
async def enqueue_updates(event_id: int, pool: ArqRedis = Depends(get_arq_pool)):
    """Queue update detection for an event."""
    return await enqueue(pool, "detect_updates_task", event_id)
