"""Pipeline task definitions for ARQ."""

import functools
from typing import Any, Callable

from loguru import logger

from deadline.database import async_session_maker
from deadline.dependencies import build_detail_pipeline, build_update_detector
from deadline.services.persistence import EventGateway


def log_task_failure(task_name: str):
    """
    Decorator that logs a task failure with its arguments and re-raises,
    so ARQ records the job as failed (and retries it).

    Usage:
        @log_task_failure("my_task")
        async def my_task(ctx: dict, ...) -> dict:
            ...
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> Any:
            try:
                return await func(*args, **kwargs)
            except Exception as e:
                details = {**kwargs}
                if len(args) > 1:
                    details["args"] = args[1:]
                logger.error(f"[{task_name.upper()}] Failed ({details or 'no args'}): {e}")
                raise

        return wrapper
    return decorator


@log_task_failure("extract_details")
async def extract_details_task(ctx: dict, event_id: int) -> dict:
    """
    Run detail extraction for one event.

    Args:
        ctx: ARQ context
        event_id: ID of the Event to enrich

    Returns:
        dict with extraction counters
    """
    logger.info(f"[EXTRACT_DETAILS] Starting for event_id: {event_id}")

    async with async_session_maker() as session:
        result = await build_detail_pipeline(session).run(event_id)

    return {
        "status": "completed",
        "task": "extract_details",
        "event_id": event_id,
        "articles_scraped": result.articles_scraped,
        "images_found": result.images_found,
    }


@log_task_failure("detect_updates")
async def detect_updates_task(ctx: dict, event_id: int) -> dict:
    """
    Run the update detector for one event.

    Returns:
        dict with the outcome and the number of updates created
    """
    logger.info(f"[DETECT_UPDATES] Starting for event_id: {event_id}")

    async with async_session_maker() as session:
        result = await build_update_detector(session).run(event_id)

    return {
        "status": "completed",
        "task": "detect_updates",
        "event_id": event_id,
        "outcome": result.outcome.value,
        "updates_created": len(result.updates),
    }


@log_task_failure("sweep_updates")
async def sweep_updates_task(ctx: dict) -> dict:
    """Enqueue update detection for every event that has a search query."""
    async with async_session_maker() as session:
        event_ids = await EventGateway(session).list_trackable_event_ids()

    logger.info(f"[SWEEP_UPDATES] {len(event_ids)} events to check")

    if event_ids and ctx.get("redis"):
        for event_id in event_ids:
            await ctx["redis"].enqueue_job("detect_updates_task", event_id)
        logger.info(f"[SWEEP_UPDATES] Enqueued {len(event_ids)} update tasks")

    return {
        "status": "completed",
        "task": "sweep_updates",
        "events_enqueued": len(event_ids),
        "event_ids": event_ids,
    }


# All task functions for ARQ worker
TASK_FUNCTIONS = [
    extract_details_task,
    detect_updates_task,
    sweep_updates_task,
]
