"""ARQ worker configuration."""

from arq import cron
from arq.connections import RedisSettings
from loguru import logger

from deadline.config import get_settings
from deadline.logging_config import setup_logging
from deadline.tasks.pipeline import TASK_FUNCTIONS, sweep_updates_task

settings = get_settings()


async def startup(ctx: dict) -> None:
    """Worker startup handler."""
    setup_logging(settings)
    logger.info("ARQ Worker starting up...")
    logger.info(f"Cron enabled: {settings.enable_cron}")


async def shutdown(ctx: dict) -> None:
    """Worker shutdown handler."""
    logger.info("ARQ Worker shutting down...")


def get_cron_jobs() -> list:
    """
    Scheduled jobs. Set ENABLE_CRON=true to turn on the daily update sweep.
    """
    if not settings.enable_cron:
        return []

    return [
        cron(
            sweep_updates_task,
            hour=settings.update_sweep_hour,
            minute=0,
            timeout=300,
            unique=True,  # Prevent overlapping sweeps
        ),
    ]


class WorkerSettings:
    """ARQ Worker settings."""

    redis_settings = RedisSettings.from_dsn(settings.redis_url)

    functions = TASK_FUNCTIONS

    on_startup = startup
    on_shutdown = shutdown

    cron_jobs = get_cron_jobs()

    max_jobs = 10
    job_timeout = 600  # 10 minutes
    keep_result = 3600

    # Retry settings
    max_tries = 3
    retry_delay = 60
