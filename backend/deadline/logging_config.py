"""Loguru logging setup shared by the API and the worker."""

import os
import sys

from loguru import logger

from deadline.config import Settings, get_settings


def setup_logging(settings: Settings | None = None) -> None:
    """Configure loguru sinks: console, rotating file and error file."""
    settings = settings or get_settings()
    log_level = settings.log_level.upper()

    # Remove default handler
    logger.remove()

    # Console handler with colorization
    logger.add(
        sys.stderr,
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
        level=log_level,
        colorize=True,
    )

    log_dir = os.path.dirname(settings.log_file)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)

    # File handler with rotation
    logger.add(
        settings.log_file,
        format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} - {message}\n{exception}",
        level=log_level,
        rotation=settings.log_rotation_size,
        retention=f"{settings.log_retention_days} days",
        compression="zip",
    )

    # Separate error log file (ERROR and above)
    logger.add(
        settings.log_error_file,
        format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} - {message}\n{exception}",
        level="ERROR",
        rotation=settings.log_rotation_size,
        retention=f"{settings.log_retention_days} days",
        compression="zip",
        backtrace=True,
        diagnose=True,
    )

    logger.info(f"Logging configured at level {log_level}")
