"""
Logging utilities for Ops Tower.

Author: Ops Tower Team
Date: 2026-10-18
"""

import sys
from pathlib import Path
from typing import Optional

from loguru import logger

from opstower.config.settings import OpsTowerSettings

DEFAULT_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level>"
)


def get_logger(
    name: Optional[str] = None,
    level: str = "INFO",
    log_file: Optional[Path] = None,
    rotation: str = "10 MB",
    retention: str = "7 days",
    serialize: bool = False,
    format: Optional[str] = None,
):
    """
    Get configured logger instance.

    Args:
        name: Logger name bound into every record
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        log_file: Path to log file
        rotation: Log rotation size/time
        retention: Log retention period
        serialize: Emit JSON records instead of formatted text
        format: Log format string

    Returns:
        Configured logger instance
    """
    # Remove default handler
    logger.remove()

    format = format or DEFAULT_FORMAT

    logger.add(
        sys.stderr,
        format=format,
        level=level,
        colorize=not serialize,
        serialize=serialize,
    )

    if log_file:
        logger.add(
            log_file,
            format=format,
            level=level,
            rotation=rotation,
            retention=retention,
            compression="zip",
            serialize=serialize,
        )

    if name:
        return logger.bind(name=name)

    return logger


def configure_logging(settings: OpsTowerSettings, name: Optional[str] = "opstower"):
    """Install log sinks according to observability settings."""
    observability = settings.observability
    return get_logger(
        name=name,
        level=observability.log_level,
        log_file=observability.log_file,
        serialize=observability.json_logs,
    )
