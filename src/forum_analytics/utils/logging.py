"""
Logging configuration for forum analytics.

This module sets up logging using loguru with a readable console format for
development and serialized JSON records when structured output is requested.
"""

import sys
from typing import Optional

from loguru import logger

from ..config import Settings, get_settings


def setup_logging(log_level: Optional[str] = None, settings: Optional[Settings] = None) -> None:
    """
    Set up logging configuration.

    Args:
        log_level: Override log level (DEBUG, INFO, WARNING, ERROR)
        settings: Settings to read the format and file sink from
    """
    settings = settings or get_settings()

    # Remove default handler
    logger.remove()

    level = (log_level or settings.log_level).upper()
    serialize = settings.log_format == "json"

    format_string = (
        "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
        "<level>{level: <8}</level> | "
        "<cyan>{module}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
        "<level>{message}</level>"
    )

    logger.add(
        sys.stderr,
        format=format_string,
        level=level,
        colorize=not serialize,
        serialize=serialize,
        backtrace=settings.debug_mode,
        diagnose=settings.debug_mode
    )

    if settings.log_file and not settings.debug_mode:
        logger.add(
            settings.log_file,
            format=format_string,
            level=level,
            rotation="1 day",
            retention="30 days",
            compression="gz",
            serialize=serialize,
            backtrace=False,
            diagnose=False
        )

    logger.debug(f"Logging initialized with level: {level}, format: {settings.log_format}")
