"""Centralized logging configuration."""

import sys

from loguru import logger

log_format = " | ".join(
    (
        "<lk>{time:YYYY-MM-DD HH:mm:ss.SSS}</>",
        "<lvl>{level:<8}</>",
        "<c>{name}::{function}:{line}</>",
        "{message}",
    )
)


def configure_logging(level: str = "INFO") -> None:
    # Replace the default handler so each line is emitted once in our format
    logger.remove()
    logger.add(sys.stderr, format=log_format, level=level.upper())
