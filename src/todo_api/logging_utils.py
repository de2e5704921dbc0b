"""Configure loguru sinks for the server and the CLI."""

from __future__ import annotations

import sys

from loguru import logger

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{module}</cyan>:<cyan>{line}</cyan> - "
    "{message}"
)


def configure_logging(level: str = "INFO") -> int:
    """Replace the default loguru sink with a stderr sink at *level*.

    Args:
        level: Minimum level name, case-insensitive.

    Returns:
        The id of the added sink, usable with ``logger.remove``.
    """
    logger.remove()
    return logger.add(sys.stderr, level=level.upper(), format=LOG_FORMAT)
