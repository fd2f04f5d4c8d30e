"""Logging setup for procview."""

import logging
import sys

import structlog


def configure_logging(level: str = "WARNING") -> None:
    """
    Configure structlog to render to stderr, filtered at the given level.

    Args:
        level: Standard logging level name, e.g. "DEBUG" or "WARNING".
    """
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        raise ValueError(f"unknown log level: {level!r}")

    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="%H:%M:%S"),
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )
