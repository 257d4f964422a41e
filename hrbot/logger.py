"""
Structured logging configuration using structlog.
"""
import logging
import sys
from typing import Optional

import structlog

from hrbot.config import settings

# Libraries that log every request at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "aiogram.event", "apscheduler.executors.default")


def configure_logging(level: Optional[str] = None) -> None:
    """Route stdlib and structlog output through one renderer.

    ``level`` defaults to ``settings.LOG_LEVEL``. Output is colored key-value
    pairs on a terminal and one JSON object per line otherwise.
    """
    log_level = logging.getLevelName((level or settings.LOG_LEVEL).upper())
    if not isinstance(log_level, int):
        log_level = logging.INFO

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=log_level)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))

    renderer = (
        structlog.dev.ConsoleRenderer(colors=True)
        if sys.stdout.isatty()
        else structlog.processors.JSONRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    """Module logger; events are short phrases plus key-value context."""
    return structlog.get_logger(name)
