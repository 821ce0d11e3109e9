"""structlog configuration for the mentor service.

Development runs get the console renderer; deployments behind a log collector
set LOG_FORMAT=json and get one JSON object per line instead.
"""

from __future__ import annotations

import logging
import sys

import structlog


def setup_logging(level: str = "INFO", log_format: str = "console") -> None:
    """Configure structlog once at startup; unknown levels fall back to INFO."""
    log_level = getattr(logging, level.upper(), logging.INFO)

    if log_format == "json":
        renderer = structlog.processors.JSONRenderer()
        exc_processor = structlog.processors.format_exc_info
    else:
        renderer = structlog.dev.ConsoleRenderer()
        exc_processor = structlog.dev.set_exc_info

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            exc_processor,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Return a logger bound to the module name, e.g. get_logger(__name__)."""
    return structlog.get_logger(name).bind(logger=name)
