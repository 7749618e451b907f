"""Structured logging configuration using structlog.

Console output while developing, JSON lines when LOG_JSON is set.
Modules call get_logger(__name__) rather than print().
"""

import logging
import sys

import structlog


def setup_logging(json_output: bool = False, log_level: str = "INFO") -> None:
    """Configure structlog processors and bridge stdlib logging to stdout.

    Args:
        json_output: Emit JSON lines instead of the console renderer.
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL.
    """
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]

    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # werkzeug and waitress log through the stdlib
    root = logging.getLogger()
    root.setLevel(numeric_level)
    root.handlers = [logging.StreamHandler(sys.stdout)]


def get_logger(name: str) -> structlog.BoundLogger:
    return structlog.get_logger(name)
