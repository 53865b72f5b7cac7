"""
Centralized structlog configuration for the portal scraper.

Logs are JSON lines on stdout. ``configure_logging`` is called once by the
job entry point with the loaded settings; until then structlog's defaults
apply, which keeps imports side-effect free for tests.
"""

from __future__ import annotations

import logging

import structlog

SERVICE_NAME = "portal-scraper"


def _normalize_log_level(level: str | None, environment: str) -> int:
    env = environment.lower()
    if level:
        normalized = level.strip().upper()
    else:
        normalized = "INFO" if env == "production" else "DEBUG"
    return logging._nameToLevel.get(normalized, logging.INFO)


def configure_logging(level: str | None = None, environment: str = "development") -> None:
    """
    Configure structlog with JSON output.

    Service and environment are bound as context variables so every event
    carries them without each call site repeating them.
    """
    resolved_level = _normalize_log_level(level, environment)
    logging.basicConfig(level=resolved_level)
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.TimeStamper(fmt="iso"),  # ISO 8601 timestamps
            structlog.processors.add_log_level,
            structlog.processors.EventRenamer("message"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,  # Exception formatting
            structlog.processors.JSONRenderer(),  # JSON output
        ],
        wrapper_class=structlog.make_filtering_bound_logger(resolved_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
    )
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(
        logger=SERVICE_NAME,
        service=SERVICE_NAME,
        environment=environment,
    )


# Global logger instance; resolved against the current configuration on each call
logger = structlog.get_logger(SERVICE_NAME)
