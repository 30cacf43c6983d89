"""Structured logging configuration."""

from __future__ import annotations

import logging

import structlog

from churchapi.config import Settings, get_settings

# Map log level string to logging constant
_LOG_LEVEL_MAP = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}


def _get_log_level(settings: Settings) -> int:
    return _LOG_LEVEL_MAP.get(settings.log_level.lower(), logging.INFO)


def configure_logging(settings: Settings | None = None) -> None:
    """
    Configure structlog for the process.

    The active module bound by ``run_as`` reaches every log line through
    ``merge_contextvars``.
    """
    settings = settings or get_settings()
    renderer: list[structlog.typing.Processor]
    if settings.log_format == "json":
        renderer = [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        renderer = [structlog.dev.ConsoleRenderer()]

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            *renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(_get_log_level(settings)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
