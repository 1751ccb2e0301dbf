"""Structured logging for crawl jobs and the HTTP layer."""

from __future__ import annotations

import logging

import structlog
from structlog.types import Processor

from ..config.settings import get_settings


def configure_logging() -> None:
    """Configure structlog.

    ``log_format="console"`` gives coloured key/value lines for local runs; anything
    else renders one JSON object per line. Crawl jobs bind ``job_id`` and ``domain``
    through contextvars, so every event inside a job carries them.
    """
    settings = get_settings()
    log_level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(log_level, int):
        log_level = logging.INFO

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if settings.log_format == "console":
        processors.append(structlog.dev.ConsoleRenderer())
    else:
        processors.append(structlog.processors.JSONRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None):
    return structlog.get_logger(name)


def bind_job_context(job_id: str, domain: str):
    """Context manager binding the crawl job to every log event emitted inside it."""
    return structlog.contextvars.bound_contextvars(job_id=job_id, domain=domain)
