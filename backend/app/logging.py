"""structlog setup shared by the API process and the request controller.

Every event is rendered to stdout: human-readable in development,
one JSON object per line everywhere else so the platform log drain can
index request ids, tools and storage keys.
"""

from __future__ import annotations

import logging

import structlog

from app.config import settings


def _renderer(environment: str) -> structlog.typing.Processor:
    if environment == "development":
        return structlog.dev.ConsoleRenderer()
    return structlog.processors.JSONRenderer()


def _resolve_level(name: str) -> int:
    """Map LOG_LEVEL to a stdlib level number; unknown names fall back to INFO."""
    return logging.getLevelNamesMapping().get(name.upper(), logging.INFO)


def configure_logging() -> None:
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            _renderer(settings.environment),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(_resolve_level(settings.log_level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
