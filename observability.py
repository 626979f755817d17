"""Logging and metrics setup for the ranking service.

Logs go through structlog (JSON by default, console with LOG_FORMAT=console).
Ranking runs publish CloudWatch Embedded Metrics under METRICS_NAMESPACE via
the re-exported `metric_scope` decorator.
"""
from __future__ import annotations

import logging
import os

from aws_embedded_metrics import metric_scope
import structlog

__all__ = [
    "METRICS_NAMESPACE",
    "init_observability",
    "metric_scope",
]

METRICS_NAMESPACE = "ResumeRanker"

# Third-party loggers that are chatty at INFO
QUIET_LOGGERS = ("uvicorn.access", "httpx", "openai", "sqlalchemy.engine")


def _processors(log_format: str) -> list[structlog.types.Processor]:
    renderer = (
        structlog.processors.JSONRenderer()
        if log_format == "json"
        else structlog.dev.ConsoleRenderer()
    )
    return [
        # request_id / path bound by RequestIdMiddleware
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        renderer,
    ]


def init_observability() -> None:
    """Configure structlog and the stdlib root logger. Safe to call more than once."""
    log_format = os.getenv("LOG_FORMAT", "json").lower()
    log_level = os.getenv("LOG_LEVEL", "INFO").upper()

    structlog.configure(
        processors=_processors(log_format),
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    root_logger = logging.getLogger()
    if not root_logger.handlers:
        root_logger.addHandler(logging.StreamHandler())
    root_logger.setLevel(log_level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    structlog.get_logger(__name__).info(
        "Observability initialized", log_format=log_format, metrics_namespace=METRICS_NAMESPACE
    )
