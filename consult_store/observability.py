"""Logging configuration and Prometheus counters for the stores."""

from __future__ import annotations

import logging
import sys
from typing import Optional

import structlog
from prometheus_client import REGISTRY, Counter

from consult_store.config import StoreSettings, get_store_settings


def _get_or_create_metric(metric_cls, name: str, documentation: str, labelnames):
    existing = REGISTRY._names_to_collectors.get(name)
    if existing is not None:
        return existing
    return metric_cls(name, documentation, labelnames)


ACTIONS_TOTAL = _get_or_create_metric(
    Counter,
    "consult_store_actions_total",
    "Actions applied to a consult store",
    ("kind", "action"),
)

REQUEST_FAILURES = _get_or_create_metric(
    Counter,
    "consult_store_request_failures_total",
    "Asynchronous store workflows that ended in failure",
    ("kind", "request"),
)


def configure_logging(settings: Optional[StoreSettings] = None) -> None:
    """Route structlog through the standard library with JSON (or console) output."""

    settings = settings or get_store_settings()
    level = getattr(logging, settings.log_level, logging.INFO)
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    renderer = (
        structlog.processors.JSONRenderer()
        if settings.json_logs
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


__all__ = ["ACTIONS_TOTAL", "REQUEST_FAILURES", "configure_logging"]
