"""Structured logging for the triage service, built on :mod:`structlog`.

Every record carries the ``request_id`` of the HTTP call (if any) and the
``correlation_id``/``case_id`` of the agent invocation (if any), so one case can
be followed from ingress through each loop step.
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog
from structlog.contextvars import merge_contextvars
from structlog.typing import Processor

from .settings import get_settings

_TRACE_FIELDS: tuple[str, ...] = ("request_id", "correlation_id", "case_id")

_configured = False


def _level_number(level: str | int) -> int:
    if isinstance(level, int):
        return level
    value = logging.getLevelName(level.upper())
    if not isinstance(value, int):
        raise ValueError(f"Invalid log level: {level!r}")
    return value


def _ensure_trace_fields(_: Any, __: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    for field in _TRACE_FIELDS:
        event_dict.setdefault(field, None)
    return event_dict


def _renderers(log_format: str) -> list[Processor]:
    if log_format == "console":
        return [structlog.dev.ConsoleRenderer(colors=False)]
    return [structlog.processors.dict_tracebacks, structlog.processors.JSONRenderer()]


def configure_logging(
    level: str | int | None = None, *, log_format: str | None = None, force: bool = False
) -> None:
    """Configure structlog once per process; ``force`` re-applies the configuration."""

    global _configured
    if _configured and not force:
        return

    settings = get_settings()
    level_value = _level_number(level or settings.log_level)
    log_format = log_format or settings.log_format

    logging.basicConfig(format="%(message)s", level=level_value, stream=sys.stdout)
    structlog.configure(
        cache_logger_on_first_use=True,
        wrapper_class=structlog.make_filtering_bound_logger(level_value),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        processors=[
            merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", key="timestamp"),
            _ensure_trace_fields,
            *_renderers(log_format),
        ],
    )
    _configured = True


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Return a structured logger tagged with ``logger=name``."""

    configure_logging()
    return structlog.get_logger(name).bind(logger=name)


__all__ = ["configure_logging", "get_logger"]
