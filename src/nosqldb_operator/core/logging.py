"""
Structured logging for the operator.

One structlog configuration for the whole process: JSON lines in the
cluster, coloured console output on a developer terminal.  Every module
gets its logger with ``get_logger(__name__)`` and logs dotted event names
with keyword fields.

Manifesto:
    Reconciliation passes interleave in the operator's log stream.  Each
    line should say which resource it belongs to without the caller
    threading that through every call:

    - **Structured:** Event name plus key/value fields, never formatted text
    - **Correlated:** ``LogContext(resource=..., namespace=...)`` binds the
      pass identity for every line logged inside it
    - **Toggleable:** ``DEBUG_LOG`` switches between DEBUG and INFO

Architecture:
    ::

        configure_logging(level="DEBUG", json_format=None, service="nosqldb-operator")
              │
              ▼
        structlog processors:
          1. merge_contextvars      (LogContext / bind_context)
          2. add_log_level
          3. add_logger_name
          4. TimeStamper(iso)
          5. service metadata
          6. JSONRenderer  |  ConsoleRenderer

Examples:
    >>> from nosqldb_operator.core.logging import configure_logging, get_logger
    >>> configure_logging(level="INFO", json_format=True)
    >>> logger = get_logger(__name__)
    >>> logger.info("reconcile.start", resource="mongo", namespace="db")

Tags:
    logging, structlog, observability, operator-core

Doc-Types:
    - API Reference
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

_SERVICE_NAME = "nosqldb-operator"


def _add_service_metadata(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Add service-level metadata to all logs."""
    event_dict.setdefault("service", _SERVICE_NAME)
    return event_dict


def configure_logging(
    level: str = "INFO",
    json_format: bool | None = None,
    service: str = "nosqldb-operator",
) -> None:
    """Configure structured logging for the process.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_format: True for JSON, False for console, None for auto (JSON if not tty)
        service: Service name included in every line
    """
    global _SERVICE_NAME
    _SERVICE_NAME = service

    if json_format is None:
        json_format = not sys.stdout.isatty()

    processors: list[Processor] = [
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        _add_service_metadata,
    ]

    if json_format:
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    numeric_level = getattr(logging, level.upper())
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # kopf and the kubernetes client log through the stdlib
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=numeric_level)


def level_for(debug_log: bool) -> str:
    """Log level selected by the ``DEBUG_LOG`` toggle."""
    return "DEBUG" if debug_log else "INFO"


def get_logger(name: str | None = None) -> Any:
    """Get a structlog logger, usually ``get_logger(__name__)``."""
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """Bind context to include in all subsequent logs."""
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    """Remove specific keys from logging context."""
    structlog.contextvars.unbind_contextvars(*keys)


class LogContext:
    """Context manager for scoped logging context.

    Example:
        with LogContext(resource="mongo", namespace="db"):
            logger.info("reconcile.start")
    """

    def __init__(self, **kwargs: Any):
        self._context = kwargs

    def __enter__(self) -> LogContext:
        bind_context(**self._context)
        return self

    def __exit__(self, *args: Any) -> None:
        unbind_context(*self._context.keys())


__all__ = [
    "configure_logging",
    "level_for",
    "get_logger",
    "bind_context",
    "unbind_context",
    "LogContext",
]
