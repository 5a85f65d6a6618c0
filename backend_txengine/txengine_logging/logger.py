"""
Structured JSON logging: timestamp, signature, event_type.

Every module logs through get_logger(__name__) with a snake_case event type
as the first argument and keyword context after it. The classifier logs at
debug level only; warnings are reserved for data fallbacks (default decimals,
unknown symbols) and errors for the fetch/storage boundary.

Depends only on stdlib logging and structlog so any backend_txengine module
can import it without cycles.
"""

from __future__ import annotations

import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any

import structlog

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_LEVEL_VALUE = getattr(logging, LOG_LEVEL, logging.INFO)

# json for aggregation, anything else renders for a terminal
LOG_FORMAT = os.getenv("LOG_FORMAT", "json").strip().lower()


def _add_timestamp(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Stamp ISO 8601 UTC time unless the caller supplied one."""
    event_dict.setdefault("timestamp", datetime.now(timezone.utc).isoformat())
    return event_dict


def _normalize_event(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Expose structlog's 'event' as event_type."""
    if "event" in event_dict and "event_type" not in event_dict:
        event_dict["event_type"] = event_dict.pop("event")
    return event_dict


def configure_structlog(*, level: int | None = None, fmt: str | None = None) -> None:
    """Configure structlog processors and renderer. Called once on import."""
    fmt = (fmt or LOG_FORMAT).lower()
    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        _add_timestamp,
        _normalize_event,
    ]
    if fmt == "json":
        processors.append(structlog.processors.JSONRenderer(sort_keys=True))
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            level if level is not None else LOG_LEVEL_VALUE
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


if not structlog.is_configured():
    configure_structlog()


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Return a structured logger for the given module name.

        logger = get_logger(__name__)
        logger.debug("classifier_tie_break", signature=sig, mints=[...])
    """
    return structlog.get_logger(name).bind(logger=name)


def bind_signature(signature: str, name: str = "backend_txengine") -> structlog.BoundLogger:
    """Logger with the transaction signature bound to every call."""
    return get_logger(name).bind(signature=signature)
