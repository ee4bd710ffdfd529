"""Structured logging and OpenTelemetry spans for kiln.

This module provides:
- Structured logging setup via structlog
- OpenTelemetry span helpers for pipeline stages

kiln only uses the OpenTelemetry API. Without an SDK configured by the
host application, spans are no-ops.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

import structlog
from opentelemetry import trace
from opentelemetry.trace import SpanKind, Status, StatusCode

if TYPE_CHECKING:
    from opentelemetry.trace import Span, Tracer

logger = structlog.get_logger(__name__)

# Tracer name for OpenTelemetry
TRACER_NAME = "kiln"

_tracer: Tracer | None = None


def get_tracer() -> Tracer:
    """Get the OpenTelemetry tracer for kiln."""
    global _tracer
    if _tracer is None:
        _tracer = trace.get_tracer(TRACER_NAME)
    return _tracer


def configure_logging(
    *,
    log_level: str = "INFO",
    json_format: bool = False,
    add_timestamp: bool = True,
) -> None:
    """Configure structured logging for kiln.

    Log records go through the stdlib logging handler (stderr), so builder
    output and kiln events never mix with command output on stdout.

    Args:
        log_level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        json_format: If True, output JSON format. If False, output human-readable.
        add_timestamp: If True, add ISO timestamp to log entries.

    Example:
        >>> configure_logging(log_level="DEBUG", json_format=False)
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {log_level}")

    processors: list[Any] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if add_timestamp:
        processors.insert(1, structlog.processors.TimeStamper(fmt="iso"))

    if json_format:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", level=level, force=True)


@contextmanager
def span(
    name: str,
    *,
    kind: SpanKind = SpanKind.INTERNAL,
    attributes: dict[str, Any] | None = None,
) -> Iterator[Span]:
    """Create an OpenTelemetry span that records failures.

    Args:
        name: Span name (e.g., "kiln.stage.dependencies").
        kind: Span kind.
        attributes: Optional span attributes.

    Yields:
        OpenTelemetry Span instance.
    """
    with get_tracer().start_as_current_span(
        name,
        kind=kind,
        attributes=attributes or {},
        record_exception=False,
        set_status_on_exception=False,
    ) as s:
        try:
            yield s
            s.set_status(Status(StatusCode.OK))
        except Exception as exc:
            s.set_status(Status(StatusCode.ERROR, str(exc)))
            s.record_exception(exc)
            raise


@contextmanager
def stage_span(stage: str, **attributes: Any) -> Iterator[Span]:
    """Span and log one pipeline stage.

    Logs ``stage_started`` on entry and ``stage_completed`` or
    ``stage_failed`` on exit, with the attributes as log context.

    Example:
        >>> with stage_span("dependencies", manifest_digest=manifest.short_digest) as s:
        ...     s.set_attribute("kiln.cache_hit", True)
    """
    attrs = {f"kiln.{key}": value for key, value in attributes.items()}
    log = logger.bind(stage=stage, **attributes)
    log.info("stage_started")
    try:
        with span(f"kiln.stage.{stage}", attributes=attrs) as s:
            yield s
    except Exception as exc:
        log.error("stage_failed", error_type=type(exc).__name__)
        raise
    log.info("stage_completed")
