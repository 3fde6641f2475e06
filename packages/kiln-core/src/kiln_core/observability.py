"""Structured logging, redaction and OpenTelemetry spans for kiln.

This module provides:
- Structured logging setup via structlog
- A redaction processor that masks build-time values in every log event
- OpenTelemetry span helpers for pipeline stages
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator, MutableMapping
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Protocol

import structlog
from opentelemetry import trace
from opentelemetry.trace import SpanKind, Status, StatusCode

if TYPE_CHECKING:
    from opentelemetry.trace import Span, Tracer
    from structlog.stdlib import BoundLogger

TRACER_NAME = "kiln"

REDACTION_MASK = "**********"

_logger: BoundLogger | None = None
_tracer: Tracer | None = None


class Masker(Protocol):
    """Finds one sensitive value in text without holding it in plain form."""

    length: int

    def mask(self, text: str, replacement: str) -> str: ...


# Maskers registered here apply to every log event and diagnostic string.
_maskers: list[Masker] = []
_redaction_lock = threading.Lock()


def get_logger() -> BoundLogger:
    """Get the kiln logger, creating it if necessary.

    Returns:
        structlog BoundLogger instance.

    Example:
        >>> logger = get_logger()
        >>> logger.info("stage_started", stage="build")
    """
    global _logger
    if _logger is None:
        _logger = structlog.get_logger(TRACER_NAME)
    assert _logger is not None  # Type narrowing for mypy
    return _logger


def get_tracer() -> Tracer:
    """Get the OpenTelemetry tracer for kiln.

    Returns:
        OpenTelemetry Tracer instance.
    """
    global _tracer
    if _tracer is None:
        _tracer = trace.get_tracer(TRACER_NAME)
    return _tracer


def register_redaction(masker: Masker) -> None:
    """Mask a value in logs and diagnostics until it is unregistered.

    Args:
        masker: Fingerprint of the sensitive value (e.g., a connection
            descriptor). The value itself is never stored here.
    """
    with _redaction_lock:
        if not any(m is masker for m in _maskers):
            _maskers.append(masker)


def unregister_redaction(masker: Masker) -> None:
    """Stop masking a value. Unknown maskers are ignored."""
    with _redaction_lock:
        _maskers[:] = [m for m in _maskers if m is not masker]


def active_redactions() -> int:
    """Number of values currently masked."""
    with _redaction_lock:
        return len(_maskers)


def clear_redactions() -> None:
    """Forget all registered values. Intended for tests."""
    with _redaction_lock:
        _maskers.clear()


def redact(text: str) -> str:
    """Replace every registered value in text with the redaction mask.

    Longer values are replaced first so that a value containing another
    registered value is masked as a whole.

    Args:
        text: Text that may contain sensitive values.

    Returns:
        Text with registered values masked.

    Example:
        >>> register_redaction(ValueFingerprint.of("postgres://u:p@db/app"))
        >>> redact("cannot reach postgres://u:p@db/app")
        'cannot reach **********'
    """
    with _redaction_lock:
        maskers = sorted(_maskers, key=lambda m: m.length, reverse=True)
    for masker in maskers:
        text = masker.mask(text, REDACTION_MASK)
    return text


def _redact_value(value: Any) -> Any:
    if isinstance(value, str):
        return redact(value)
    if isinstance(value, dict):
        return {k: _redact_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return type(value)(_redact_value(v) for v in value)
    return value


def redaction_processor(
    _logger: Any,
    _method_name: str,
    event_dict: MutableMapping[str, Any],
) -> MutableMapping[str, Any]:
    """structlog processor masking registered values in all event fields."""
    if not _maskers:
        return event_dict
    for key, value in list(event_dict.items()):
        event_dict[key] = _redact_value(value)
    return event_dict


def configure_logging(
    *,
    log_level: str = "INFO",
    json_format: bool = True,
    add_timestamp: bool = True,
) -> None:
    """Configure structured logging for kiln.

    Args:
        log_level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        json_format: If True, output JSON format. If False, output human-readable.
        add_timestamp: If True, add ISO timestamp to log entries.

    Example:
        >>> configure_logging(log_level="DEBUG", json_format=False)
    """
    processors: list[Any] = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        redaction_processor,
    ]

    if add_timestamp:
        processors.insert(0, structlog.processors.TimeStamper(fmt="iso"))

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

    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, log_level.upper()),
        force=True,
    )


@contextmanager
def span(
    name: str,
    *,
    kind: SpanKind = SpanKind.INTERNAL,
    attributes: dict[str, Any] | None = None,
    log_start: bool = True,
    log_end: bool = True,
) -> Iterator[Span]:
    """Create an OpenTelemetry span with structured logging.

    Args:
        name: Span name (e.g., "build_stage", "runtime_assembly").
        kind: Span kind.
        attributes: Optional span attributes. Must not contain build-time values.
        log_start: If True, log span start.
        log_end: If True, log span end.

    Yields:
        OpenTelemetry Span instance.

    Example:
        >>> with span("build_stage", attributes={"pipeline": "user-service"}):
        ...     executor.execute(value)
    """
    tracer = get_tracer()
    logger = get_logger()
    attrs = attributes or {}

    with tracer.start_as_current_span(f"{TRACER_NAME}.{name}", kind=kind, attributes=attrs) as s:
        if log_start:
            logger.debug(f"{name}_started", **attrs)
        try:
            yield s
            s.set_status(Status(StatusCode.OK))
            if log_end:
                logger.info(f"{name}_completed", **attrs)
        except Exception as exc:
            message = redact(str(exc))
            s.set_status(Status(StatusCode.ERROR, message))
            s.record_exception(exc, attributes={"exception.message": message})
            logger.error(f"{name}_failed", error=message, **attrs)
            raise
