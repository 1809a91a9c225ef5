"""
Structured Logging
==================

JSON-structured logging with ticket and correlation ID tracking.

Provides:
- Structured JSON logs (parseable by log aggregators)
- Ticket-scoped loggers for workflow runs
- Performance timing utilities

Usage:
    from helpdesk.shared.infrastructure.logging import get_logger

    logger = get_logger(__name__)
    logger.info("Ticket triaged", extra={"ticket_id": "65f1c0..."})
"""

import logging
import sys
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Optional, Union

from pythonjsonlogger import jsonlogger

REDACTED = "***REDACTED***"
_SENSITIVE_MARKERS = ("password", "secret", "api_key", "authorization")


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """
    Custom JSON formatter with additional fields.

    Adds:
    - timestamp in ISO format
    - correlation_id and ticket_id when available
    - environment
    """

    def __init__(self, *args: Any, environment: str = "unknown", **kwargs: Any):
        super().__init__(*args, **kwargs)
        self._environment = environment

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        if not log_record.get("timestamp"):
            log_record["timestamp"] = datetime.now(timezone.utc).isoformat()

        for key in ("correlation_id", "ticket_id"):
            if hasattr(record, key):
                log_record[key] = getattr(record, key)

        log_record["environment"] = getattr(record, "environment", self._environment)

        for key, value in list(log_record.items()):
            if isinstance(value, str) and _is_sensitive(key):
                log_record[key] = REDACTED


def _is_sensitive(key: str) -> bool:
    lowered = key.lower()
    if "token" in lowered and "tokens" not in lowered:
        return True
    return any(marker in lowered for marker in _SENSITIVE_MARKERS)


def setup_logging(
    level: str = "INFO",
    environment: str = "development",
) -> None:
    """
    Configure structured JSON logging for the application.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR)
        environment: Environment name for log context
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(getattr(logging, level.upper()))

    formatter = CustomJsonFormatter(
        "%(asctime)s %(name)s %(levelname)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        environment=environment,
    )

    handler.setFormatter(formatter)
    root_logger.addHandler(handler)

    # Silence noisy loggers
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)
    logging.getLogger("apscheduler").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance with the given name."""
    return logging.getLogger(name)


def get_context_logger(
    name: str,
    ticket_id: Optional[str] = None,
    correlation_id: Optional[str] = None,
) -> Union[logging.Logger, logging.LoggerAdapter]:
    """
    Get a logger bound to a ticket and/or correlation ID.

    Bound values are merged into every record, so each workflow run can be
    followed in the aggregated logs by ``ticket_id``.

    Args:
        name: Logger name
        ticket_id: Ticket the current work belongs to
        correlation_id: Delivery/run identifier

    Returns:
        A plain logger when nothing is bound, otherwise a LoggerAdapter
    """
    logger = get_logger(name)
    bound = {}
    if ticket_id:
        bound["ticket_id"] = ticket_id
    if correlation_id:
        bound["correlation_id"] = correlation_id
    if not bound:
        return logger
    return _MergingAdapter(logger, bound)


class _MergingAdapter(logging.LoggerAdapter):
    """LoggerAdapter that keeps call-site ``extra`` instead of replacing it."""

    def process(self, msg: Any, kwargs: Any) -> tuple[Any, Any]:
        kwargs["extra"] = {**self.extra, **(kwargs.get("extra") or {})}
        return msg, kwargs


@contextmanager
def log_latency(logger: Any, operation: str, **extra_context: Any):
    """
    Context manager for measuring and logging operation latency.

    Usage:
        with log_latency(logger, "classify", model="gpt-4o-mini"):
            result = await classifier.classify(title, description)
    """
    start = time.perf_counter()
    try:
        yield
    except Exception as e:
        latency_ms = (time.perf_counter() - start) * 1000
        logger.warning(
            f"{operation} failed",
            extra={
                "operation": operation,
                "latency_ms": round(latency_ms, 2),
                "error": str(e),
                "error_type": type(e).__name__,
                **extra_context,
            },
        )
        raise
    latency_ms = (time.perf_counter() - start) * 1000
    logger.info(
        f"{operation} completed",
        extra={
            "operation": operation,
            "latency_ms": round(latency_ms, 2),
            **extra_context,
        },
    )
