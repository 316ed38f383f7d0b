"""Structured logging configuration for credrotate.

Provides structured logging with rotation context propagation and log
level management using structlog. Logs go to stderr so command output on
stdout stays machine-readable.
"""
# ruff: noqa: ARG001  # Processor signatures required by structlog API

import hashlib
import logging
import sys
from typing import Any, Literal

import structlog
from structlog.types import Processor

from credrotate.config.settings import get_settings

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

SERVICE_NAME = "credrotate"

# Provider SDKs log request details at DEBUG; keep them quiet by default
NOISY_LOGGERS = ("botocore", "boto3", "urllib3", "httpx", "httpcore")


def add_service_name(
    logger: logging.Logger,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Add the service name to log entries."""
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def fingerprint(value: str, length: int = 12) -> str:
    """Return a short, non-reversible fingerprint of a sensitive string.

    Used to correlate log entries about a target without logging the target
    itself (some targets are old token values).
    """
    return hashlib.sha256(value.encode("utf-8")).hexdigest()[:length]


def setup_logging(
    log_level: LogLevel | None = None,
    json_format: bool | None = None,
    add_timestamp: bool = True,
) -> None:
    """Configure structured logging for the application.

    Args:
        log_level: Override log level (default from settings)
        json_format: Use JSON output (default from settings.log_format)
        add_timestamp: Include timestamp in log entries
    """
    settings = get_settings()

    effective_level = log_level or settings.log_level
    effective_json = json_format if json_format is not None else settings.log_format == "json"

    numeric_level = getattr(logging, effective_level.upper(), logging.INFO)

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        add_service_name,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if add_timestamp:
        shared_processors.insert(0, structlog.processors.TimeStamper(fmt="iso"))

    renderer: Processor
    if effective_json:
        shared_processors.append(structlog.processors.format_exc_info)
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=[structlog.stdlib.filter_by_level]
        + shared_processors
        + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(numeric_level)

    for logger_name in NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(max(numeric_level, logging.WARNING))


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance.

    Args:
        name: Logger name (uses caller module if None)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)


class LogContext:
    """Context manager for adding temporary log context.

    Example:
        with LogContext(rotation_id=rotation_id, backend="github-app"):
            logger.info("rotation_started")
            # All logs in this block will include rotation_id and backend
    """

    def __init__(self, **kwargs: Any):
        """Initialize with context values to add."""
        self.context = kwargs

    def __enter__(self) -> "LogContext":
        """Enter context and bind values."""
        structlog.contextvars.bind_contextvars(**self.context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit context and unbind values."""
        structlog.contextvars.unbind_contextvars(*self.context.keys())


def log_exception(
    logger: structlog.stdlib.BoundLogger,
    exc: BaseException,
    **kwargs: Any,
) -> None:
    """Log an exception with full context."""
    logger.error(
        "exception_occurred",
        error_type=type(exc).__name__,
        error_message=str(exc),
        exc_info=exc,
        **kwargs,
    )


def log_external_call(
    logger: structlog.stdlib.BoundLogger,
    service: str,
    operation: str,
    duration_ms: float,
    success: bool,
    **kwargs: Any,
) -> None:
    """Log an external service call."""
    level = "info" if success else "warning"
    getattr(logger, level)(
        "external_call",
        service=service,
        operation=operation,
        duration_ms=round(duration_ms, 2),
        success=success,
        **kwargs,
    )
