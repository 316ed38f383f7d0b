"""Core services and utilities for credrotate."""

from .logging import (
    LogContext,
    fingerprint,
    get_logger,
    log_exception,
    log_external_call,
    setup_logging,
)

__all__ = [
    "LogContext",
    "fingerprint",
    "get_logger",
    "log_exception",
    "log_external_call",
    "setup_logging",
]
