"""Unit tests for structured logging."""
# ruff: noqa: ARG002  # Fixtures used for setup side effects

import json
import logging
from io import StringIO
from unittest.mock import MagicMock

import pytest
import structlog

from credrotate.core.logging import (
    NOISY_LOGGERS,
    LogContext,
    add_service_name,
    fingerprint,
    get_logger,
    log_exception,
    log_external_call,
    setup_logging,
)


class TestAddServiceName:
    """Tests for add_service_name processor."""

    def test_adds_service(self):
        """Test service name is added to event dict."""
        result = add_service_name(None, "info", {})
        assert result["service"] == "credrotate"

    def test_keeps_existing_service(self):
        """Test an explicit service is not overwritten."""
        result = add_service_name(None, "info", {"service": "other"})
        assert result["service"] == "other"


class TestFingerprint:
    """Tests for target fingerprints."""

    def test_stable_and_short(self):
        """Test fingerprints are deterministic and 12 characters long."""
        assert fingerprint("arn:aws:iam::123:user/ci") == fingerprint("arn:aws:iam::123:user/ci")
        assert len(fingerprint("anything")) == 12

    def test_does_not_contain_input(self):
        """Test the fingerprint does not reveal the value."""
        value = "ghp_abcdef0123456789"
        assert value not in fingerprint(value)
        assert fingerprint(value) != fingerprint(value + "x")

    def test_custom_length(self):
        """Test a custom fingerprint length."""
        assert len(fingerprint("value", length=8)) == 8


class TestSetupLogging:
    """Tests for setup_logging function."""

    def test_setup_logging_default(self, patch_settings):
        """Test logging setup with default settings."""
        setup_logging()

        root_logger = logging.getLogger()
        assert root_logger.level == logging.DEBUG
        assert len(root_logger.handlers) == 1

    def test_setup_logging_custom_level(self, patch_settings):
        """Test logging setup with custom log level."""
        setup_logging(log_level="WARNING")

        assert logging.getLogger().level == logging.WARNING

    def test_noisy_loggers_quieted(self, patch_settings):
        """Test provider SDK loggers are kept at WARNING or above."""
        setup_logging(log_level="DEBUG")

        for name in NOISY_LOGGERS:
            assert logging.getLogger(name).level == logging.WARNING

    def test_json_output_format(self, patch_settings):
        """Test that JSON format produces valid JSON with context."""
        patch_settings.log_level = "INFO"
        setup_logging(json_format=True)

        output = StringIO()
        logging.getLogger().handlers[0].setStream(output)
        structlog.contextvars.clear_contextvars()

        with LogContext(rotation_id="rot-1", backend="memory-token"):
            get_logger("credrotate.test.json").info("rotation_started", environment="dev")

        data = json.loads(output.getvalue().strip().splitlines()[-1])
        assert data["event"] == "rotation_started"
        assert data["rotation_id"] == "rot-1"
        assert data["backend"] == "memory-token"
        assert data["environment"] == "dev"
        assert data["service"] == "credrotate"
        assert data["level"] == "info"
        assert "timestamp" in data

    def test_level_filtering(self, patch_settings):
        """Test events below the configured level are dropped."""
        setup_logging(log_level="WARNING", json_format=True)

        output = StringIO()
        logging.getLogger().handlers[0].setStream(output)

        logger = get_logger("credrotate.test.filter")
        logger.info("not_shown")
        logger.warning("shown")

        assert "not_shown" not in output.getvalue()
        assert "shown" in output.getvalue()

    def test_json_format_from_settings(self, patch_settings):
        """Test the log format defaults to the configured one."""
        patch_settings.log_format = "json"
        setup_logging()

        output = StringIO()
        logging.getLogger().handlers[0].setStream(output)
        get_logger("credrotate.test.settings").warning("from_settings")

        assert json.loads(output.getvalue().strip())["event"] == "from_settings"


class TestLogContext:
    """Tests for LogContext context manager."""

    def test_log_context_binds_values(self, patch_settings):
        """Test that LogContext binds values during block."""
        setup_logging()
        structlog.contextvars.clear_contextvars()

        with LogContext(rotation_id="rot-1", target_fingerprint="abc123"):
            ctx = structlog.contextvars.get_contextvars()
            assert ctx.get("rotation_id") == "rot-1"
            assert ctx.get("target_fingerprint") == "abc123"

        ctx = structlog.contextvars.get_contextvars()
        assert "rotation_id" not in ctx
        assert "target_fingerprint" not in ctx


class TestLogHelpers:
    """Tests for logging helper functions."""

    @pytest.fixture
    def mock_logger(self):
        """Create mock logger."""
        return MagicMock()

    def test_log_exception(self, mock_logger):
        """Test logging exception."""
        exc = ValueError("Test error")
        log_exception(mock_logger, exc, step="revoke")

        mock_logger.error.assert_called_once()
        args, kwargs = mock_logger.error.call_args
        assert args[0] == "exception_occurred"
        assert kwargs["error_type"] == "ValueError"
        assert kwargs["error_message"] == "Test error"
        assert kwargs["exc_info"] is exc
        assert kwargs["step"] == "revoke"

    def test_log_external_call_success(self, mock_logger):
        """Test logging successful provider call."""
        log_external_call(mock_logger, "memory-token", "create", 12.345, True)

        mock_logger.info.assert_called_once()
        args, kwargs = mock_logger.info.call_args
        assert args[0] == "external_call"
        assert kwargs["service"] == "memory-token"
        assert kwargs["operation"] == "create"
        assert kwargs["duration_ms"] == 12.35
        assert kwargs["success"] is True

    def test_log_external_call_failure(self, mock_logger):
        """Test logging failed provider call."""
        log_external_call(mock_logger, "memory-token", "revoke", 5000.0, False, timed_out=True)

        mock_logger.warning.assert_called_once()
        args, kwargs = mock_logger.warning.call_args
        assert args[0] == "external_call"
        assert kwargs["success"] is False
        assert kwargs["timed_out"] is True
