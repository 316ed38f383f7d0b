"""Pytest fixtures for credrotate tests."""

import logging
from collections.abc import Generator
from contextlib import ExitStack
from unittest.mock import patch

import pytest
import structlog

from credrotate.config.settings import Settings, get_settings
from credrotate.rotation.memory import InMemoryCredentialProvider
from credrotate.rotation.protocol import BackendKind
from credrotate.rotation.types import RotationRequest

# Modules that import get_settings by name
_SETTINGS_CONSUMERS = (
    "credrotate.config.settings.get_settings",
    "credrotate.config.validation.get_settings",
    "credrotate.core.logging.get_settings",
    "credrotate.cli.get_settings",
)


# =============================================================================
# Structlog Configuration Fixture
# =============================================================================


@pytest.fixture(scope="function", autouse=True)
def reset_structlog_after_test():
    """Reset structlog and stdlib logging after each test.

    This ensures tests that call setup_logging don't leave handlers
    bound to streams that pytest has already closed.
    """
    root_logger = logging.getLogger()
    level = root_logger.level

    yield

    structlog.contextvars.clear_contextvars()
    structlog.reset_defaults()
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )
    for handler in list(root_logger.handlers):
        if isinstance(handler.formatter, structlog.stdlib.ProcessorFormatter):
            root_logger.removeHandler(handler)
    root_logger.setLevel(level)
    get_settings.cache_clear()


@pytest.fixture
def mock_settings() -> Settings:
    """Create mock settings for testing."""
    return Settings(
        log_level="DEBUG",
        log_format="console",
        step_timeout_seconds=5.0,
        require_verification=False,
        default_secret_length=32,
        default_encoding="alphanumeric",
        max_secret_length=4096,
        providers={},
    )


@pytest.fixture
def patch_settings(mock_settings: Settings) -> Generator[Settings, None, None]:
    """Patch get_settings to return mock settings."""
    with ExitStack() as stack:
        for target in _SETTINGS_CONSUMERS:
            stack.enter_context(patch(target, return_value=mock_settings))
        yield mock_settings


# =============================================================================
# Rotation Fixtures
# =============================================================================


@pytest.fixture
def secret_store_provider() -> InMemoryCredentialProvider:
    """In-memory secret store that takes caller-generated values."""
    return InMemoryCredentialProvider.for_backend(BackendKind.SECRET_STORE)


@pytest.fixture
def token_provider() -> InMemoryCredentialProvider:
    """In-memory token issuer that mints its own values."""
    return InMemoryCredentialProvider.for_backend(BackendKind.TOKEN_ISSUER)


@pytest.fixture(params=list(BackendKind), ids=lambda backend: backend.value)
def memory_provider(request: pytest.FixtureRequest) -> InMemoryCredentialProvider:
    """In-memory provider for each backend variant."""
    return InMemoryCredentialProvider.for_backend(request.param)


@pytest.fixture
def rotation_request() -> RotationRequest:
    """A request against the dev environment."""
    return RotationRequest(environment="dev", target="app/service-credential")
