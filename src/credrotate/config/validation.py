"""Configuration validation for startup checks.

Validates that configuration is present and consistent before any
rotation touches a backend.

Usage:
    from credrotate.config.validation import validate_configuration

    errors = validate_configuration()
    if errors:
        for error in errors:
            logger.error(f"Configuration error: {error}")
        sys.exit(1)
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any

from credrotate.config.settings import Settings, get_settings
from credrotate.rotation.generator import GENERIC_SECRET_MIN_LENGTH, MAX_SECRET_LENGTH
from credrotate.rotation.registry import BUILTIN_BACKENDS
from credrotate.utils.exceptions import ConfigurationError

logger = logging.getLogger("credrotate.config")

IMPORT_PATH_PATTERN = re.compile(r"^[A-Za-z_][\w.]*:[A-Za-z_]\w*$")
BACKEND_NAME_PATTERN = re.compile(r"^[a-z0-9][a-z0-9-]*$")


class ValidationSeverity(str, Enum):
    """Severity of configuration validation issues."""

    ERROR = "error"  # Must be fixed, rotations cannot run
    WARNING = "warning"  # Should be fixed, rotations can run


@dataclass
class ValidationResult:
    """Result of a configuration validation check."""

    field: str
    severity: ValidationSeverity
    message: str
    suggestion: str | None = None

    def __str__(self) -> str:
        prefix = "ERROR" if self.severity == ValidationSeverity.ERROR else "WARNING"
        result = f"[{prefix}] {self.field}: {self.message}"
        if self.suggestion:
            result += f"\n  Suggestion: {self.suggestion}"
        return result


def validate_configuration(settings: Settings | None = None) -> list[ValidationResult]:
    """Validate application configuration.

    Args:
        settings: Settings to validate (default: global settings)

    Returns:
        List of validation results (empty if all checks pass)
    """
    if settings is None:
        settings = get_settings()

    results: list[ValidationResult] = []

    results.extend(_validate_engine(settings))
    results.extend(_validate_generation(settings))
    results.extend(_validate_providers(settings))
    results.extend(_validate_logging(settings))

    return results


def validate_or_raise(settings: Settings | None = None) -> None:
    """Validate configuration and raise if errors found.

    Args:
        settings: Settings to validate

    Raises:
        ConfigurationError: If any validation errors are found
    """
    results = validate_configuration(settings)
    errors = [r for r in results if r.severity == ValidationSeverity.ERROR]

    if errors:
        error_messages = "\n".join(str(e) for e in errors)
        raise ConfigurationError(f"Configuration validation failed:\n{error_messages}")

    warnings = [r for r in results if r.severity == ValidationSeverity.WARNING]
    for warning in warnings:
        logger.warning(str(warning))


# =============================================================================
# Validators
# =============================================================================


def _validate_engine(settings: Settings) -> list[ValidationResult]:
    """Validate rotation engine configuration."""
    results: list[ValidationResult] = []

    if settings.step_timeout_seconds > 300:
        results.append(
            ValidationResult(
                field="step_timeout_seconds",
                severity=ValidationSeverity.WARNING,
                message=f"Step timeout of {settings.step_timeout_seconds}s is unusually long",
                suggestion="A hung provider call blocks the whole rotation; 30-120s is typical",
            )
        )

    return results


def _validate_generation(settings: Settings) -> list[ValidationResult]:
    """Validate value generation defaults."""
    results: list[ValidationResult] = []

    if settings.max_secret_length > MAX_SECRET_LENGTH:
        results.append(
            ValidationResult(
                field="max_secret_length",
                severity=ValidationSeverity.ERROR,
                message=f"Maximum length {settings.max_secret_length} exceeds {MAX_SECRET_LENGTH}",
                suggestion=f"Use a value between {GENERIC_SECRET_MIN_LENGTH} and {MAX_SECRET_LENGTH}",
            )
        )
    elif settings.max_secret_length < GENERIC_SECRET_MIN_LENGTH:
        results.append(
            ValidationResult(
                field="max_secret_length",
                severity=ValidationSeverity.ERROR,
                message=f"Maximum length {settings.max_secret_length} is below the minimum secret length",
                suggestion=f"Use at least {GENERIC_SECRET_MIN_LENGTH}",
            )
        )

    if settings.default_secret_length < GENERIC_SECRET_MIN_LENGTH:
        results.append(
            ValidationResult(
                field="default_secret_length",
                severity=ValidationSeverity.ERROR,
                message=f"Default length {settings.default_secret_length} is below {GENERIC_SECRET_MIN_LENGTH}",
                suggestion="Use 32 or more characters",
            )
        )
    elif settings.default_secret_length > settings.max_secret_length:
        results.append(
            ValidationResult(
                field="default_secret_length",
                severity=ValidationSeverity.ERROR,
                message="Default length exceeds max_secret_length",
                suggestion="Lower default_secret_length or raise max_secret_length",
            )
        )
    elif settings.default_secret_length < 16:
        results.append(
            ValidationResult(
                field="default_secret_length",
                severity=ValidationSeverity.WARNING,
                message=f"Default length {settings.default_secret_length} gives limited entropy",
                suggestion="Use at least 16 characters for generated credentials",
            )
        )

    return results


def _validate_providers(settings: Settings) -> list[ValidationResult]:
    """Validate provider factory configuration."""
    results: list[ValidationResult] = []

    for name, import_path in settings.providers.items():
        field_name = f"providers.{name}"

        if not BACKEND_NAME_PATTERN.match(name):
            results.append(
                ValidationResult(
                    field=field_name,
                    severity=ValidationSeverity.ERROR,
                    message=f"Invalid backend name: {name!r}",
                    suggestion="Use lowercase letters, digits and dashes",
                )
            )

        if not IMPORT_PATH_PATTERN.match(import_path):
            results.append(
                ValidationResult(
                    field=field_name,
                    severity=ValidationSeverity.ERROR,
                    message=f"Invalid import path: {import_path!r}",
                    suggestion="Expected format: package.module:factory",
                )
            )

        if name in BUILTIN_BACKENDS:
            results.append(
                ValidationResult(
                    field=field_name,
                    severity=ValidationSeverity.WARNING,
                    message=f"Backend {name!r} overrides a built-in in-memory backend",
                    suggestion="Choose a different backend name",
                )
            )

    return results


def _validate_logging(settings: Settings) -> list[ValidationResult]:
    """Validate logging configuration."""
    results: list[ValidationResult] = []

    if settings.log_level == "DEBUG" and settings.log_format == "json":
        results.append(
            ValidationResult(
                field="log_level",
                severity=ValidationSeverity.WARNING,
                message="DEBUG logs shipped as JSON may include provider SDK request details",
                suggestion="Use INFO or WARNING when logs leave the host",
            )
        )

    return results


def get_configuration_summary(settings: Settings | None = None) -> dict[str, Any]:
    """Get a summary of current configuration (safe for logging).

    Args:
        settings: Settings to summarize

    Returns:
        Dictionary with configuration summary
    """
    if settings is None:
        settings = get_settings()

    return {
        "log_level": settings.log_level,
        "log_format": settings.log_format,
        "step_timeout_seconds": settings.step_timeout_seconds,
        "require_verification": settings.require_verification,
        "default_secret_length": settings.default_secret_length,
        "default_encoding": settings.default_encoding,
        "max_secret_length": settings.max_secret_length,
        "configured_providers": sorted(settings.providers),
    }
