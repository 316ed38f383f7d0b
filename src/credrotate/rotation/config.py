"""Rotation configuration.

This module provides configuration for the rotation engine and the
environment-keyed credential sets that authorize provider calls. Both are
passed explicitly into each rotation; nothing here is module-level state.
"""

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from pydantic import SecretStr

from credrotate.rotation.types import Encoding, GenerationSpec
from credrotate.utils.exceptions import ConfigurationError

if TYPE_CHECKING:
    from credrotate.config.settings import Settings

DEFAULT_ENV_PREFIX = "CREDROTATE_"


@dataclass(frozen=True, slots=True)
class RotationConfig:
    """Configuration for the rotation engine.

    Attributes:
        step_timeout_seconds: Timeout applied to each provider call
        require_verification: Reject backends without a verification primitive
        default_generation: Generation parameters when neither request nor backend set any
        max_secret_length: Upper bound for generated values
    """

    step_timeout_seconds: float = 30.0
    require_verification: bool = False
    default_generation: GenerationSpec = field(default_factory=GenerationSpec)
    max_secret_length: int = 4096

    @classmethod
    def from_settings(cls, settings: "Settings") -> "RotationConfig":
        """Build engine configuration from application settings."""
        return cls(
            step_timeout_seconds=settings.step_timeout_seconds,
            require_verification=settings.require_verification,
            default_generation=GenerationSpec(
                length=settings.default_secret_length,
                encoding=Encoding(settings.default_encoding),
            ),
            max_secret_length=settings.max_secret_length,
        )


@dataclass(frozen=True, slots=True)
class EnvironmentCredentials:
    """Credentials that authorize provider calls in one environment.

    Attributes:
        backend: Backend name the credentials belong to
        environment: Environment name (e.g., dev, stage, prod)
        values: Credential values by lowercase name
    """

    backend: str
    environment: str
    values: Mapping[str, SecretStr] = field(default_factory=dict, repr=False)

    def get(self, name: str) -> str:
        """Get a credential value.

        Args:
            name: Credential name (case-insensitive)

        Returns:
            The plain credential value

        Raises:
            ConfigurationError: If the credential is not configured
        """
        secret = self.values.get(name.lower())
        if secret is None:
            raise ConfigurationError(
                f"Missing credential {name!r} for backend {self.backend!r} "
                f"in environment {self.environment!r} "
                f"(set {env_var_name(self.backend, self.environment, name)})"
            )
        return secret.get_secret_value()

    def get_optional(self, name: str) -> str | None:
        """Get a credential value, or None if not configured."""
        secret = self.values.get(name.lower())
        return secret.get_secret_value() if secret is not None else None

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self.values

    def names(self) -> list[str]:
        """List configured credential names."""
        return sorted(self.values)


def _normalize(part: str) -> str:
    return part.replace("-", "_").replace("/", "_").upper()


def env_var_name(backend: str, environment: str, name: str, prefix: str = DEFAULT_ENV_PREFIX) -> str:
    """Convert a credential reference to its environment variable name.

    Example:
        env_var_name("github-app", "prod", "private_key")
        # "CREDROTATE_GITHUB_APP_PROD_PRIVATE_KEY"
    """
    return f"{prefix}{_normalize(backend)}_{_normalize(environment)}_{_normalize(name)}"


def load_environment_credentials(
    backend: str,
    environment: str,
    environ: Mapping[str, str] | None = None,
    prefix: str = DEFAULT_ENV_PREFIX,
) -> EnvironmentCredentials:
    """Load the credential set for a backend and environment.

    Reads every variable named ``{prefix}{BACKEND}_{ENVIRONMENT}_{NAME}``;
    ``NAME`` becomes the lowercase credential name.

    Args:
        backend: Backend name
        environment: Environment name
        environ: Variables to read (default: os.environ)
        prefix: Variable prefix

    Returns:
        EnvironmentCredentials for the pair (possibly empty)
    """
    source = os.environ if environ is None else environ
    var_prefix = f"{prefix}{_normalize(backend)}_{_normalize(environment)}_"

    values: dict[str, SecretStr] = {}
    for key, value in source.items():
        if not key.startswith(var_prefix) or len(key) == len(var_prefix):
            continue
        values[key[len(var_prefix) :].lower()] = SecretStr(value)

    return EnvironmentCredentials(backend=backend, environment=environment, values=values)
