"""Application settings loaded from environment variables."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All variables use the ``CREDROTATE_`` prefix, e.g.
    ``CREDROTATE_STEP_TIMEOUT_SECONDS=10``. ``providers`` is read as JSON:
    ``CREDROTATE_PROVIDERS='{"github-app": "mycompany.rotation.github:create_provider"}'``.
    """

    model_config = SettingsConfigDict(
        env_prefix="CREDROTATE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_format: Literal["console", "json"] = "console"

    # Rotation engine
    step_timeout_seconds: float = Field(default=30.0, gt=0)
    """Timeout applied to each provider call (create, verify, switch-in, revoke)."""

    require_verification: bool = False
    """Reject backends that declare no verification primitive."""

    # Value generation defaults
    default_secret_length: int = 32
    default_encoding: Literal["alphanumeric", "base64", "hex"] = "alphanumeric"
    max_secret_length: int = 4096

    # Provider factories by backend name, as "module:attribute" import paths
    providers: dict[str, str] = Field(default_factory=dict)

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_log_level(cls, value: object) -> object:
        if isinstance(value, str):
            return value.upper()
        return value


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
