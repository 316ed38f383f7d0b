"""Utility modules for credrotate."""

from credrotate.utils.exceptions import (
    ConfigurationError,
    CredRotateError,
)

__all__ = [
    "CredRotateError",
    "ConfigurationError",
]
