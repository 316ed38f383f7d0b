"""Custom exceptions for credrotate."""


class CredRotateError(Exception):
    """Base exception for all credrotate errors."""

    pass


class ConfigurationError(CredRotateError):
    """Error in configuration or settings."""

    pass
