"""Configuration module for credrotate."""

from credrotate.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
