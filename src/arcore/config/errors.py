"""Configuration error definitions."""

from __future__ import annotations

from arcore.errors import ConfigurationError


class MissingConfigurationError(ConfigurationError):
    """Raised when required configuration values are absent or blank."""


__all__ = ["ConfigurationError", "MissingConfigurationError"]
