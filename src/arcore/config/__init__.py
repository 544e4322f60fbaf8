"""Application configuration helpers."""

from __future__ import annotations

from .bindings import BindingConfig, get_binding_config
from .codecs import CodecConfig, get_codec_config
from .env import env_bool, env_int, require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .logging import configure_logging
from .storage import DatabaseConfig, StorageConfig, get_database_config, get_storage_config

__all__ = [
    "BindingConfig",
    "CodecConfig",
    "ConfigurationError",
    "DatabaseConfig",
    "MissingConfigurationError",
    "StorageConfig",
    "configure_logging",
    "env_bool",
    "env_int",
    "get_binding_config",
    "get_codec_config",
    "get_database_config",
    "get_storage_config",
    "require_env_vars",
]
