"""Deferred binding retention defaults."""

from __future__ import annotations

from dataclasses import dataclass

from .env import env_bool, env_int
from .errors import ConfigurationError

DEFAULT_RETENTION_DAYS = 5


@dataclass(frozen=True, slots=True)
class BindingConfig:
    retention_days: int = DEFAULT_RETENTION_DAYS
    delete_committed: bool = True

    def __post_init__(self) -> None:
        if self.retention_days < 0:
            raise ConfigurationError("retention_days must be non-negative")


def get_binding_config() -> BindingConfig:
    return BindingConfig(
        retention_days=env_int("ARCORE_BINDING_RETENTION_DAYS", DEFAULT_RETENTION_DAYS),
        delete_committed=env_bool("ARCORE_DELETE_COMMITTED_BINDINGS", default=True),
    )
