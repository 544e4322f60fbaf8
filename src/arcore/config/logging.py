"""Shared logging helpers for arcore."""

from __future__ import annotations

import logging
import os

from .errors import ConfigurationError


def level_from_environment(default: int = logging.INFO) -> int:
    """Return the level named by ``ARCORE_LOG_LEVEL`` (``DEBUG``, ``INFO``...)."""

    name = os.getenv("ARCORE_LOG_LEVEL")
    if not name or not name.strip():
        return default
    level = logging.getLevelNamesMapping().get(name.strip().upper())
    if level is None:
        raise ConfigurationError(f"Unknown log level: {name}")
    return level


def configure_logging(*, level: int | None = None, force: bool = False) -> None:
    """Initialise the root logger once with a terse format suitable for CLI output.

    ``level`` defaults to ``ARCORE_LOG_LEVEL`` or INFO. Pass ``force=True`` to
    reconfigure during tests or specialised entry points.
    """

    logging.basicConfig(
        level=level if level is not None else level_from_environment(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
        force=force,
    )
