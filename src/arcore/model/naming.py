"""Naming convention for relation keys.

Every helper here is total: any input string yields a non-empty, valid
lowercase SQL identifier.
"""

from __future__ import annotations

import re
from typing import Final

FALLBACK_IDENTIFIER: Final[str] = "model"

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")
_INVALID_CHARS = re.compile(r"[^0-9a-zA-Z_]+")
_REPEATED_UNDERSCORES = re.compile(r"_{2,}")


def snake(name: str) -> str:
    """``BlogPost`` -> ``blog_post``; ``app.Models.Post`` -> ``app_models_post``."""

    spaced = _CAMEL_BOUNDARY.sub("_", name.strip())
    cleaned = _INVALID_CHARS.sub("_", spaced).lower()
    cleaned = _REPEATED_UNDERSCORES.sub("_", cleaned).strip("_")
    if not cleaned:
        return FALLBACK_IDENTIFIER
    if cleaned[0].isdigit():
        return f"{FALLBACK_IDENTIFIER}_{cleaned}"
    return cleaned


def foreign_key_for(name: str) -> str:
    return f"{snake(name)}_id"


def pivot_table_for(first: str, second: str) -> str:
    return "_".join(sorted((snake(first), snake(second))))


def morph_name_for(target: str) -> str:
    return f"{snake(target)}able"


def morph_columns(morph_name: str) -> tuple[str, str]:
    """Return the ``(type, id)`` discriminator column names."""

    base = snake(morph_name)
    return f"{base}_type", f"{base}_id"
