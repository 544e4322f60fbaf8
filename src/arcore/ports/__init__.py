"""Collaborator ports."""

from __future__ import annotations

from .codecs import Codec
from .events import EventDispatcher
from .storage import Store
from .validation import Validator

__all__ = ["Codec", "EventDispatcher", "Store", "Validator"]
