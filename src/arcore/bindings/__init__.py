"""Deferred relationship bindings."""

from __future__ import annotations

from .ledger import DeferredBindingLedger
from .records import DeferredBinding

__all__ = ["DeferredBinding", "DeferredBindingLedger"]
