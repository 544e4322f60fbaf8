"""Save pipeline: attribute transforms and the lifecycle orchestrator."""

from __future__ import annotations

from .orchestrator import SaveOrchestrator, SaveResult
from .transforms import AttributeTransformer

__all__ = ["AttributeTransformer", "SaveOrchestrator", "SaveResult"]
