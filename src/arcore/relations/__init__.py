"""Relation metadata, resolution and mutation."""

from __future__ import annotations

from .binder import RelationBinder
from .handle import RelationHandle
from .query import EagerJoin, ModelQuery
from .registry import RelationMapBuilder, RelationRegistry
from .resolver import RelationResolver, sort_models

__all__ = [
    "EagerJoin",
    "ModelQuery",
    "RelationBinder",
    "RelationHandle",
    "RelationMapBuilder",
    "RelationRegistry",
    "RelationResolver",
    "sort_models",
]
