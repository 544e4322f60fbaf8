"""Public model surface."""

from __future__ import annotations

from arcore.model.descriptors import (
    OrderBy,
    RelationDescriptor,
    attach_many,
    attach_one,
    belongs_to,
    belongs_to_many,
    has_many,
    has_many_through,
    has_one,
    morph_many,
    morph_one,
)
from arcore.model.entity import Model
from arcore.model.enums import BindingOperation, LifecycleEvent, RelationKind, SaveState
from arcore.model.files import File
from arcore.model.messages import MessageBag

__all__ = [  # noqa: RUF022
    # base
    "Model",
    "File",
    "MessageBag",
    # descriptors
    "OrderBy",
    "RelationDescriptor",
    "attach_many",
    "attach_one",
    "belongs_to",
    "belongs_to_many",
    "has_many",
    "has_many_through",
    "has_one",
    "morph_many",
    "morph_one",
    # enums
    "BindingOperation",
    "LifecycleEvent",
    "RelationKind",
    "SaveState",
]
