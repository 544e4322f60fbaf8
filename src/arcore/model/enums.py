"""Model enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class RelationKind(StrEnum):
    """Closed set of relationship shapes understood by the resolver."""

    HAS_ONE = "has_one"
    HAS_MANY = "has_many"
    BELONGS_TO = "belongs_to"
    BELONGS_TO_MANY = "belongs_to_many"
    MORPH_ONE = "morph_one"
    MORPH_MANY = "morph_many"
    HAS_MANY_THROUGH = "has_many_through"
    ATTACH_ONE = "attach_one"
    ATTACH_MANY = "attach_many"

    @property
    def is_single(self) -> bool:
        return self in _SINGLE_KINDS

    @property
    def is_polymorphic(self) -> bool:
        return self in _POLYMORPHIC_KINDS

    @property
    def is_attachment(self) -> bool:
        return self in (RelationKind.ATTACH_ONE, RelationKind.ATTACH_MANY)

    @property
    def owns_target(self) -> bool:
        """Targets whose only link is this relation (orphaned when unbound)."""
        return self in _OWNING_KINDS


_SINGLE_KINDS = frozenset(
    {
        RelationKind.HAS_ONE,
        RelationKind.BELONGS_TO,
        RelationKind.MORPH_ONE,
        RelationKind.ATTACH_ONE,
    }
)

_POLYMORPHIC_KINDS = frozenset(
    {
        RelationKind.MORPH_ONE,
        RelationKind.MORPH_MANY,
        RelationKind.ATTACH_ONE,
        RelationKind.ATTACH_MANY,
    }
)

_OWNING_KINDS = frozenset(
    {
        RelationKind.HAS_ONE,
        RelationKind.HAS_MANY,
        RelationKind.MORPH_ONE,
        RelationKind.MORPH_MANY,
        RelationKind.ATTACH_ONE,
        RelationKind.ATTACH_MANY,
    }
)


class BindingOperation(StrEnum):
    BIND = "bind"
    UNBIND = "unbind"

    @property
    def opposite(self) -> BindingOperation:
        return BindingOperation.UNBIND if self is BindingOperation.BIND else BindingOperation.BIND


class SaveState(StrEnum):
    NEW = "new"
    VALIDATING = "validating"
    TRANSFORMING = "transforming"
    PERSISTING = "persisting"
    BINDING = "binding"
    EVENTING = "eventing"
    DONE = "done"
    FAILED = "failed"


class LifecycleEvent(StrEnum):
    BEFORE_VALIDATE = "before_validate"
    AFTER_VALIDATE = "after_validate"
    BEFORE_SAVE = "before_save"
    AFTER_SAVE = "after_save"
    BEFORE_CREATE = "before_create"
    AFTER_CREATE = "after_create"
    BEFORE_UPDATE = "before_update"
    AFTER_UPDATE = "after_update"
    BEFORE_DELETE = "before_delete"
    AFTER_DELETE = "after_delete"
    BEFORE_RESTORE = "before_restore"
    AFTER_RESTORE = "after_restore"
    AFTER_FETCH = "after_fetch"

    @property
    def cancellable(self) -> bool:
        return self.value.startswith("before_")
