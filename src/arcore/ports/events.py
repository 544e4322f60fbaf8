"""Event collaborator contract."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from arcore.model.entity import Model
    from arcore.model.enums import LifecycleEvent


@runtime_checkable
class EventDispatcher(Protocol):
    def dispatch(self, event: LifecycleEvent, model: Model) -> bool:
        """Run hooks in order; ``False`` means a hook cancelled the operation."""
        ...
