"""Ordered synchronous lifecycle hooks."""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import TYPE_CHECKING

from arcore.model.enums import LifecycleEvent

if TYPE_CHECKING:
    from collections.abc import Callable

    from arcore.model.entity import Model

    type Listener = Callable[[Model], object]

log = logging.getLogger(__name__)


class HookDispatcher:
    """Dispatch lifecycle events to model hook methods, then registered listeners.

    A model hook is a method named after the event (``before_save``).
    Listeners registered for a model type also receive events for its
    subclasses, in registration order. For ``before_*`` events a hook
    returning ``False`` cancels the operation and stops dispatch.
    """

    def __init__(self) -> None:
        self._listeners: defaultdict[LifecycleEvent, list[tuple[type[Model], Listener]]] = (
            defaultdict(list)
        )

    def listen(
        self,
        model_cls: type[Model],
        event: LifecycleEvent | str,
        listener: Listener,
    ) -> None:
        self._listeners[LifecycleEvent(event)].append((model_cls, listener))

    def dispatch(self, event: LifecycleEvent, model: Model) -> bool:
        hooks: list[Listener] = []
        method = getattr(model, event.value, None)
        if callable(method):
            hooks.append(lambda _model, bound=method: bound())
        hooks.extend(
            listener
            for model_cls, listener in self._listeners.get(event, ())
            if isinstance(model, model_cls)
        )

        for hook in hooks:
            outcome = hook(model)
            if event.cancellable and outcome is False:
                log.info("%s cancelled by hook for %r", event.value, model)
                return False
        return True


if TYPE_CHECKING:
    from arcore.ports.events import EventDispatcher

    _dispatcher_check: EventDispatcher = HookDispatcher()
