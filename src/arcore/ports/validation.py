"""Validation collaborator contract."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from arcore.model.messages import MessageBag


@runtime_checkable
class Validator(Protocol):
    def validate(
        self,
        attributes: Mapping[str, object],
        rules: Mapping[str, str | Iterable[str]],
        custom_messages: Mapping[str, str],
    ) -> tuple[bool, MessageBag]: ...
