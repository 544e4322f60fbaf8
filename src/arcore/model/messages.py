"""Structured validation messages keyed by attribute."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator


@dataclass(slots=True)
class MessageBag:
    """Attribute name -> ordered list of messages."""

    messages: dict[str, list[str]] = field(default_factory=dict[str, list[str]])

    def add(self, attribute: str, message: str) -> None:
        bucket = self.messages.setdefault(attribute, [])
        if message not in bucket:
            bucket.append(message)

    def merge(self, other: MessageBag) -> None:
        for attribute, messages in other.messages.items():
            for message in messages:
                self.add(attribute, message)

    def has(self, attribute: str) -> bool:
        return bool(self.messages.get(attribute))

    def get(self, attribute: str) -> tuple[str, ...]:
        return tuple(self.messages.get(attribute, ()))

    def first(self, attribute: str | None = None) -> str | None:
        if attribute is not None:
            bucket = self.messages.get(attribute)
            return bucket[0] if bucket else None
        for bucket in self.messages.values():
            if bucket:
                return bucket[0]
        return None

    def all(self) -> tuple[str, ...]:
        return tuple(message for bucket in self.messages.values() for message in bucket)

    def as_dict(self) -> dict[str, list[str]]:
        return {attribute: list(messages) for attribute, messages in self.messages.items()}

    def __bool__(self) -> bool:
        return any(self.messages.values())

    def __len__(self) -> int:
        return sum(len(bucket) for bucket in self.messages.values())

    def __iter__(self) -> Iterator[str]:
        return iter(self.messages)
