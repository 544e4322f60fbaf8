"""Deferred binding records as read from ``deferred_bindings``."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import TYPE_CHECKING

from arcore.model.enums import BindingOperation

if TYPE_CHECKING:
    from collections.abc import Mapping
    from datetime import datetime


@dataclass(frozen=True, slots=True)
class DeferredBinding:
    id: int
    session_key: str
    master_type: str
    master_field: str
    slave_type: str
    slave_id: str | None
    payload: dict[str, object] | None
    pivot_data: dict[str, object] | None
    operation: BindingOperation
    is_committed: bool
    created_at: datetime

    @property
    def is_bind(self) -> bool:
        return self.operation is BindingOperation.BIND

    @property
    def has_payload(self) -> bool:
        """The target was not persisted when the record was staged."""
        return self.slave_id is None

    @classmethod
    def from_row(cls, row: Mapping[str, object]) -> DeferredBinding:
        return cls(
            id=int(str(row["id"])),
            session_key=str(row["session_key"]),
            master_type=str(row["master_type"]),
            master_field=str(row["master_field"]),
            slave_type=str(row["slave_type"]),
            slave_id=None if row["slave_id"] is None else str(row["slave_id"]),
            payload=_decode(row["payload"]),
            pivot_data=_decode(row["pivot_data"]),
            operation=BindingOperation(str(row["operation"])),
            is_committed=bool(row["is_committed"]),
            created_at=row["created_at"],  # pyright: ignore[reportArgumentType]
        )


def encode_mapping(values: Mapping[str, object] | None) -> str | None:
    if values is None:
        return None
    return json.dumps(dict(values), default=str, separators=(",", ":"))


def _decode(value: object) -> dict[str, object] | None:
    if value is None:
        return None
    decoded = json.loads(str(value))
    if not isinstance(decoded, dict):
        raise ValueError(f"Expected a JSON object, got {type(decoded).__name__}")
    return decoded
