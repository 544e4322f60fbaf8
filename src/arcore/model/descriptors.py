"""Declarative relationship metadata.

A descriptor names the relation kind, the target model type (by its
``morph_class`` name so relations can point at types registered later) and
the keys used to resolve it. Keys left as ``None`` are filled in by the
registry from the naming convention when the descriptor is registered.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Final

from arcore.model.enums import RelationKind
from arcore.model.naming import foreign_key_for, morph_name_for, pivot_table_for, snake

if TYPE_CHECKING:
    from collections.abc import Mapping

    from arcore.model.entity import Model

FILE_MODEL_NAME: Final[str] = "File"
ATTACHMENT_MORPH_NAME: Final[str] = "attachment"


@dataclass(frozen=True, slots=True)
class OrderBy:
    column: str
    descending: bool = False

    @classmethod
    def parse(cls, value: str) -> OrderBy:
        """Parse ``"created_at desc"`` style clauses."""

        parts = value.split()
        if not parts or len(parts) > 2:  # noqa: PLR2004
            raise ValueError(f"Invalid order clause: {value!r}")
        if len(parts) == 1:
            return cls(parts[0])
        direction = parts[1].lower()
        if direction not in {"asc", "desc"}:
            raise ValueError(f"Invalid order direction in {value!r}")
        return cls(parts[0], descending=direction == "desc")


@dataclass(frozen=True, slots=True)
class RelationDescriptor:
    kind: RelationKind
    target: str
    foreign_key: str | None = None
    owner_key: str | None = None
    pivot_table: str | None = None
    pivot_key: str | None = None
    pivot_related_key: str | None = None
    morph_name: str | None = None
    through: str | None = None
    through_target: str | None = None
    order_by: tuple[OrderBy, ...] = ()
    conditions: Mapping[str, object] = field(default_factory=dict[str, object])
    distinct: bool = False
    public: bool = True
    delete: bool = False

    @property
    def is_single(self) -> bool:
        return self.kind.is_single

    def with_conventions(self, owner: str, relation_name: str) -> RelationDescriptor:
        """Return a copy with every key not supplied filled in by convention."""

        kind = self.kind
        if kind in (RelationKind.HAS_ONE, RelationKind.HAS_MANY):
            return replace(self, foreign_key=self.foreign_key or foreign_key_for(owner))
        if kind is RelationKind.BELONGS_TO:
            return replace(self, foreign_key=self.foreign_key or foreign_key_for(relation_name))
        if kind is RelationKind.BELONGS_TO_MANY:
            return replace(
                self,
                pivot_table=self.pivot_table or pivot_table_for(owner, self.target),
                pivot_key=self.pivot_key or foreign_key_for(owner),
                pivot_related_key=self.pivot_related_key or foreign_key_for(self.target),
            )
        if kind in (RelationKind.MORPH_ONE, RelationKind.MORPH_MANY):
            return replace(self, morph_name=snake(self.morph_name or morph_name_for(self.target)))
        if kind.is_attachment:
            return replace(
                self,
                target=FILE_MODEL_NAME,
                morph_name=snake(self.morph_name or ATTACHMENT_MORPH_NAME),
            )
        if kind is RelationKind.HAS_MANY_THROUGH:
            return replace(self, through_target=self.through_target or relation_name)
        return self


def _target_name(target: str | type[Model]) -> str:
    if isinstance(target, str):
        return target
    return target.morph_class


def _orders(order_by: str | tuple[str, ...] | None) -> tuple[OrderBy, ...]:
    if order_by is None:
        return ()
    clauses = (order_by,) if isinstance(order_by, str) else order_by
    return tuple(OrderBy.parse(clause) for clause in clauses)


def has_one(
    target: str | type[Model],
    *,
    foreign_key: str | None = None,
    owner_key: str | None = None,
    delete: bool = False,
) -> RelationDescriptor:
    return RelationDescriptor(
        RelationKind.HAS_ONE,
        _target_name(target),
        foreign_key=foreign_key,
        owner_key=owner_key,
        delete=delete,
    )


def has_many(
    target: str | type[Model],
    *,
    foreign_key: str | None = None,
    owner_key: str | None = None,
    order_by: str | tuple[str, ...] | None = None,
    conditions: Mapping[str, object] | None = None,
    delete: bool = False,
) -> RelationDescriptor:
    return RelationDescriptor(
        RelationKind.HAS_MANY,
        _target_name(target),
        foreign_key=foreign_key,
        owner_key=owner_key,
        order_by=_orders(order_by),
        conditions=dict(conditions or {}),
        delete=delete,
    )


def belongs_to(
    target: str | type[Model],
    *,
    foreign_key: str | None = None,
    owner_key: str | None = None,
) -> RelationDescriptor:
    return RelationDescriptor(
        RelationKind.BELONGS_TO,
        _target_name(target),
        foreign_key=foreign_key,
        owner_key=owner_key,
    )


def belongs_to_many(
    target: str | type[Model],
    *,
    pivot_table: str | None = None,
    pivot_key: str | None = None,
    pivot_related_key: str | None = None,
    order_by: str | tuple[str, ...] | None = None,
    conditions: Mapping[str, object] | None = None,
) -> RelationDescriptor:
    return RelationDescriptor(
        RelationKind.BELONGS_TO_MANY,
        _target_name(target),
        pivot_table=pivot_table,
        pivot_key=pivot_key,
        pivot_related_key=pivot_related_key,
        order_by=_orders(order_by),
        conditions=dict(conditions or {}),
    )


def morph_one(
    target: str | type[Model],
    *,
    name: str | None = None,
    delete: bool = False,
) -> RelationDescriptor:
    return RelationDescriptor(
        RelationKind.MORPH_ONE, _target_name(target), morph_name=name, delete=delete
    )


def morph_many(
    target: str | type[Model],
    *,
    name: str | None = None,
    order_by: str | tuple[str, ...] | None = None,
    conditions: Mapping[str, object] | None = None,
    delete: bool = False,
) -> RelationDescriptor:
    return RelationDescriptor(
        RelationKind.MORPH_MANY,
        _target_name(target),
        morph_name=name,
        order_by=_orders(order_by),
        conditions=dict(conditions or {}),
        delete=delete,
    )


def has_many_through(
    target: str | type[Model],
    *,
    through: str,
    through_target: str | None = None,
    order_by: str | tuple[str, ...] | None = None,
    distinct: bool = False,
) -> RelationDescriptor:
    return RelationDescriptor(
        RelationKind.HAS_MANY_THROUGH,
        _target_name(target),
        through=through,
        through_target=through_target,
        order_by=_orders(order_by),
        distinct=distinct,
    )


def attach_one(*, public: bool = True) -> RelationDescriptor:
    return RelationDescriptor(RelationKind.ATTACH_ONE, FILE_MODEL_NAME, public=public)


def attach_many(
    *,
    public: bool = True,
    order_by: str | tuple[str, ...] | None = "sort_order",
) -> RelationDescriptor:
    return RelationDescriptor(
        RelationKind.ATTACH_MANY,
        FILE_MODEL_NAME,
        public=public,
        order_by=_orders(order_by),
    )
