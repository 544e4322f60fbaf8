"""Resolve a relation of an owner into related models."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, cast

from sqlalchemy import select

from arcore.errors import ConfigurationError, UnsupportedOperationError
from arcore.model.enums import LifecycleEvent, RelationKind
from arcore.model.naming import morph_columns
from arcore.relations.query import (
    PIVOT_MARKER,
    belongs_to_join,
    order_clauses,
    pivot_join,
    pivot_table,
    scope_clauses,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy import ColumnElement, RowMapping, Select, Table

    from arcore.model.descriptors import OrderBy, RelationDescriptor
    from arcore.model.entity import Model
    from arcore.persistence.transforms import AttributeTransformer
    from arcore.ports.events import EventDispatcher
    from arcore.ports.storage import Store
    from arcore.relations.query import ModelQuery
    from arcore.relations.registry import RelationRegistry

    type Resolved = Model | list[Model] | None

log = logging.getLogger(__name__)


class RelationResolver:
    def __init__(
        self,
        registry: RelationRegistry,
        store: Store,
        transformer: AttributeTransformer,
        events: EventDispatcher,
    ) -> None:
        self.registry = registry
        self.store = store
        self.transformer = transformer
        self.events = events

    def resolve(self, owner: Model, relation_name: str, *, refresh: bool = False) -> Resolved:
        """Return the related model (or ``None``) for single kinds, a list otherwise.

        Results are cached on ``owner`` until it is saved or the relation is
        mutated; ``refresh=True`` bypasses the cache.
        """

        if not refresh and owner.relation_loaded(relation_name):
            return cast("Resolved", owner.cached_relation(relation_name))
        descriptor = self.registry.resolve_descriptor(type(owner), relation_name)
        result = self._dispatch(owner, relation_name, descriptor)
        owner.set_relation(relation_name, result)
        return result

    def resolve_many(
        self, owner: Model, relation_name: str, *, refresh: bool = False
    ) -> list[Model]:
        result = self.resolve(owner, relation_name, refresh=refresh)
        if result is None:
            return []
        if isinstance(result, list):
            return list(result)
        return [result]

    def join_resolve[TModel: Model](
        self, query: ModelQuery[TModel], relation_name: str
    ) -> ModelQuery[TModel]:
        """Join ``relation_name`` into ``query`` and populate it with the main results."""

        descriptor = self.registry.resolve_descriptor(query.model, relation_name)
        if descriptor.kind is RelationKind.BELONGS_TO:
            join = belongs_to_join(self.registry, query.model, relation_name, descriptor)
        elif descriptor.kind is RelationKind.BELONGS_TO_MANY:
            join = pivot_join(self.registry, query.model, relation_name, descriptor)
        else:
            raise UnsupportedOperationError(
                f"Cannot join {descriptor.kind} relation {relation_name!r}; "
                "only belongs_to and belongs_to_many relations can be joined"
            )
        return query.with_join(join)

    # kinds --------------------------------------------------------------------

    def _dispatch(
        self, owner: Model, relation_name: str, descriptor: RelationDescriptor
    ) -> Resolved:
        match descriptor.kind:
            case RelationKind.HAS_ONE | RelationKind.HAS_MANY:
                return self._owned(owner, descriptor)
            case RelationKind.BELONGS_TO:
                return self._belongs_to(owner, descriptor)
            case RelationKind.BELONGS_TO_MANY:
                return self._pivot(owner, descriptor)
            case (
                RelationKind.MORPH_ONE
                | RelationKind.MORPH_MANY
                | RelationKind.ATTACH_ONE
                | RelationKind.ATTACH_MANY
            ):
                return self._morph(owner, relation_name, descriptor)
            case RelationKind.HAS_MANY_THROUGH:
                return self._through(owner, descriptor)

    def _owned(self, owner: Model, descriptor: RelationDescriptor) -> Resolved:
        owner_value = owner.get(descriptor.owner_key or owner.primary_key)
        if owner.identity is None or owner_value is None:
            return _empty(descriptor)
        target_cls, table = self._target(descriptor)
        foreign_key = _column_name(table, descriptor.foreign_key)
        return self._fetch(
            target_cls, table, descriptor, [table.c[foreign_key] == owner_value]
        )

    def _belongs_to(self, owner: Model, descriptor: RelationDescriptor) -> Resolved:
        value = owner.get(descriptor.foreign_key or "")
        if value is None:
            return None
        target_cls, table = self._target(descriptor)
        key = _column_name(table, descriptor.owner_key or target_cls.primary_key)
        return self._fetch(target_cls, table, descriptor, [table.c[key] == value])

    def _pivot(self, owner: Model, descriptor: RelationDescriptor) -> list[Model]:
        if owner.identity is None:
            return []
        target_cls, table = self._target(descriptor)
        pivot = pivot_table(self.registry, type(owner), descriptor)
        pivot_columns = [column.label(f"{PIVOT_MARKER}{column.name}") for column in pivot.c]
        onclause = pivot.c[descriptor.pivot_related_key or ""] == table.c[target_cls.primary_key]
        statement = (
            select(table, *pivot_columns)
            .join(pivot, onclause)
            .where(pivot.c[descriptor.pivot_key or ""] == owner.identity)
            .where(*scope_clauses(target_cls, table, descriptor.conditions))
            .order_by(*_orders(table, descriptor.order_by, target_cls))
        )
        models: list[Model] = []
        for row in self.store.fetch_all(statement):
            values = {column.name: row[column.name] for column in table.c}
            model = self.transformer.hydrate(target_cls, values)
            model.pivot = {
                key.removeprefix(PIVOT_MARKER): value
                for key, value in row.items()
                if isinstance(key, str) and key.startswith(PIVOT_MARKER)
            }
            self.events.dispatch(LifecycleEvent.AFTER_FETCH, model)
            models.append(model)
        return models

    def _morph(
        self, owner: Model, relation_name: str, descriptor: RelationDescriptor
    ) -> Resolved:
        target_cls, table = self._target(descriptor)
        type_column, id_column = morph_columns(descriptor.morph_name or "")
        if type_column not in table.c or id_column not in table.c:
            raise ConfigurationError(
                f"Discriminator {descriptor.morph_name!r} is not mapped on {table.name} "
                f"for owner {owner.morph_class}"
            )
        if owner.identity is None:
            return _empty(descriptor)
        clauses = [
            table.c[type_column] == owner.morph_class,
            table.c[id_column] == owner.identity,
        ]
        if descriptor.kind.is_attachment:
            clauses.append(table.c[_column_name(table, "field")] == relation_name)
        return self._fetch(target_cls, table, descriptor, clauses)

    def _through(self, owner: Model, descriptor: RelationDescriptor) -> list[Model]:
        intermediates = self.resolve_many(owner, descriptor.through or "")
        results: list[Model] = []
        for intermediate in intermediates:
            results.extend(self.resolve_many(intermediate, descriptor.through_target or ""))
        if descriptor.distinct:
            seen: set[tuple[str, object]] = set()
            unique: list[Model] = []
            for model in results:
                key = (model.morph_class, model.identity)
                if key in seen:
                    continue
                seen.add(key)
                unique.append(model)
            results = unique
        return sort_models(results, descriptor.order_by)

    # helpers ------------------------------------------------------------------

    def _target(self, descriptor: RelationDescriptor) -> tuple[type[Model], Table]:
        target_cls = self.registry.model_for(descriptor.target)
        return target_cls, self.registry.table_for(target_cls)

    def _fetch(
        self,
        target_cls: type[Model],
        table: Table,
        descriptor: RelationDescriptor,
        clauses: list[ColumnElement[bool]],
    ) -> Resolved:
        statement: Select[tuple[object, ...]] = (
            select(table)
            .where(*clauses, *scope_clauses(target_cls, table, descriptor.conditions))
            .order_by(*_orders(table, descriptor.order_by, target_cls))
        )
        if descriptor.is_single:
            row = self.store.fetch_one(statement.limit(1))
            if row is None:
                return None
            return self._hydrated(target_cls, row)
        return [self._hydrated(target_cls, row) for row in self.store.fetch_all(statement)]

    def _hydrated(self, target_cls: type[Model], row: RowMapping) -> Model:
        model = self.transformer.hydrate(target_cls, row)
        self.events.dispatch(LifecycleEvent.AFTER_FETCH, model)
        return model


def _empty(descriptor: RelationDescriptor) -> Resolved:
    return None if descriptor.is_single else []


def _column_name(table: Table, name: str | None) -> str:
    if not name or name not in table.c:
        raise ConfigurationError(f"Column {name!r} is not defined on {table.name}")
    return name


def _orders(table: Table, orders: Sequence[OrderBy], target_cls: type[Model]) -> list[object]:
    clauses: list[object] = list(order_clauses(table, orders))
    clauses.append(table.c[target_cls.primary_key].asc())
    return clauses


def sort_models(models: list[Model], orders: Sequence[OrderBy]) -> list[Model]:
    """Stable in-memory sort by attribute values; ``None`` sorts last."""

    ordered = list(models)
    for order in reversed(orders):
        present = [model for model in ordered if model.get(order.column) is not None]
        missing = [model for model in ordered if model.get(order.column) is None]
        present.sort(key=lambda model: model.get(order.column), reverse=order.descending)
        ordered = present + missing
    return ordered
