"""Model queries with optional eager joins."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, cast

from sqlalchemy import and_, select

from arcore.errors import ConfigurationError
from arcore.model.descriptors import OrderBy
from arcore.model.enums import LifecycleEvent, RelationKind

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from sqlalchemy import ColumnElement, FromClause, Label, RowMapping, Select, Table
    from sqlalchemy.sql.elements import UnaryExpression

    from arcore.model.descriptors import RelationDescriptor
    from arcore.model.entity import Model
    from arcore.persistence.transforms import AttributeTransformer
    from arcore.ports.events import EventDispatcher
    from arcore.ports.storage import Store
    from arcore.relations.registry import RelationRegistry

PIVOT_MARKER = "__pivot__"


def scope_clauses(
    model_cls: type[Model],
    table: FromClause,
    conditions: Mapping[str, object] | None = None,
) -> list[ColumnElement[bool]]:
    """Equality conditions plus the soft-delete filter for ``model_cls``."""

    clauses = equality_clauses(table, conditions or {})
    if model_cls.soft_delete and model_cls.DELETED_AT in table.c:
        clauses.append(table.c[model_cls.DELETED_AT].is_(None))
    return clauses


def order_clauses(
    table: FromClause, orders: Sequence[OrderBy]
) -> list[UnaryExpression[object]]:
    clauses: list[UnaryExpression[object]] = []
    for order in orders:
        if order.column not in table.c:
            raise ConfigurationError(f"Order column {order.column!r} missing on {table.name}")
        column = table.c[order.column]
        clauses.append(column.desc() if order.descending else column.asc())
    return clauses


@dataclass(frozen=True, slots=True)
class EagerJoin:
    """A relation populated from labelled columns of the owner query."""

    relation: str
    descriptor: RelationDescriptor
    target: type[Model]
    target_alias: FromClause
    pivot_alias: FromClause | None
    onclauses: tuple[ColumnElement[bool], ...]

    @property
    def prefix(self) -> str:
        return f"{self.relation}__"

    def apply(self, from_clause: FromClause) -> FromClause:
        if self.pivot_alias is None:
            return from_clause.outerjoin(self.target_alias, self.onclauses[0])
        return from_clause.outerjoin(self.pivot_alias, self.onclauses[0]).outerjoin(
            self.target_alias, self.onclauses[1]
        )

    def selected(self) -> list[Label[object]]:
        labels = [
            column.label(f"{self.prefix}{column.name}") for column in self.target_alias.c
        ]
        if self.pivot_alias is not None:
            labels.extend(
                column.label(f"{self.prefix}{PIVOT_MARKER}{column.name}")
                for column in self.pivot_alias.c
            )
        return labels

    def split(self, row: RowMapping) -> tuple[dict[str, object], dict[str, object] | None]:
        target: dict[str, object] = {}
        pivot: dict[str, object] = {}
        pivot_prefix = f"{self.prefix}{PIVOT_MARKER}"
        for key, value in row.items():
            if not isinstance(key, str):
                continue
            if key.startswith(pivot_prefix):
                pivot[key.removeprefix(pivot_prefix)] = value
            elif key.startswith(self.prefix):
                target[key.removeprefix(self.prefix)] = value
        return target, (pivot if self.pivot_alias is not None else None)


def belongs_to_join(
    registry: RelationRegistry,
    owner_cls: type[Model],
    relation: str,
    descriptor: RelationDescriptor,
) -> EagerJoin:
    owner_table = registry.table_for(owner_cls)
    target_cls = registry.model_for(descriptor.target)
    target = registry.table_for(target_cls).alias(f"rel_{relation}")
    foreign_key = descriptor.foreign_key or ""
    if foreign_key not in owner_table.c:
        raise ConfigurationError(f"Foreign key {foreign_key!r} missing on {owner_table.name}")
    target_key = descriptor.owner_key or target_cls.primary_key
    onclause = and_(
        target.c[target_key] == owner_table.c[foreign_key],
        *scope_clauses(target_cls, target, descriptor.conditions),
    )
    return EagerJoin(relation, descriptor, target_cls, target, None, (onclause,))


def pivot_join(
    registry: RelationRegistry,
    owner_cls: type[Model],
    relation: str,
    descriptor: RelationDescriptor,
) -> EagerJoin:
    owner_table = registry.table_for(owner_cls)
    target_cls = registry.model_for(descriptor.target)
    pivot = pivot_table(registry, owner_cls, descriptor).alias(f"pivot_{relation}")
    target = registry.table_for(target_cls).alias(f"rel_{relation}")
    pivot_on = pivot.c[descriptor.pivot_key or ""] == owner_table.c[owner_cls.primary_key]
    target_on = and_(
        target.c[target_cls.primary_key] == pivot.c[descriptor.pivot_related_key or ""],
        *scope_clauses(target_cls, target, descriptor.conditions),
    )
    return EagerJoin(relation, descriptor, target_cls, target, pivot, (pivot_on, target_on))


def pivot_table(
    registry: RelationRegistry, owner_cls: type[Model], descriptor: RelationDescriptor
) -> Table:
    """Look the pivot table up on the owner table's ``MetaData``."""

    name = descriptor.pivot_table or ""
    tables = registry.table_for(owner_cls).metadata.tables
    if name not in tables:
        raise ConfigurationError(f"Pivot table {name!r} is not defined")
    table = tables[name]
    for key in (descriptor.pivot_key, descriptor.pivot_related_key):
        if key not in table.c:
            raise ConfigurationError(f"Pivot table {name!r} has no column {key!r}")
    return table


class ModelQuery[TModel: Model]:
    """Immutable query over one model type; every builder method returns a copy."""

    def __init__(
        self,
        model: type[TModel],
        *,
        registry: RelationRegistry,
        store: Store,
        transformer: AttributeTransformer,
        events: EventDispatcher,
    ) -> None:
        self.model = model
        self.registry = registry
        self.store = store
        self.transformer = transformer
        self.events = events
        self.table = registry.table_for(model)
        self._state = _QueryState()

    def _copy(self, **changes: object) -> ModelQuery[TModel]:
        clone: ModelQuery[TModel] = ModelQuery(
            self.model,
            registry=self.registry,
            store=self.store,
            transformer=self.transformer,
            events=self.events,
        )
        clone._state = replace(self._state, **changes)  # noqa: SLF001
        return clone

    def where(self, *clauses: ColumnElement[bool]) -> ModelQuery[TModel]:
        return self._copy(clauses=(*self._state.clauses, *clauses))

    def filter_by(self, **values: object) -> ModelQuery[TModel]:
        return self.where(*equality_clauses(self.table, values))

    def order_by(self, *clauses: str) -> ModelQuery[TModel]:
        parsed = tuple(OrderBy.parse(clause) for clause in clauses)
        return self._copy(orders=(*self._state.orders, *parsed))

    def limit(self, count: int) -> ModelQuery[TModel]:
        """Limit the number of rows; joined many-relations count one row per target."""

        return self._copy(limit=count)

    def with_trashed(self) -> ModelQuery[TModel]:
        return self._copy(with_trashed=True)

    def with_join(self, join: EagerJoin) -> ModelQuery[TModel]:
        return self._copy(joins=(*self._state.joins, join))

    @property
    def joins(self) -> tuple[EagerJoin, ...]:
        return self._state.joins

    def statement(self) -> Select[tuple[object, ...]]:
        state = self._state
        from_clause: FromClause = self.table
        columns: list[object] = [self.table]
        for join in state.joins:
            from_clause = join.apply(from_clause)
            columns.extend(join.selected())
        statement = select(*columns).select_from(from_clause)  # pyright: ignore[reportArgumentType]

        clauses = list(state.clauses)
        if not state.with_trashed:
            clauses.extend(scope_clauses(self.model, self.table))
        if clauses:
            statement = statement.where(*clauses)

        orders = order_clauses(self.table, state.orders) or [
            self.table.c[self.model.primary_key].asc()
        ]
        for join in state.joins:
            orders.extend(order_clauses(join.target_alias, join.descriptor.order_by))
        statement = statement.order_by(*orders)
        if state.limit is not None:
            statement = statement.limit(state.limit)
        return statement

    def all(self) -> list[TModel]:
        rows = self.store.fetch_all(self.statement())
        owners: dict[object, TModel] = {}
        column_names = [column.name for column in self.table.c]
        for row in rows:
            identity = row[self.model.primary_key]
            owner = owners.get(identity)
            if owner is None:
                owner = self.transformer.hydrate(
                    self.model, {name: row[name] for name in column_names}
                )
                for join in self._state.joins:
                    owner.set_relation(join.relation, None if join.descriptor.is_single else [])
                owners[identity] = owner
            for join in self._state.joins:
                self._populate(owner, join, row)

        models = list(owners.values())
        for model in models:
            self.events.dispatch(LifecycleEvent.AFTER_FETCH, model)
        return models

    def first(self) -> TModel | None:
        results = self.limit(1).all() if not self._state.joins else self.all()
        return results[0] if results else None

    def find(self, identity: object) -> TModel | None:
        return self.where(self.table.c[self.model.primary_key] == identity).first()

    def _populate(self, owner: Model, join: EagerJoin, row: RowMapping) -> None:
        values, pivot = join.split(row)
        if values.get(join.target.primary_key) is None:
            return
        target = self.transformer.hydrate(join.target, values)
        if join.descriptor.kind is RelationKind.BELONGS_TO:
            owner.set_relation(join.relation, target)
            self.events.dispatch(LifecycleEvent.AFTER_FETCH, target)
            return
        target.pivot = pivot
        related = cast("list[Model]", owner.cached_relation(join.relation))
        if all(existing.identity != target.identity for existing in related):
            related.append(target)
            self.events.dispatch(LifecycleEvent.AFTER_FETCH, target)


@dataclass(frozen=True, slots=True)
class _QueryState:
    clauses: tuple[ColumnElement[bool], ...] = ()
    orders: tuple[OrderBy, ...] = ()
    joins: tuple[EagerJoin, ...] = ()
    limit: int | None = None
    with_trashed: bool = False


def equality_clauses(
    table: FromClause, values: Mapping[str, object]
) -> list[ColumnElement[bool]]:
    clauses: list[ColumnElement[bool]] = []
    for name, value in values.items():
        if name not in table.c:
            raise ConfigurationError(f"Column {name!r} missing on {table.name}")
        clauses.append(table.c[name].is_(None) if value is None else table.c[name] == value)
    return clauses
