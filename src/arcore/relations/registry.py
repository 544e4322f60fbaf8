"""Per-model relationship metadata.

The registry is an explicit object handed to the resolver, the ledger and the
orchestrator. It is filled at type-registration time and is only read once
traffic begins.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING

from arcore.errors import ConfigurationError, NotFoundError
from arcore.model.descriptors import RelationDescriptor
from arcore.model.enums import RelationKind

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator, Mapping

    from sqlalchemy import Column, Table

    from arcore.model.entity import Model

    type RelationMutator = Callable[[RelationMapBuilder], None]

log = logging.getLogger(__name__)


@dataclass(slots=True)
class RelationMapBuilder:
    """Mutable view of one model type's relation map handed to extensions."""

    model: type[Model]
    _registry: RelationRegistry = field(repr=False)

    def add(self, name: str, descriptor: RelationDescriptor) -> None:
        self._registry.register(self.model, name, descriptor)

    def has(self, name: str) -> bool:
        return name in self._registry.relations_of(self.model)

    def get(self, name: str) -> RelationDescriptor:
        return self._registry.resolve_descriptor(self.model, name)

    def names(self) -> tuple[str, ...]:
        return tuple(self._registry.relations_of(self.model))


@dataclass(slots=True)
class _ModelEntry:
    model: type[Model]
    table: Table
    relations: dict[str, RelationDescriptor] = field(
        default_factory=dict[str, RelationDescriptor]
    )


class RelationRegistry:
    def __init__(self) -> None:
        self._entries: dict[str, _ModelEntry] = {}
        self._extensions: dict[str, list[RelationMutator]] = {}

    # model types --------------------------------------------------------------

    def register_model(self, model: type[Model], table: Table) -> None:
        """Bind ``model`` to ``table`` and load its declared relations.

        Through relations are registered after the others so their
        intermediate hop is always known. Pending extensions run afterwards,
        in the order they were registered.
        """

        name = model.morph_class
        if model.primary_key not in table.c:
            raise ConfigurationError(
                f"Table {table.name!r} has no primary key column {model.primary_key!r}"
            )
        existing = self._entries.get(name)
        if existing is not None and existing.model is not model:
            raise ConfigurationError(
                f"Morph class {name!r} already registered for {existing.model.__name__}"
            )
        self._entries[name] = _ModelEntry(model=model, table=table)

        declared = dict(model.relations)
        ordered = sorted(
            declared.items(), key=lambda item: item[1].kind == RelationKind.HAS_MANY_THROUGH
        )
        for relation_name, descriptor in ordered:
            self.register(model, relation_name, descriptor)

        builder = RelationMapBuilder(model, self)
        for mutator in self._extensions.get(name, ()):
            mutator(builder)
        log.debug("Registered model %s on table %s", name, table.name)

    def is_registered(self, model: type[Model] | str) -> bool:
        return _name(model) in self._entries

    def model_for(self, morph_class: str) -> type[Model]:
        return self._entry(morph_class).model

    def table_for(self, model: type[Model] | str) -> Table:
        return self._entry(_name(model)).table

    def column(self, model: type[Model] | str, name: str) -> Column[object]:
        table = self.table_for(model)
        if name not in table.c:
            raise ConfigurationError(f"Table {table.name!r} has no column {name!r}")
        return table.c[name]

    def models(self) -> Iterator[type[Model]]:
        return (entry.model for entry in self._entries.values())

    # relations ----------------------------------------------------------------

    def register(
        self, model: type[Model] | str, relation_name: str, descriptor: RelationDescriptor
    ) -> None:
        """Add or overwrite a relation; keys left unset are filled by convention."""

        entry = self._entry(_name(model))
        if not isinstance(descriptor, RelationDescriptor):
            raise ConfigurationError(f"{relation_name!r} is not a RelationDescriptor")
        try:
            kind = RelationKind(descriptor.kind)
        except ValueError as exc:
            raise ConfigurationError(
                f"Unknown relation kind {descriptor.kind!r} for {relation_name!r}"
            ) from exc
        if kind is RelationKind.HAS_MANY_THROUGH:
            if not descriptor.through:
                raise ConfigurationError(f"Through relation {relation_name!r} names no hop")
            if descriptor.through not in entry.relations:
                raise ConfigurationError(
                    f"Through relation {relation_name!r} uses undefined relation "
                    f"{descriptor.through!r} on {entry.model.morph_class}"
                )

        resolved = replace(descriptor, kind=kind).with_conventions(
            entry.model.morph_class, relation_name
        )
        if relation_name in entry.relations:
            log.debug("Overwriting relation %s.%s", entry.model.morph_class, relation_name)
        entry.relations[relation_name] = resolved

    def resolve_descriptor(
        self, model: type[Model] | str, relation_name: str
    ) -> RelationDescriptor:
        entry = self._entry(_name(model))
        try:
            return entry.relations[relation_name]
        except KeyError:
            raise NotFoundError(
                f"Relation {relation_name!r} is not defined on {entry.model.morph_class}"
            ) from None

    def relations_of(self, model: type[Model] | str) -> Mapping[str, RelationDescriptor]:
        return dict(self._entry(_name(model)).relations)

    def extend(self, model: type[Model] | str, mutator: RelationMutator) -> None:
        """Queue ``mutator`` for ``model``; runs now when the type is already registered."""

        name = _name(model)
        self._extensions.setdefault(name, []).append(mutator)
        entry = self._entries.get(name)
        if entry is not None:
            mutator(RelationMapBuilder(entry.model, self))

    def _entry(self, name: str) -> _ModelEntry:
        try:
            return self._entries[name]
        except KeyError:
            raise NotFoundError(f"Model type {name!r} is not registered") from None


def _name(model: type[Model] | str) -> str:
    return model if isinstance(model, str) else model.morph_class
