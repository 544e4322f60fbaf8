"""Apply relation changes directly to storage.

Used for live mutations of persisted owners and by the ledger when staged
records are materialised. Targets that still need an identity are handed to
the ``persist`` callable supplied by the caller (normally the save pipeline).
Before a model is mutated in memory it is passed to ``track`` so the caller
can rewind it if the surrounding transaction rolls back.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import and_, select

from arcore.errors import PreconditionError, UnsupportedOperationError
from arcore.model.enums import RelationKind
from arcore.model.naming import morph_columns
from arcore.relations.query import pivot_table, scope_clauses

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from sqlalchemy import ColumnElement, Table

    from arcore.model.descriptors import RelationDescriptor
    from arcore.model.entity import Model
    from arcore.ports.storage import Store
    from arcore.relations.registry import RelationRegistry

    type Persist = Callable[[Model], None]
    type Track = Callable[[Model], None]

log = logging.getLogger(__name__)


def _untracked(_: Model) -> None:
    return None


class RelationBinder:
    def __init__(self, registry: RelationRegistry, store: Store) -> None:
        self.registry = registry
        self.store = store

    def bind(
        self,
        owner: Model,
        relation_name: str,
        target: Model,
        *,
        persist: Persist,
        track: Track | None = None,
        pivot_data: Mapping[str, object] | None = None,
    ) -> None:
        """Link ``target`` to the persisted ``owner`` through ``relation_name``.

        Single-valued owned relations hold one row: whatever occupies the slot
        is detached (or deleted for attachments and ``delete=True``) first.
        """

        descriptor = self.registry.resolve_descriptor(type(owner), relation_name)
        _require_identity(owner, "bind to")
        track = track or _untracked
        with self.store.transaction():
            match descriptor.kind:
                case RelationKind.HAS_ONE | RelationKind.HAS_MANY:
                    link = {descriptor.foreign_key or "": _owner_value(owner, descriptor)}
                    self._link(relation_name, descriptor, target, link, persist, track)
                case (
                    RelationKind.MORPH_ONE
                    | RelationKind.MORPH_MANY
                    | RelationKind.ATTACH_ONE
                    | RelationKind.ATTACH_MANY
                ):
                    type_column, id_column = morph_columns(descriptor.morph_name or "")
                    link = {type_column: owner.morph_class, id_column: owner.identity}
                    self._link(relation_name, descriptor, target, link, persist, track)
                case RelationKind.BELONGS_TO:
                    if not target.exists:
                        persist(target)
                    key = descriptor.owner_key or target.primary_key
                    self._update_owner(owner, descriptor.foreign_key or "", target.get(key), track)
                case RelationKind.BELONGS_TO_MANY:
                    if not target.exists:
                        persist(target)
                    self._attach_pivot(owner, descriptor, target, pivot_data or {})
                case RelationKind.HAS_MANY_THROUGH:
                    raise UnsupportedOperationError(
                        f"Through relation {relation_name!r} is read-only"
                    )
        owner.forget_relation(relation_name)
        log.debug("Bound %r to %r.%s", target, owner, relation_name)

    def unbind(
        self,
        owner: Model,
        relation_name: str,
        target: Model,
        *,
        track: Track | None = None,
    ) -> None:
        """Remove the link between ``owner`` and the persisted ``target``."""

        descriptor = self.registry.resolve_descriptor(type(owner), relation_name)
        _require_identity(owner, "unbind from")
        _require_identity(target, "unbind")
        track = track or _untracked
        with self.store.transaction():
            match descriptor.kind:
                case RelationKind.HAS_ONE | RelationKind.HAS_MANY:
                    foreign_key = descriptor.foreign_key or ""
                    self._detach(
                        target,
                        descriptor,
                        {foreign_key: _owner_value(owner, descriptor)},
                        track,
                    )
                case RelationKind.MORPH_ONE | RelationKind.MORPH_MANY:
                    type_column, id_column = morph_columns(descriptor.morph_name or "")
                    self._detach(
                        target,
                        descriptor,
                        {type_column: owner.morph_class, id_column: owner.identity},
                        track,
                    )
                case RelationKind.ATTACH_ONE | RelationKind.ATTACH_MANY:
                    self._delete_target(target, track)
                case RelationKind.BELONGS_TO:
                    self._clear_owner(owner, descriptor, target, track)
                case RelationKind.BELONGS_TO_MANY:
                    pivot = pivot_table(self.registry, type(owner), descriptor)
                    self.store.delete(pivot, _pivot_where(pivot, descriptor, owner, target))
                case RelationKind.HAS_MANY_THROUGH:
                    raise UnsupportedOperationError(
                        f"Through relation {relation_name!r} is read-only"
                    )
        owner.forget_relation(relation_name)
        log.debug("Unbound %r from %r.%s", target, owner, relation_name)

    # helpers ------------------------------------------------------------------

    def _link(
        self,
        relation_name: str,
        descriptor: RelationDescriptor,
        target: Model,
        link: Mapping[str, object],
        persist: Persist,
        track: Track,
    ) -> None:
        if descriptor.is_single:
            self._release_slot(relation_name, descriptor, target, link)
        track(target)
        target.fill(**link)
        if descriptor.kind.is_attachment:
            target.fill(field=relation_name, is_public=descriptor.public)
        persist(target)

    def _release_slot(
        self,
        relation_name: str,
        descriptor: RelationDescriptor,
        target: Model,
        link: Mapping[str, object],
    ) -> None:
        target_cls = type(target)
        table = self.registry.table_for(target_cls)
        clauses = [table.c[name] == value for name, value in link.items()]
        clauses.extend(scope_clauses(target_cls, table, descriptor.conditions))
        if descriptor.kind.is_attachment:
            clauses.append(table.c["field"] == relation_name)
        if target.identity is not None:
            clauses.append(table.c[target.primary_key] != target.identity)
        where = and_(*clauses)
        if descriptor.delete or descriptor.kind.is_attachment:
            released = self.store.delete(table, where)
        else:
            released = self.store.update(table, where, dict.fromkeys(link))
        if released:
            log.debug("Released %s previous %s row(s) for %s", released, table.name, relation_name)

    def _update_owner(self, owner: Model, foreign_key: str, value: object, track: Track) -> None:
        table = self.registry.table_for(type(owner))
        track(owner)
        owner[foreign_key] = value
        self.store.update(
            table, table.c[owner.primary_key] == owner.identity, {foreign_key: value}
        )
        owner.sync_original(foreign_key)

    def _clear_owner(
        self, owner: Model, descriptor: RelationDescriptor, target: Model, track: Track
    ) -> None:
        foreign_key = descriptor.foreign_key or ""
        value = target.get(descriptor.owner_key or target.primary_key)
        table = self.registry.table_for(type(owner))
        where = and_(
            table.c[owner.primary_key] == owner.identity,
            table.c[foreign_key] == value,
        )
        if not self.store.update(table, where, {foreign_key: None}):
            log.debug("%r no longer points at %r; nothing to unbind", owner, target)
            return
        track(owner)
        owner[foreign_key] = None
        owner.sync_original(foreign_key)

    def _attach_pivot(
        self,
        owner: Model,
        descriptor: RelationDescriptor,
        target: Model,
        pivot_data: Mapping[str, object],
    ) -> None:
        pivot = pivot_table(self.registry, type(owner), descriptor)
        where = _pivot_where(pivot, descriptor, owner, target)
        existing = self.store.fetch_one(select(pivot).where(where))
        if existing is not None:
            self.store.update(pivot, where, pivot_data)
            return
        values = {
            **pivot_data,
            descriptor.pivot_key or "": owner.identity,
            descriptor.pivot_related_key or "": target.identity,
        }
        self.store.insert(pivot, values)

    def _detach(
        self,
        target: Model,
        descriptor: RelationDescriptor,
        link: Mapping[str, object],
        track: Track,
    ) -> None:
        if descriptor.delete:
            self._delete_target(target, track)
            return
        table = self.registry.table_for(type(target))
        clauses = [table.c[target.primary_key] == target.identity]
        clauses.extend(table.c[name] == value for name, value in link.items())
        cleared = dict.fromkeys(link)
        self.store.update(table, and_(*clauses), cleared)
        track(target)
        target.fill(**cleared)
        target.sync_original(*cleared)

    def _delete_target(self, target: Model, track: Track) -> None:
        table = self.registry.table_for(type(target))
        self.store.delete(table, table.c[target.primary_key] == target.identity)
        track(target)
        target.mark_removed()


def _require_identity(model: Model, action: str) -> None:
    if model.identity is None:
        raise PreconditionError(f"Cannot {action} {type(model).__name__} without identity")


def _owner_value(owner: Model, descriptor: RelationDescriptor) -> object:
    return owner.get(descriptor.owner_key or owner.primary_key)


def _pivot_where(
    pivot: Table, descriptor: RelationDescriptor, owner: Model, target: Model
) -> ColumnElement[bool]:
    return and_(
        pivot.c[descriptor.pivot_key or ""] == owner.identity,
        pivot.c[descriptor.pivot_related_key or ""] == target.identity,
    )
