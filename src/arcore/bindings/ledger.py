"""Deferred relationship bindings staged under a session key.

Relation changes made while an owner (or its target) has no identity are
recorded in ``deferred_bindings`` and applied when the owner is saved with the
same session key. Unpersisted targets are stored as a JSON payload; the live
object is remembered weakly so it receives its identity when the record is
committed.
"""

from __future__ import annotations

import logging
import weakref
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from sqlalchemy import and_, select

from arcore.adapters.sqlalchemy.tables import deferred_binding_table
from arcore.bindings.records import DeferredBinding, encode_mapping
from arcore.config import BindingConfig, get_binding_config
from arcore.errors import PreconditionError, UnsupportedOperationError
from arcore.model.enums import BindingOperation, RelationKind
from arcore.model.naming import morph_columns

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from sqlalchemy import Column, ColumnElement, Table

    from arcore.model.descriptors import RelationDescriptor
    from arcore.model.entity import Model
    from arcore.persistence.transforms import AttributeTransformer
    from arcore.ports.storage import Store
    from arcore.relations.binder import Persist, RelationBinder, Track
    from arcore.relations.registry import RelationRegistry
    from arcore.relations.resolver import RelationResolver

log = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(UTC)


class DeferredBindingLedger:
    def __init__(
        self,
        registry: RelationRegistry,
        store: Store,
        resolver: RelationResolver,
        binder: RelationBinder,
        transformer: AttributeTransformer,
        *,
        config: BindingConfig | None = None,
        table: Table = deferred_binding_table,
        clock: Callable[[], datetime] = _now,
    ) -> None:
        self.registry = registry
        self.store = store
        self.resolver = resolver
        self.binder = binder
        self.transformer = transformer
        self.config = config or get_binding_config()
        self.table = table
        self.clock = clock
        self._arena: weakref.WeakValueDictionary[int, Model] = weakref.WeakValueDictionary()

    # staging ------------------------------------------------------------------

    def stage_bind(
        self,
        owner: Model,
        relation_name: str,
        session_key: str,
        target: Model,
        pivot_data: Mapping[str, object] | None = None,
    ) -> DeferredBinding | None:
        """Record that ``target`` should be bound to ``owner`` on commit.

        Returns the staged record, or ``None`` when staging cancelled an
        earlier unbind of the same target.
        """

        self._writable(owner, relation_name, target)
        with self.store.transaction():
            if target.identity is None:
                return self._stage_payload(owner, relation_name, session_key, target, pivot_data)
            return self._stage_persisted(
                owner, relation_name, session_key, target, BindingOperation.BIND, pivot_data
            )

    def stage_unbind(
        self, owner: Model, relation_name: str, session_key: str, target: Model
    ) -> DeferredBinding | None:
        self._writable(owner, relation_name, target)
        if target.identity is None:
            raise PreconditionError(
                f"Cannot stage unbinding of {type(target).__name__} without identity"
            )
        with self.store.transaction():
            return self._stage_persisted(
                owner, relation_name, session_key, target, BindingOperation.UNBIND, None
            )

    def list_bindings(self, owner: Model, relation_name: str, session_key: str) -> list[Model]:
        """Related models as they will be after a commit; nothing is written."""

        descriptor = self._descriptor(owner, relation_name)
        with self.store.transaction():
            persisted = (
                self.resolver.resolve_many(owner, relation_name, refresh=True)
                if owner.identity is not None
                else []
            )
            records = self._records(
                session_key, master_type=owner.morph_class, master_field=relation_name
            )
            unbound = {
                (record.slave_type, record.slave_id) for record in records if not record.is_bind
            }
            results = [
                model
                for model in persisted
                if (model.morph_class, str(model.identity)) not in unbound
            ]
            known = {(model.morph_class, str(model.identity)) for model in results}
            for record in records:
                if not record.is_bind:
                    continue
                if record.has_payload:
                    results.append(self._payload_target(record))
                    continue
                if (record.slave_type, record.slave_id) in known:
                    continue
                target = self._load_slave(record)
                if target is not None:
                    results.append(target)
                    known.add((record.slave_type, record.slave_id))
        if descriptor.is_single and len(results) > 1:
            return results[-1:]
        return results

    # committing ---------------------------------------------------------------

    def commit(
        self,
        owner: Model,
        session_key: str,
        relation_name: str | None = None,
        *,
        persist: Persist,
        track: Track | None = None,
    ) -> int:
        """Apply the key's uncommitted records for ``owner``; returns how many were applied.

        ``persist`` saves payload targets (and any target whose key changes)
        through the save pipeline and ``track`` sees every model before the
        binder mutates it. Committed records are never re-applied.
        """

        if owner.identity is None:
            raise PreconditionError(
                f"Cannot commit bindings for {type(owner).__name__} without identity"
            )
        applied = 0
        with self.store.transaction():
            records = self._records(
                session_key, master_type=owner.morph_class, master_field=relation_name
            )
            for record in records:
                self._apply(owner, record, persist, track)
                self._settle(record)
                applied += 1
        for record in records:
            self._arena.pop(record.id, None)
        if applied:
            log.info(
                "Committed %s deferred binding(s) for %r under session %s",
                applied,
                owner,
                session_key,
            )
        return applied

    def cancel(self, session_key: str) -> int:
        """Drop the key's uncommitted records and the orphans they would have adopted."""

        with self.store.transaction():
            records = self._records(session_key)
            orphans = 0
            for record in records:
                if record.is_bind and not record.has_payload and self._delete_orphan(record):
                    orphans += 1
            removed = self.store.delete(
                self.table,
                and_(
                    self.table.c.session_key == session_key,
                    self.table.c.is_committed.is_(False),
                ),
            )
        for record in records:
            self._arena.pop(record.id, None)
        log.info(
            "Cancelled %s deferred binding(s) under session %s (%s orphan(s) deleted)",
            removed,
            session_key,
            orphans,
        )
        return removed

    def purge(self, older_than_days: int | None = None) -> int:
        """Delete uncommitted records older than the cutoff in one statement."""

        days = self.config.retention_days if older_than_days is None else older_than_days
        if days < 0:
            raise ValueError("older_than_days must be non-negative")
        cutoff = self.clock() - timedelta(days=days)
        removed = self.store.delete(
            self.table,
            and_(self.table.c.is_committed.is_(False), self.table.c.created_at < cutoff),
        )
        log.info("Purged %s deferred binding(s) older than %s day(s)", removed, days)
        return removed

    def pending(self, session_key: str) -> list[DeferredBinding]:
        with self.store.transaction():
            return self._records(session_key)

    # staging internals --------------------------------------------------------

    def _stage_payload(
        self,
        owner: Model,
        relation_name: str,
        session_key: str,
        target: Model,
        pivot_data: Mapping[str, object] | None,
    ) -> DeferredBinding:
        records = self._records(
            session_key, master_type=owner.morph_class, master_field=relation_name
        )
        for record in records:
            if record.has_payload and self._arena.get(record.id) is target:
                return record
        record = self._insert(
            owner,
            relation_name,
            session_key,
            target,
            BindingOperation.BIND,
            payload=target.attributes,
            pivot_data=pivot_data,
        )
        self._arena[record.id] = target
        return record

    def _stage_persisted(
        self,
        owner: Model,
        relation_name: str,
        session_key: str,
        target: Model,
        operation: BindingOperation,
        pivot_data: Mapping[str, object] | None,
    ) -> DeferredBinding | None:
        slave_id = str(target.identity)
        records = self._records(
            session_key, master_type=owner.morph_class, master_field=relation_name
        )
        for record in records:
            if record.slave_type != target.morph_class or record.slave_id != slave_id:
                continue
            if record.operation is operation:
                log.debug("Binding already staged: %s", record)
                return record
            self.store.delete(self.table, self.table.c.id == record.id)
            log.debug("Staged %s cancelled pending %s", operation, record)
            return None
        return self._insert(
            owner,
            relation_name,
            session_key,
            target,
            operation,
            slave_id=slave_id,
            pivot_data=pivot_data,
        )

    def _insert(
        self,
        owner: Model,
        relation_name: str,
        session_key: str,
        target: Model,
        operation: BindingOperation,
        *,
        slave_id: str | None = None,
        payload: Mapping[str, object] | None = None,
        pivot_data: Mapping[str, object] | None = None,
    ) -> DeferredBinding:
        values = {
            "session_key": session_key,
            "master_type": owner.morph_class,
            "master_field": relation_name,
            "slave_type": target.morph_class,
            "slave_id": slave_id,
            "payload": encode_mapping(payload),
            "pivot_data": encode_mapping(pivot_data),
            "operation": operation,
            "is_committed": False,
            "created_at": self.clock(),
        }
        identity = self.store.insert(self.table, values)
        row = self.store.fetch_one(select(self.table).where(self.table.c.id == identity))
        if row is None:
            raise PreconditionError(f"Deferred binding {identity!r} vanished after insert")
        record = DeferredBinding.from_row(row)
        log.debug("Staged %s", record)
        return record

    # commit internals ---------------------------------------------------------

    def _apply(
        self,
        owner: Model,
        record: DeferredBinding,
        persist: Persist,
        track: Track | None,
    ) -> None:
        if record.has_payload:
            target = self._payload_target(record)
        else:
            loaded = self._load_slave(record, with_trashed=True)
            if loaded is None:
                log.warning("Skipping %s: slave no longer exists", record)
                return
            target = loaded
        if record.is_bind:
            self.binder.bind(
                owner,
                record.master_field,
                target,
                persist=persist,
                track=track,
                pivot_data=record.pivot_data,
            )
        else:
            self.binder.unbind(owner, record.master_field, target, track=track)

    def _settle(self, record: DeferredBinding) -> None:
        where = self.table.c.id == record.id
        if self.config.delete_committed:
            self.store.delete(self.table, where)
        else:
            self.store.update(self.table, where, {"is_committed": True})

    def _delete_orphan(self, record: DeferredBinding) -> bool:
        descriptor = self.registry.resolve_descriptor(record.master_type, record.master_field)
        if not descriptor.kind.owns_target:
            return False
        target = self._load_slave(record, with_trashed=True)
        if target is None or any(target.get(column) is not None for column in _links(descriptor)):
            return False
        table = self.registry.table_for(type(target))
        self.store.delete(table, table.c[target.primary_key] == target.identity)
        target.mark_removed()
        log.debug("Deleted orphaned %r", target)
        return True

    # lookups ------------------------------------------------------------------

    def _records(
        self,
        session_key: str,
        *,
        master_type: str | None = None,
        master_field: str | None = None,
    ) -> list[DeferredBinding]:
        clauses: list[ColumnElement[bool]] = [
            self.table.c.session_key == session_key,
            self.table.c.is_committed.is_(False),
        ]
        if master_type is not None:
            clauses.append(self.table.c.master_type == master_type)
        if master_field is not None:
            clauses.append(self.table.c.master_field == master_field)
        statement = select(self.table).where(*clauses).order_by(self.table.c.id.asc())
        return [DeferredBinding.from_row(row) for row in self.store.fetch_all(statement)]

    def _payload_target(self, record: DeferredBinding) -> Model:
        live = self._arena.get(record.id)
        if live is not None:
            return live
        target_cls = self.registry.model_for(record.slave_type)
        target = target_cls(**(record.payload or {}))
        self._arena[record.id] = target
        return target

    def _load_slave(self, record: DeferredBinding, *, with_trashed: bool = False) -> Model | None:
        target_cls = self.registry.model_for(record.slave_type)
        table = self.registry.table_for(target_cls)
        key = table.c[target_cls.primary_key]
        statement = select(table).where(key == _coerce_identity(key, record.slave_id))
        if not with_trashed and target_cls.soft_delete and target_cls.DELETED_AT in table.c:
            statement = statement.where(table.c[target_cls.DELETED_AT].is_(None))
        row = self.store.fetch_one(statement)
        if row is None:
            return None
        return self.transformer.hydrate(target_cls, row)

    def _descriptor(self, owner: Model, relation_name: str) -> RelationDescriptor:
        descriptor = self.registry.resolve_descriptor(type(owner), relation_name)
        if descriptor.kind is RelationKind.HAS_MANY_THROUGH:
            raise UnsupportedOperationError(
                f"Through relation {relation_name!r} cannot be bound or unbound"
            )
        return descriptor

    def _writable(self, owner: Model, relation_name: str, target: Model) -> None:
        descriptor = self._descriptor(owner, relation_name)
        expected = self.registry.model_for(descriptor.target)
        if not isinstance(target, expected):
            raise PreconditionError(
                f"{owner.morph_class}.{relation_name} expects {expected.__name__}, "
                f"got {type(target).__name__}"
            )


def _links(descriptor: RelationDescriptor) -> tuple[str, ...]:
    if descriptor.kind.is_polymorphic:
        return morph_columns(descriptor.morph_name or "")[1:]
    return (descriptor.foreign_key or "",)


def _coerce_identity(column: Column[object], raw: str | None) -> object:
    try:
        python_type = column.type.python_type
    except NotImplementedError:
        return raw
    if raw is not None and python_type is int:
        return int(raw)
    return raw
