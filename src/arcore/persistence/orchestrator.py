"""Save, delete and restore lifecycles.

A save walks ``new -> validating -> transforming -> persisting -> binding ->
eventing -> done``; validation failures and storage failures end in
``failed``. Persisting and committing the deferred bindings of the session key
share one transaction, so either both land or neither does.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from arcore.errors import (
    PreconditionError,
    StorageError,
    UnsupportedOperationError,
    ValidationError,
)
from arcore.model.enums import LifecycleEvent, SaveState
from arcore.model.messages import MessageBag
from arcore.relations.query import ModelQuery

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping

    from arcore.bindings.ledger import DeferredBindingLedger
    from arcore.model.entity import Model, ModelSnapshot
    from arcore.persistence.transforms import AttributeTransformer, SlugTaken
    from arcore.ports.events import EventDispatcher
    from arcore.ports.storage import Store
    from arcore.ports.validation import Validator
    from arcore.relations.registry import RelationRegistry
    from arcore.relations.resolver import RelationResolver

    type Journal = list[tuple[Model, ModelSnapshot]]

log = logging.getLogger(__name__)


@dataclass(slots=True)
class SaveResult:
    """Outcome of one save; truthy when the model was written."""

    model: Model
    state: SaveState = SaveState.NEW
    errors: MessageBag = field(default_factory=MessageBag)
    created: bool = False
    cancelled: bool = False
    bindings: int = 0

    def __bool__(self) -> bool:
        return self.state is SaveState.DONE

    def raise_for_errors(self) -> None:
        if self.state is not SaveState.FAILED:
            return
        if self.cancelled:
            raise PreconditionError(f"Saving {self.model!r} was cancelled by a hook")
        raise ValidationError(self.errors)


class SaveOrchestrator:
    def __init__(
        self,
        registry: RelationRegistry,
        store: Store,
        validator: Validator,
        events: EventDispatcher,
        transformer: AttributeTransformer,
        resolver: RelationResolver,
        ledger: DeferredBindingLedger,
    ) -> None:
        self.registry = registry
        self.store = store
        self.validator = validator
        self.events = events
        self.transformer = transformer
        self.resolver = resolver
        self.ledger = ledger
        self._local = threading.local()

    # saving -------------------------------------------------------------------

    def save(
        self, model: Model, *, session_key: str | None = None, force: bool = False
    ) -> SaveResult:
        """Validate, transform and write ``model``, then commit its deferred bindings.

        With ``force`` failed validation is recorded on the model and the
        result but does not stop the save.
        """

        result = SaveResult(model)
        if not self._validate(model, result, force=force):
            return result

        creating = not model.exists
        if not self._before_write(model, creating=creating):
            result.state = SaveState.FAILED
            result.cancelled = True
            return result

        try:
            with self._journal() as journal, self.store.transaction():
                journal.append((model, model.snapshot()))
                self._write(model, result, creating=creating)
                self.events.dispatch(
                    LifecycleEvent.AFTER_CREATE if creating else LifecycleEvent.AFTER_UPDATE,
                    model,
                )
                self.events.dispatch(LifecycleEvent.AFTER_SAVE, model)
                if session_key is not None:
                    result.state = SaveState.BINDING
                    result.bindings = self.ledger.commit(
                        model,
                        session_key,
                        persist=lambda target: self.persist(target, session_key=session_key),
                        track=self.track,
                    )
        except SQLAlchemyError as exc:
            result.state = SaveState.FAILED
            log.warning("Saving %r failed; transaction rolled back: %s", model, exc)
            raise StorageError(f"Saving {type(model).__name__} failed: {exc}") from exc
        except Exception:
            result.state = SaveState.FAILED
            raise

        result.state = SaveState.EVENTING
        model.forget_relation()
        result.state = SaveState.DONE
        log.debug("Saved %r (created=%s)", model, creating)
        return result

    def force_save(self, model: Model, *, session_key: str | None = None) -> SaveResult:
        return self.save(model, session_key=session_key, force=True)

    def persist(self, model: Model, *, session_key: str | None = None) -> None:
        """Save ``model`` or raise; used for targets written on behalf of an owner."""

        self.save(model, session_key=session_key).raise_for_errors()

    def commit_bindings(
        self, owner: Model, session_key: str, relation_name: str | None = None
    ) -> int:
        """Commit staged bindings for an owner that is already saved."""

        try:
            with self._journal(), self.store.transaction():
                return self.ledger.commit(
                    owner,
                    session_key,
                    relation_name,
                    persist=lambda target: self.persist(target, session_key=session_key),
                    track=self.track,
                )
        except SQLAlchemyError as exc:
            raise StorageError(f"Committing bindings for {owner!r} failed: {exc}") from exc

    def bind(
        self,
        owner: Model,
        relation_name: str,
        target: Model,
        *,
        pivot_data: Mapping[str, object] | None = None,
    ) -> None:
        """Link ``target`` to the saved ``owner`` now, saving the target if needed."""

        try:
            with self._journal(), self.store.transaction():
                self.ledger.binder.bind(
                    owner,
                    relation_name,
                    target,
                    persist=self.persist,
                    track=self.track,
                    pivot_data=pivot_data,
                )
        except SQLAlchemyError as exc:
            raise StorageError(f"Binding {owner!r}.{relation_name} failed: {exc}") from exc

    def unbind(self, owner: Model, relation_name: str, target: Model) -> None:
        try:
            with self._journal(), self.store.transaction():
                self.ledger.binder.unbind(owner, relation_name, target, track=self.track)
        except SQLAlchemyError as exc:
            raise StorageError(f"Unbinding {owner!r}.{relation_name} failed: {exc}") from exc

    def track(self, model: Model) -> None:
        """Snapshot ``model`` into the active journal so a rollback rewinds it."""

        journal: Journal | None = getattr(self._local, "journal", None)
        if journal is not None:
            journal.append((model, model.snapshot()))

    def _validate(self, model: Model, result: SaveResult, *, force: bool) -> bool:
        result.state = SaveState.VALIDATING
        if not self.events.dispatch(LifecycleEvent.BEFORE_VALIDATE, model):
            result.state = SaveState.FAILED
            result.cancelled = True
            return False
        passed, errors = self.validator.validate(
            model.attributes, model.rules, model.custom_messages
        )
        model.set_errors(errors)
        result.errors = errors
        if not passed and not force:
            result.state = SaveState.FAILED
            log.info("Validation failed for %r: %s", model, errors.first())
            return False
        if not passed:
            log.info("Forcing save of %r despite validation errors", model)
        self.events.dispatch(LifecycleEvent.AFTER_VALIDATE, model)
        return True

    def _before_write(self, model: Model, *, creating: bool) -> bool:
        if not self.events.dispatch(LifecycleEvent.BEFORE_SAVE, model):
            return False
        event = LifecycleEvent.BEFORE_CREATE if creating else LifecycleEvent.BEFORE_UPDATE
        return self.events.dispatch(event, model)

    def _write(self, model: Model, result: SaveResult, *, creating: bool) -> None:
        table = self.registry.table_for(type(model))
        result.state = SaveState.TRANSFORMING
        values = self.transformer.write_set(model, slug_taken=self._slug_checker(model))

        result.state = SaveState.PERSISTING
        if creating:
            identity = self.store.insert(table, values)
            model.mark_persisted(identity)
            result.created = True
            return
        self.store.update(table, table.c[model.primary_key] == model.identity, values)
        model.mark_persisted()

    def _slug_checker(self, model: Model) -> SlugTaken:
        table = self.registry.table_for(type(model))
        key = table.c[model.primary_key]

        def slug_taken(attribute: str, candidate: str) -> bool:
            column = self.registry.column(type(model), attribute)
            statement = select(key).where(column == candidate)
            if model.identity is not None:
                statement = statement.where(key != model.identity)
            return self.store.fetch_one(statement.limit(1)) is not None

        return slug_taken

    @contextmanager
    def _journal(self) -> Iterator[Journal]:
        """Snapshots of every model written in the outermost save, rewound on failure."""

        current: Journal | None = getattr(self._local, "journal", None)
        if current is not None:
            yield current
            return
        journal: Journal = []
        self._local.journal = journal
        try:
            yield journal
        except BaseException:
            for model, snapshot in reversed(journal):
                model.rewind(snapshot)
            raise
        finally:
            self._local.journal = None

    # deleting -----------------------------------------------------------------

    def delete(self, model: Model, *, force: bool = False) -> bool:
        """Soft delete when the model supports it (unless ``force``), else remove the row.

        Hard deletes also remove attachments and children of relations
        declared with ``delete=True``. Returns ``False`` when a hook cancelled.
        """

        if model.identity is None:
            raise PreconditionError(f"Cannot delete {type(model).__name__} without identity")
        if not self.events.dispatch(LifecycleEvent.BEFORE_DELETE, model):
            return False
        soft = model.soft_delete and not force
        try:
            with self._journal() as journal, self.store.transaction():
                journal.append((model, model.snapshot()))
                if soft:
                    self._set_deleted_at(model, self.transformer.clock())
                else:
                    self._delete_children(model)
                    table = self.registry.table_for(type(model))
                    self.store.delete(table, table.c[model.primary_key] == model.identity)
                    model.mark_removed()
        except SQLAlchemyError as exc:
            raise StorageError(f"Deleting {type(model).__name__} failed: {exc}") from exc
        model.forget_relation()
        self.events.dispatch(LifecycleEvent.AFTER_DELETE, model)
        log.debug("Deleted %r (soft=%s)", model, soft)
        return True

    def restore(self, model: Model) -> bool:
        if not model.soft_delete:
            raise UnsupportedOperationError(f"{type(model).__name__} does not soft delete")
        if model.identity is None:
            raise PreconditionError(f"Cannot restore {type(model).__name__} without identity")
        if not model.trashed:
            return False
        if not self.events.dispatch(LifecycleEvent.BEFORE_RESTORE, model):
            return False
        try:
            with self._journal() as journal, self.store.transaction():
                journal.append((model, model.snapshot()))
                self._set_deleted_at(model, None)
        except SQLAlchemyError as exc:
            raise StorageError(f"Restoring {type(model).__name__} failed: {exc}") from exc
        self.events.dispatch(LifecycleEvent.AFTER_RESTORE, model)
        return True

    def _set_deleted_at(self, model: Model, value: object) -> None:
        table = self.registry.table_for(type(model))
        column = self.registry.column(type(model), model.DELETED_AT)
        self.store.update(
            table, table.c[model.primary_key] == model.identity, {column.name: value}
        )
        model[model.DELETED_AT] = value
        model.sync_original(model.DELETED_AT)

    def _delete_children(self, model: Model) -> None:
        for name, descriptor in self.registry.relations_of(type(model)).items():
            if not (descriptor.delete or descriptor.kind.is_attachment):
                continue
            for child in self.resolver.resolve_many(model, name, refresh=True):
                self.delete(child, force=True)

    # loading ------------------------------------------------------------------

    def query[TModel: Model](self, model_cls: type[TModel]) -> ModelQuery[TModel]:
        return ModelQuery(
            model_cls,
            registry=self.registry,
            store=self.store,
            transformer=self.transformer,
            events=self.events,
        )

    def find[TModel: Model](
        self, model_cls: type[TModel], identity: object, *, with_trashed: bool = False
    ) -> TModel | None:
        query = self.query(model_cls)
        if with_trashed:
            query = query.with_trashed()
        return query.find(identity)

