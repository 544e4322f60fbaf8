"""Application entry points: the ``Orm`` facade and maintenance tasks."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from arcore.adapters.codecs import AttributeCodec
from arcore.adapters.events import HookDispatcher
from arcore.adapters.sqlalchemy import (
    SqlAlchemyStore,
    configured_engine,
    file_table,
    startup,
)
from arcore.adapters.validation import RuleValidator
from arcore.bindings.ledger import DeferredBindingLedger
from arcore.config import get_binding_config
from arcore.model.files import File
from arcore.persistence import AttributeTransformer, SaveOrchestrator
from arcore.relations import (
    RelationBinder,
    RelationHandle,
    RelationRegistry,
    RelationResolver,
)

if TYPE_CHECKING:
    from collections.abc import Mapping

    from sqlalchemy import Table
    from sqlalchemy.engine import Engine

    from arcore.bindings.records import DeferredBinding
    from arcore.config import BindingConfig
    from arcore.model.entity import Model
    from arcore.persistence import SaveResult
    from arcore.ports import Codec, EventDispatcher, Validator
    from arcore.relations import ModelQuery
    from arcore.relations.registry import RelationMutator
    from arcore.relations.resolver import Resolved

log = getLogger(__name__)


class Orm:
    """Wires the registry, store, resolver, ledger and orchestrator together.

    Collaborators default to the bundled adapters; pass your own to swap the
    validator, the event dispatcher or the attribute codec.
    """

    def __init__(
        self,
        engine: Engine | None = None,
        *,
        registry: RelationRegistry | None = None,
        validator: Validator | None = None,
        events: EventDispatcher | None = None,
        codec: Codec | None = None,
        binding_config: BindingConfig | None = None,
        file_model: tuple[type[Model], Table] | None = None,
    ) -> None:
        self.engine = engine or configured_engine() or startup()
        self.registry = registry or RelationRegistry()
        self.store = SqlAlchemyStore(self.engine)
        self.validator: Validator = validator or RuleValidator()
        self.events: EventDispatcher = events or HookDispatcher()
        self.codec: Codec = codec or AttributeCodec()
        self.transformer = AttributeTransformer(self.codec)
        self.resolver = RelationResolver(self.registry, self.store, self.transformer, self.events)
        self.binder = RelationBinder(self.registry, self.store)
        self.ledger = DeferredBindingLedger(
            self.registry,
            self.store,
            self.resolver,
            self.binder,
            self.transformer,
            config=binding_config or get_binding_config(),
        )
        self.orchestrator = SaveOrchestrator(
            self.registry,
            self.store,
            self.validator,
            self.events,
            self.transformer,
            self.resolver,
            self.ledger,
        )
        file_cls, files = file_model or (File, file_table)
        if not self.registry.is_registered(file_cls):
            self.registry.register_model(file_cls, files)

    # types --------------------------------------------------------------------

    def register(self, model_cls: type[Model], table: Table) -> None:
        self.registry.register_model(model_cls, table)

    def extend(self, model: type[Model] | str, mutator: RelationMutator) -> None:
        self.registry.extend(model, mutator)

    # lifecycle ----------------------------------------------------------------

    def save(self, model: Model, *, session_key: str | None = None) -> SaveResult:
        return self.orchestrator.save(model, session_key=session_key)

    def force_save(self, model: Model, *, session_key: str | None = None) -> SaveResult:
        return self.orchestrator.force_save(model, session_key=session_key)

    def delete(self, model: Model, *, force: bool = False) -> bool:
        return self.orchestrator.delete(model, force=force)

    def restore(self, model: Model) -> bool:
        return self.orchestrator.restore(model)

    def find[TModel: Model](
        self, model_cls: type[TModel], identity: object, *, with_trashed: bool = False
    ) -> TModel | None:
        return self.orchestrator.find(model_cls, identity, with_trashed=with_trashed)

    def query[TModel: Model](self, model_cls: type[TModel]) -> ModelQuery[TModel]:
        return self.orchestrator.query(model_cls)

    def join[TModel: Model](
        self, query: ModelQuery[TModel], relation_name: str
    ) -> ModelQuery[TModel]:
        return self.resolver.join_resolve(query, relation_name)

    # relations ----------------------------------------------------------------

    def relation(self, owner: Model, relation_name: str) -> RelationHandle:
        return RelationHandle(
            owner,
            relation_name,
            resolver=self.resolver,
            ledger=self.ledger,
            orchestrator=self.orchestrator,
        )

    def resolve(self, owner: Model, relation_name: str, *, refresh: bool = False) -> Resolved:
        return self.resolver.resolve(owner, relation_name, refresh=refresh)

    def stage_bind(
        self,
        owner: Model,
        relation_name: str,
        session_key: str,
        target: Model,
        pivot_data: Mapping[str, object] | None = None,
    ) -> DeferredBinding | None:
        return self.relation(owner, relation_name).stage_bind(
            target, session_key, pivot_data=pivot_data
        )

    def stage_unbind(
        self, owner: Model, relation_name: str, session_key: str, target: Model
    ) -> DeferredBinding | None:
        return self.relation(owner, relation_name).stage_unbind(target, session_key)

    def list_bindings(self, owner: Model, relation_name: str, session_key: str) -> list[Model]:
        return self.ledger.list_bindings(owner, relation_name, session_key)

    def commit_deferred(
        self, owner: Model, session_key: str, relation_name: str | None = None
    ) -> int:
        """Apply staged bindings for an already saved owner without saving it again."""

        return self.orchestrator.commit_bindings(owner, session_key, relation_name)

    def cancel(self, session_key: str) -> int:
        return self.ledger.cancel(session_key)

    def purge_older_than(self, days: int | None = None) -> int:
        return self.ledger.purge(days)


def purge_deferred_bindings(
    *, days: int | None = None, engine: Engine | None = None
) -> int:
    """Delete stale uncommitted deferred bindings using the configured database."""

    orm = Orm(engine)
    retention = orm.ledger.config.retention_days if days is None else days
    log.info("Purging deferred bindings older than %s day(s)", retention)
    return orm.purge_older_than(days)
