"""Caller-facing view of one relation of one owner."""

from __future__ import annotations

from typing import TYPE_CHECKING

from arcore.errors import PreconditionError

if TYPE_CHECKING:
    from collections.abc import Mapping

    from arcore.bindings.ledger import DeferredBindingLedger
    from arcore.bindings.records import DeferredBinding
    from arcore.model.descriptors import RelationDescriptor
    from arcore.model.entity import Model
    from arcore.persistence.orchestrator import SaveOrchestrator
    from arcore.relations.resolver import RelationResolver, Resolved


class RelationHandle:
    """Read and mutate ``owner.<relation_name>``.

    ``add``/``remove`` with a session key are staged in the ledger and applied
    when the owner is saved with that key. Without a key the change is written
    immediately, which requires the owner to be persisted.
    """

    def __init__(
        self,
        owner: Model,
        relation_name: str,
        *,
        resolver: RelationResolver,
        ledger: DeferredBindingLedger,
        orchestrator: SaveOrchestrator,
    ) -> None:
        self.owner = owner
        self.relation_name = relation_name
        self._resolver = resolver
        self._ledger = ledger
        self._orchestrator = orchestrator
        self.descriptor: RelationDescriptor = resolver.registry.resolve_descriptor(
            type(owner), relation_name
        )

    def __repr__(self) -> str:
        return f"<RelationHandle {self.owner!r}.{self.relation_name}>"

    def resolve(self, *, refresh: bool = False) -> Resolved:
        return self._resolver.resolve(self.owner, self.relation_name, refresh=refresh)

    def get(self, *, session_key: str | None = None) -> list[Model]:
        """Related models as a list; with ``session_key`` staged changes are included."""

        if session_key is not None:
            return self.list_bindings(session_key)
        return self._resolver.resolve_many(self.owner, self.relation_name)

    def add(
        self,
        target: Model,
        *,
        session_key: str | None = None,
        pivot_data: Mapping[str, object] | None = None,
    ) -> None:
        if session_key is not None:
            self.stage_bind(target, session_key, pivot_data=pivot_data)
            return
        self._require_owner("add to")
        self._orchestrator.bind(self.owner, self.relation_name, target, pivot_data=pivot_data)

    def remove(self, target: Model, *, session_key: str | None = None) -> None:
        if session_key is not None:
            self.stage_unbind(target, session_key)
            return
        self._require_owner("remove from")
        self._orchestrator.unbind(self.owner, self.relation_name, target)

    def stage_bind(
        self,
        target: Model,
        session_key: str,
        *,
        pivot_data: Mapping[str, object] | None = None,
    ) -> DeferredBinding | None:
        record = self._ledger.stage_bind(
            self.owner, self.relation_name, session_key, target, pivot_data
        )
        self.owner.forget_relation(self.relation_name)
        return record

    def stage_unbind(self, target: Model, session_key: str) -> DeferredBinding | None:
        record = self._ledger.stage_unbind(self.owner, self.relation_name, session_key, target)
        self.owner.forget_relation(self.relation_name)
        return record

    def list_bindings(self, session_key: str) -> list[Model]:
        return self._ledger.list_bindings(self.owner, self.relation_name, session_key)

    def _require_owner(self, action: str) -> None:
        if self.owner.identity is None:
            raise PreconditionError(
                f"Cannot {action} {self.owner.morph_class}.{self.relation_name} before the "
                "owner is saved; pass a session_key to defer the change"
            )
