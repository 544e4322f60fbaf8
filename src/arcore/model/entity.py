"""Active-record model base: identity, attribute bag and dirty tracking."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, ClassVar

from arcore.model.messages import MessageBag

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from arcore.model.descriptors import RelationDescriptor

_MISSING = object()


@dataclass(frozen=True, slots=True)
class ModelSnapshot:
    attributes: dict[str, object]
    original: dict[str, object]
    exists: bool


class Model:
    """In-memory representation of one persistent row.

    Subclasses configure behaviour through class attributes; instances only
    hold the attribute bag plus bookkeeping. Attribute values are accessed by
    item (``post["title"]``) so column names never collide with model API.
    """

    primary_key: ClassVar[str] = "id"
    morph_class: ClassVar[str]

    relations: ClassVar[Mapping[str, RelationDescriptor]] = {}

    rules: ClassVar[Mapping[str, str | Iterable[str]]] = {}
    custom_messages: ClassVar[Mapping[str, str]] = {}

    # attribute transforms, applied in this order on save
    hashable: ClassVar[tuple[str, ...]] = ()
    encryptable: ClassVar[tuple[str, ...]] = ()
    jsonable: ClassVar[tuple[str, ...]] = ()
    slugs: ClassVar[Mapping[str, str | tuple[str, ...]]] = {}
    purgeable: ClassVar[tuple[str, ...]] = ()

    soft_delete: ClassVar[bool] = False
    timestamps: ClassVar[bool] = False

    DELETED_AT: ClassVar[str] = "deleted_at"
    CREATED_AT: ClassVar[str] = "created_at"
    UPDATED_AT: ClassVar[str] = "updated_at"

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        if "morph_class" not in cls.__dict__:
            cls.morph_class = cls.__name__

    def __init__(self, **attributes: object) -> None:
        self._attributes: dict[str, object] = {}
        self._original: dict[str, object] = {}
        self._exists = False
        self._relations: dict[str, object] = {}
        self._errors = MessageBag()
        self.pivot: dict[str, object] | None = None
        self.fill(**attributes)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.primary_key}={self.identity!r}>"

    # attributes ---------------------------------------------------------------

    def __getitem__(self, name: str) -> object:
        try:
            return self._attributes[name]
        except KeyError:
            raise KeyError(f"{type(self).__name__} has no attribute {name!r}") from None

    def __setitem__(self, name: str, value: object) -> None:
        self._attributes[name] = value

    def __delitem__(self, name: str) -> None:
        del self._attributes[name]

    def __contains__(self, name: object) -> bool:
        return name in self._attributes

    def get(self, name: str, default: object = None) -> object:
        return self._attributes.get(name, default)

    def fill(self, **attributes: object) -> None:
        self._attributes.update(attributes)

    @property
    def attributes(self) -> dict[str, object]:
        return dict(self._attributes)

    # identity -----------------------------------------------------------------

    @property
    def identity(self) -> Any:
        if not self._exists:
            return None
        return self._attributes.get(self.primary_key)

    @property
    def exists(self) -> bool:
        return self._exists

    @property
    def trashed(self) -> bool:
        return self.soft_delete and self._attributes.get(self.DELETED_AT) is not None

    # dirty tracking -----------------------------------------------------------

    @property
    def dirty(self) -> tuple[str, ...]:
        return tuple(
            name
            for name, value in self._attributes.items()
            if self._original.get(name, _MISSING) != value
        )

    def is_dirty(self, name: str | None = None) -> bool:
        if name is None:
            return bool(self.dirty)
        return name in self.dirty

    def original(self, name: str, default: object = None) -> object:
        return self._original.get(name, default)

    def sync_original(self, *names: str) -> None:
        """Treat the current values (of ``names``, or all attributes) as stored."""

        if not names:
            self._original = dict(self._attributes)
            return
        for name in names:
            if name in self._attributes:
                self._original[name] = self._attributes[name]

    def mark_persisted(self, identity: object | None = None) -> None:
        """Record a successful write; the current attributes become the original."""

        if identity is not None:
            self._attributes[self.primary_key] = identity
        self._exists = True
        self.sync_original()

    def mark_removed(self) -> None:
        self._exists = False

    def snapshot(self) -> ModelSnapshot:
        return ModelSnapshot(dict(self._attributes), dict(self._original), self._exists)

    def rewind(self, snapshot: ModelSnapshot) -> None:
        """Return to ``snapshot``, e.g. after the transaction that saved us rolled back."""

        self._attributes = dict(snapshot.attributes)
        self._original = dict(snapshot.original)
        self._exists = snapshot.exists

    # relation cache -----------------------------------------------------------

    def relation_loaded(self, name: str) -> bool:
        return name in self._relations

    def cached_relation(self, name: str) -> object:
        return self._relations[name]

    def set_relation(self, name: str, value: object) -> None:
        self._relations[name] = value

    def forget_relation(self, name: str | None = None) -> None:
        if name is None:
            self._relations.clear()
            return
        self._relations.pop(name, None)

    # validation ---------------------------------------------------------------

    @property
    def errors(self) -> MessageBag:
        return self._errors

    def set_errors(self, errors: MessageBag) -> None:
        self._errors = errors

    @classmethod
    def from_row(cls, row: Mapping[str, object]) -> Model:
        """Build a persisted instance straight from decoded column values."""

        model = cls()
        model._attributes = dict(row)  # noqa: SLF001
        model.mark_persisted()
        return model
