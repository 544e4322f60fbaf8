"""Attribute modifiers applied between validation and persistence.

Order is fixed: hash, encrypt, JSON encode, slug, purge. Hashes and slugs
are written back onto the model; encryption and JSON encoding only affect
the values sent to storage, so the in-memory model keeps working with
plain values. Purged attributes leave the write set last, so they can still
feed a slug or a hash.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from arcore.model.entity import Model
    from arcore.ports.codecs import Codec

    type SlugTaken = Callable[[str, str], bool]

log = logging.getLogger(__name__)

MAX_SLUG_ATTEMPTS = 1000


def _now() -> datetime:
    return datetime.now(UTC)


class AttributeTransformer:
    def __init__(self, codec: Codec, *, clock: Callable[[], datetime] = _now) -> None:
        self.codec = codec
        self.clock = clock

    def hydrate[TModel: Model](self, model_cls: type[TModel], row: Mapping[str, object]) -> TModel:
        """Decode a stored row (decrypt, JSON decode) into a persisted model."""

        values = dict(row)
        for name in model_cls.encryptable:
            value = values.get(name)
            if isinstance(value, str):
                values[name] = self.codec.decrypt(value)
        for name in model_cls.jsonable:
            value = values.get(name)
            if isinstance(value, str):
                values[name] = self.codec.decode_json(value)
        model = model_cls.from_row(values)
        if not isinstance(model, model_cls):
            raise TypeError(f"{model_cls.__name__}.from_row returned {type(model).__name__}")
        return model

    def write_set(self, model: Model, *, slug_taken: SlugTaken) -> dict[str, object]:
        """Return the column values to write for ``model``.

        New models write every attribute; existing ones only dirty attributes.
        """

        creating = not model.exists
        self._touch(model, creating=creating)
        self._hash(model, creating=creating)

        values = dict(model.attributes)
        if creating:
            if values.get(model.primary_key) is None:
                values.pop(model.primary_key, None)
        else:
            dirty = set(model.dirty)
            values = {name: value for name, value in values.items() if name in dirty}
            values.pop(model.primary_key, None)

        self._encrypt(model, values)
        self._encode_json(model, values)
        self._slug(model, values, slug_taken)
        for name in model.purgeable:
            values.pop(name, None)
        return values

    def _touch(self, model: Model, *, creating: bool) -> None:
        if not model.timestamps:
            return
        if not creating and not model.is_dirty():
            return
        now = self.clock()
        if creating and model.get(model.CREATED_AT) is None:
            model[model.CREATED_AT] = now
        model[model.UPDATED_AT] = now

    def _hash(self, model: Model, *, creating: bool) -> None:
        for name in model.hashable:
            value = model.get(name)
            if not isinstance(value, str) or not value or self.codec.is_hashed(value):
                continue
            if creating or model.is_dirty(name):
                model[name] = self.codec.hash(value)

    def _encrypt(self, model: Model, values: dict[str, object]) -> None:
        for name in model.encryptable:
            if name in values and values[name] is not None:
                values[name] = self.codec.encrypt(values[name])

    def _encode_json(self, model: Model, values: dict[str, object]) -> None:
        for name in model.jsonable:
            if name in values and values[name] is not None:
                values[name] = self.codec.encode_json(values[name])

    def _slug(self, model: Model, values: dict[str, object], slug_taken: SlugTaken) -> None:
        for slug_attribute, sources in model.slugs.items():
            if model.get(slug_attribute):
                continue
            names = (sources,) if isinstance(sources, str) else sources
            text = " ".join(str(model.get(name)) for name in names if model.get(name))
            base = self.codec.slugify(text)
            if not base:
                continue
            slug = self._unique_slug(slug_attribute, base, slug_taken)
            model[slug_attribute] = slug
            values[slug_attribute] = slug
            log.debug("Generated slug %s=%s for %r", slug_attribute, slug, model)

    @staticmethod
    def _unique_slug(attribute: str, base: str, slug_taken: SlugTaken) -> str:
        candidate = base
        for counter in range(2, MAX_SLUG_ATTEMPTS + 2):
            if not slug_taken(attribute, candidate):
                return candidate
            candidate = f"{base}-{counter}"
        raise RuntimeError(f"Could not find a free slug for {attribute}={base!r}")
