from __future__ import annotations

from dataclasses import replace
from typing import TYPE_CHECKING, ClassVar

import pytest
from sqlalchemy import Column, Integer, MetaData, Table

from arcore.errors import ConfigurationError, NotFoundError
from arcore.model import Model, RelationKind, has_many, has_many_through
from arcore.relations import RelationMapBuilder, RelationRegistry

if TYPE_CHECKING:
    from collections.abc import Mapping

    from arcore.model import RelationDescriptor

_metadata = MetaData()
_owners = Table("owners", _metadata, Column("id", Integer, primary_key=True))
_items = Table("items", _metadata, Column("id", Integer, primary_key=True))
_keyless = Table("keyless", _metadata, Column("code", Integer, primary_key=True))


class Owner(Model):
    relations: ClassVar[Mapping[str, RelationDescriptor]] = {
        "everything": has_many_through("Item", through="items", through_target="children"),
        "items": has_many("Item"),
    }


class Item(Model):
    pass


def test_register_model_fills_conventions_and_orders_through_last() -> None:
    registry = RelationRegistry()

    registry.register_model(Owner, _owners)

    relations = registry.relations_of(Owner)
    assert relations["items"].foreign_key == "owner_id"
    assert relations["everything"].through == "items"
    assert registry.model_for("Owner") is Owner
    assert registry.table_for("Owner") is _owners


def test_register_model_requires_primary_key_column() -> None:
    with pytest.raises(ConfigurationError, match="primary key"):
        RelationRegistry().register_model(Item, _keyless)


def test_morph_class_collision_is_rejected() -> None:
    registry = RelationRegistry()
    registry.register_model(Item, _items)

    class Imposter(Model):
        morph_class: ClassVar[str] = "Item"

    with pytest.raises(ConfigurationError, match="already registered"):
        registry.register_model(Imposter, _items)


def test_register_overwrites_last_write_wins() -> None:
    registry = RelationRegistry()
    registry.register_model(Owner, _owners)

    registry.register(Owner, "items", has_many("Item", foreign_key="parent_id"))

    assert registry.resolve_descriptor(Owner, "items").foreign_key == "parent_id"


def test_register_rejects_unknown_kind() -> None:
    registry = RelationRegistry()
    registry.register_model(Owner, _owners)
    bogus = replace(has_many("Item"), kind="has_lots")  # pyright: ignore[reportArgumentType]

    with pytest.raises(ConfigurationError, match="Unknown relation kind"):
        registry.register(Owner, "lots", bogus)


def test_register_accepts_kind_given_as_string() -> None:
    registry = RelationRegistry()
    registry.register_model(Owner, _owners)
    stringly = replace(has_many("Item"), kind="has_many")  # pyright: ignore[reportArgumentType]

    registry.register(Owner, "more", stringly)

    assert registry.resolve_descriptor(Owner, "more").kind is RelationKind.HAS_MANY


def test_through_with_undefined_hop_is_rejected() -> None:
    registry = RelationRegistry()
    registry.register_model(Owner, _owners)

    with pytest.raises(ConfigurationError, match="undefined relation"):
        registry.register(Owner, "broken", has_many_through("Item", through="missing"))


def test_resolve_unknown_relation_raises_not_found() -> None:
    registry = RelationRegistry()
    registry.register_model(Owner, _owners)

    with pytest.raises(NotFoundError):
        registry.resolve_descriptor(Owner, "nope")


def test_unregistered_model_raises_not_found() -> None:
    with pytest.raises(NotFoundError, match="not registered"):
        RelationRegistry().table_for("Ghost")


def test_extensions_apply_in_order_at_registration() -> None:
    registry = RelationRegistry()
    seen: list[tuple[str, ...]] = []

    def add_first(builder: RelationMapBuilder) -> None:
        seen.append(builder.names())
        builder.add("extra", has_many("Item", foreign_key="first_id"))

    def override(builder: RelationMapBuilder) -> None:
        assert builder.has("extra")
        builder.add("extra", has_many("Item", foreign_key="second_id"))

    registry.extend(Owner, add_first)
    registry.extend("Owner", override)
    registry.register_model(Owner, _owners)

    assert seen == [("items", "everything")]
    assert registry.resolve_descriptor(Owner, "extra").foreign_key == "second_id"


def test_extension_runs_immediately_for_registered_type() -> None:
    registry = RelationRegistry()
    registry.register_model(Owner, _owners)

    registry.extend(Owner, lambda builder: builder.add("late", has_many("Item")))

    assert registry.resolve_descriptor(Owner, "late").foreign_key == "owner_id"


def test_column_lookup_reports_missing_columns() -> None:
    registry = RelationRegistry()
    registry.register_model(Item, _items)

    assert registry.column(Item, "id") is _items.c.id
    with pytest.raises(ConfigurationError, match="no column"):
        registry.column(Item, "nope")
