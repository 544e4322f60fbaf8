from __future__ import annotations

from typing import TYPE_CHECKING, cast

import pytest

from arcore.errors import UnsupportedOperationError
from arcore.model import LifecycleEvent, Model
from tests.helpers.factories import make_post, make_tag, make_user
from tests.helpers.models import Post, Tag, User

if TYPE_CHECKING:
    from arcore.adapters.events import HookDispatcher
    from arcore.app import Orm


def test_join_belongs_to_populates_cache_in_one_query(orm: Orm) -> None:
    ann = make_user(orm, "Ann")
    make_post(orm, "By Ann", user_id=ann.identity)
    make_post(orm, "Anonymous")

    query = orm.join(orm.query(Post).order_by("title"), "author")
    results = query.all()

    assert [post["title"] for post in results] == ["Anonymous", "By Ann"]
    assert all(post.relation_loaded("author") for post in results)
    assert results[0].cached_relation("author") is None
    author = cast("Model", results[1].cached_relation("author"))
    assert author.identity == ann.identity


def test_join_belongs_to_many_groups_targets_with_pivot(orm: Orm) -> None:
    first = make_post(orm, "First")
    second = make_post(orm, "Second")
    python = make_tag(orm, "python")
    sql = make_tag(orm, "sql")
    orm.relation(first, "tags").add(sql, pivot_data={"weight": 2})
    orm.relation(first, "tags").add(python, pivot_data={"weight": 1})

    results = orm.join(orm.query(Post), "tags").all()

    assert [post.identity for post in results] == [first.identity, second.identity]
    tags = cast("list[Model]", results[0].cached_relation("tags"))
    assert [tag["name"] for tag in tags] == ["python", "sql"]
    assert tags[0].pivot == {"post_id": first.identity, "tag_id": python.identity, "weight": 1}
    assert results[1].cached_relation("tags") == []


def test_joined_targets_fire_after_fetch(orm: Orm) -> None:
    ann = make_user(orm, "Ann")
    post = make_post(orm, "By Ann", user_id=ann.identity)
    orm.relation(post, "tags").add(make_tag(orm, "python"))
    orm.relation(post, "tags").add(make_tag(orm, "sql"))
    fetched: list[Model] = []
    dispatcher = cast("HookDispatcher", orm.events)
    dispatcher.listen(User, LifecycleEvent.AFTER_FETCH, fetched.append)
    dispatcher.listen(Tag, LifecycleEvent.AFTER_FETCH, fetched.append)

    with_author = orm.join(orm.query(Post), "author").all()
    with_tags = orm.join(orm.query(Post), "tags").all()

    author = with_author[0].cached_relation("author")
    tags = cast("list[Model]", with_tags[0].cached_relation("tags"))
    assert fetched == [author, *tags]
    assert len(tags) == 2


def test_join_rejects_other_kinds(orm: Orm) -> None:
    with pytest.raises(UnsupportedOperationError):
        orm.join(orm.query(Post), "comments")


def test_query_filters_and_limits(orm: Orm) -> None:
    make_post(orm, "Alpha")
    beta = make_post(orm, "Beta")
    make_post(orm, "Gamma")

    assert [post["title"] for post in orm.query(Post).order_by("title desc").limit(2).all()] == [
        "Gamma",
        "Beta",
    ]
    found = orm.query(Post).filter_by(title="Beta").first()
    assert found is not None
    assert found.identity == beta.identity


def test_query_hides_trashed_unless_asked(orm: Orm) -> None:
    post = make_post(orm)
    orm.delete(post)

    assert orm.query(Post).all() == []
    assert len(orm.query(Post).with_trashed().all()) == 1
    assert orm.find(Post, post.identity) is None
    assert orm.find(Post, post.identity, with_trashed=True) is not None
