from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from arcore.errors import PreconditionError
from arcore.model.files import File
from tests.helpers.factories import make_post, make_tag
from tests.helpers.models import Comment, Post

if TYPE_CHECKING:
    from arcore.app import Orm

KEY = "facade"


def test_file_model_is_registered_by_default(orm: Orm) -> None:
    assert orm.registry.is_registered(File)


def test_live_add_requires_saved_owner(orm: Orm) -> None:
    with pytest.raises(PreconditionError, match="session_key"):
        orm.relation(Post(title="Draft"), "comments").add(Comment(body="Hi"))


def test_live_add_and_remove(orm: Orm) -> None:
    post = make_post(orm)
    tag = make_tag(orm, "python")
    handle = orm.relation(post, "tags")

    handle.add(tag, pivot_data={"weight": 2})
    assert [model.identity for model in handle.get()] == [tag.identity]

    handle.remove(tag)
    assert handle.get() == []


def test_commit_deferred_without_saving_owner_again(orm: Orm) -> None:
    post = make_post(orm)
    comment = Comment(body="Later")
    orm.stage_bind(post, "comments", KEY, comment)

    assert orm.commit_deferred(post, KEY) == 1
    assert comment["post_id"] == post.identity
    assert orm.ledger.pending(KEY) == []


def test_purge_older_than_uses_explicit_days(orm: Orm) -> None:
    orm.stage_bind(Post(title="Draft"), "comments", KEY, Comment(body="Old"))

    assert orm.purge_older_than(30) == 0
    assert orm.purge_older_than(0) == 1
