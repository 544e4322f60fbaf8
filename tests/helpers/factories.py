"""Small builders that persist blog models through the Orm."""

from __future__ import annotations

from typing import TYPE_CHECKING

from tests.helpers.models import Comment, Country, Image, Post, Tag, User

if TYPE_CHECKING:
    from arcore.app import Orm
    from arcore.model import Model


def saved[TModel: Model](orm: Orm, model: TModel) -> TModel:
    result = orm.save(model)
    result.raise_for_errors()
    return model


def make_user(orm: Orm, name: str = "Ann", **attributes: object) -> User:
    return saved(orm, User(name=name, **attributes))


def make_post(orm: Orm, title: str = "Hello world", **attributes: object) -> Post:
    return saved(orm, Post(title=title, **attributes))


def make_comment(orm: Orm, post: Post, body: str = "Nice", **attributes: object) -> Comment:
    return saved(orm, Comment(post_id=post.identity, body=body, **attributes))


def make_tag(orm: Orm, name: str) -> Tag:
    return saved(orm, Tag(name=name))


def make_country(orm: Orm, name: str = "Iceland") -> Country:
    return saved(orm, Country(name=name))


def make_image(orm: Orm, owner: Model, path: str = "a.png") -> Image:
    return saved(
        orm,
        Image(path=path, imageable_type=owner.morph_class, imageable_id=owner.identity),
    )
