"""Blog-shaped models and tables shared by the test suite."""

from __future__ import annotations

from typing import TYPE_CHECKING, ClassVar

from sqlalchemy import (
    Boolean,
    Column,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
)

from arcore.adapters.sqlalchemy import UTCDateTime
from arcore.model import (
    Model,
    attach_many,
    attach_one,
    belongs_to,
    belongs_to_many,
    has_many,
    has_many_through,
    has_one,
    morph_many,
)

if TYPE_CHECKING:
    from collections.abc import Mapping

    from arcore.app import Orm
    from arcore.model import RelationDescriptor

blog_metadata = MetaData()

countries = Table(
    "countries",
    blog_metadata,
    Column("id", Integer, primary_key=True),
    Column("name", String, nullable=False),
)

users = Table(
    "users",
    blog_metadata,
    Column("id", Integer, primary_key=True),
    Column("name", String, nullable=False),
    Column("email", String),
    Column("password", String),
    Column("secret", Text),
    Column("settings", Text),
    Column("country_id", Integer, ForeignKey("countries.id")),
)

profiles = Table(
    "profiles",
    blog_metadata,
    Column("id", Integer, primary_key=True),
    Column("user_id", Integer),
    Column("bio", String),
)

posts = Table(
    "posts",
    blog_metadata,
    Column("id", Integer, primary_key=True),
    Column("title", String, nullable=False),
    Column("slug", String),
    Column("body", Text),
    Column("user_id", Integer, ForeignKey("users.id")),
    Column("created_at", UTCDateTime()),
    Column("updated_at", UTCDateTime()),
    Column("deleted_at", UTCDateTime()),
)

comments = Table(
    "comments",
    blog_metadata,
    Column("id", Integer, primary_key=True),
    Column("post_id", Integer, nullable=False),
    Column("body", String, nullable=False),
    Column("position", Integer),
    Column("approved", Boolean, default=False),
)

tags = Table(
    "tags",
    blog_metadata,
    Column("id", Integer, primary_key=True),
    Column("name", String, nullable=False),
)

post_tag = Table(
    "post_tag",
    blog_metadata,
    Column("post_id", Integer, primary_key=True),
    Column("tag_id", Integer, primary_key=True),
    Column("weight", Integer),
)

tag_user = Table(
    "tag_user",
    blog_metadata,
    Column("tag_id", Integer, primary_key=True),
    Column("user_id", Integer, primary_key=True),
)

images = Table(
    "images",
    blog_metadata,
    Column("id", Integer, primary_key=True),
    Column("path", String, nullable=False),
    Column("imageable_type", String),
    Column("imageable_id", Integer),
)

notes = Table(
    "notes",
    blog_metadata,
    Column("id", Integer, primary_key=True),
    Column("text", String),
)


class Country(Model):
    relations: ClassVar[Mapping[str, RelationDescriptor]] = {
        "users": has_many("User", order_by="name"),
        "posts": has_many_through("Post", through="users", order_by="title"),
        "user_tags": has_many_through("Tag", through="users", through_target="tags"),
        "unique_tags": has_many_through(
            "Tag", through="users", through_target="tags", distinct=True
        ),
    }


class User(Model):
    rules: ClassVar[Mapping[str, str]] = {"name": "required", "email": "email"}
    hashable: ClassVar[tuple[str, ...]] = ("password",)
    encryptable: ClassVar[tuple[str, ...]] = ("secret",)
    jsonable: ClassVar[tuple[str, ...]] = ("settings",)
    purgeable: ClassVar[tuple[str, ...]] = ("password_confirmation",)

    relations: ClassVar[Mapping[str, RelationDescriptor]] = {
        "profile": has_one("Profile", delete=True),
        "posts": has_many("Post"),
        "country": belongs_to("Country"),
        "tags": belongs_to_many("Tag"),
    }


class Profile(Model):
    relations: ClassVar[Mapping[str, RelationDescriptor]] = {
        "user": belongs_to(User),
    }


class Post(Model):
    rules: ClassVar[Mapping[str, str]] = {"title": "required|min:3"}
    custom_messages: ClassVar[Mapping[str, str]] = {"title.min": "Titles need :param letters."}
    slugs: ClassVar[Mapping[str, str]] = {"slug": "title"}
    soft_delete: ClassVar[bool] = True
    timestamps: ClassVar[bool] = True

    relations: ClassVar[Mapping[str, RelationDescriptor]] = {
        "author": belongs_to(User, foreign_key="user_id"),
        "comments": has_many("Comment", order_by="position", delete=True),
        "approved_comments": has_many("Comment", conditions={"approved": True}),
        "tags": belongs_to_many("Tag", order_by="name"),
        "images": morph_many("Image"),
        "notes": morph_many("Note"),
        "cover": attach_one(),
        "gallery": attach_many(public=False),
    }


class Comment(Model):
    rules: ClassVar[Mapping[str, str]] = {"body": "required"}

    relations: ClassVar[Mapping[str, RelationDescriptor]] = {
        "post": belongs_to(Post),
    }


class Tag(Model):
    pass


class Image(Model):
    pass


class Note(Model):
    pass


MODELS: tuple[tuple[type[Model], Table], ...] = (
    (Country, countries),
    (User, users),
    (Profile, profiles),
    (Post, posts),
    (Comment, comments),
    (Tag, tags),
    (Image, images),
    (Note, notes),
)


def register_models(orm: Orm) -> None:
    for model_cls, table in MODELS:
        orm.register(model_cls, table)
