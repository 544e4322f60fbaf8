"""SQLAlchemy table metadata owned by arcore itself.

Application tables live on the same :data:`metadata` (or any other
``MetaData``); arcore only needs the ``Table`` objects handed to the registry.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Dialect,
    Enum,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    TypeDecorator,
)

from arcore.model.enums import BindingOperation

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


metadata = MetaData(
    naming_convention={
        "ix": "ix_%(column_0_label)s",
        "uq": "uq_%(table_name)s_%(column_0_label)s",
        "ck": "ck_%(table_name)s_%(constraint_name)s",
        "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
        "pk": "pk_%(table_name)s",
    }
)

deferred_binding_table = Table(
    "deferred_bindings",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("session_key", String, nullable=False),
    Column("master_type", String, nullable=False),
    Column("master_field", String, nullable=False),
    Column("slave_type", String, nullable=False),
    Column("slave_id", String, nullable=True),
    Column("payload", Text, nullable=True),
    Column("pivot_data", Text, nullable=True),
    Column("operation", Enum(BindingOperation, native_enum=False), nullable=False),
    Column("is_committed", Boolean, nullable=False, default=False),
    Column("created_at", UTCDateTime(), nullable=False),
    Index("ix_deferred_bindings_session", "session_key", "master_type", "master_field"),
    Index("ix_deferred_bindings_created_at", "is_committed", "created_at"),
)

file_table = Table(
    "system_files",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("disk_name", String, nullable=False),
    Column("file_name", String, nullable=False),
    Column("file_size", Integer, nullable=True),
    Column("content_type", String, nullable=True),
    Column("title", String, nullable=True),
    Column("field", String, nullable=True),
    Column("attachment_type", String, nullable=True),
    Column("attachment_id", Integer, nullable=True),
    Column("is_public", Boolean, nullable=False, default=True),
    Column("sort_order", Integer, nullable=True),
    Column("created_at", UTCDateTime(), nullable=True),
    Column("updated_at", UTCDateTime(), nullable=True),
    Index("ix_system_files_attachment", "attachment_type", "attachment_id", "field"),
)


def create_all_tables(engine: Engine, target: MetaData | None = None) -> None:
    """Create database tables for the given metadata (arcore's own by default)."""

    log.info("Creating all tables")
    (target or metadata).create_all(engine)
