"""SQLAlchemy adapter package for arcore."""

from __future__ import annotations

from .store import SqlAlchemyStore
from .tables import (
    UTCDateTime,
    create_all_tables,
    deferred_binding_table,
    file_table,
    metadata,
)
from .unit_of_work import (
    SqlAlchemyUnitOfWork,
    StartupError,
    configured_engine,
    is_started,
    shutdown,
    startup,
)

__all__ = [
    "SqlAlchemyStore",
    "SqlAlchemyUnitOfWork",
    "StartupError",
    "UTCDateTime",
    "configured_engine",
    "create_all_tables",
    "deferred_binding_table",
    "file_table",
    "is_started",
    "metadata",
    "shutdown",
    "startup",
]
