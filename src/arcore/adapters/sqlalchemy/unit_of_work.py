"""SQLAlchemy transactional scope and engine state."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal

from sqlalchemy import create_engine

from arcore.config import DatabaseConfig, get_database_config

if TYPE_CHECKING:
    from types import TracebackType

    from sqlalchemy import Connection, RootTransaction
    from sqlalchemy.engine import Engine


log = logging.getLogger(__name__)


class StartupError(RuntimeError):
    """Raised when a SQLAlchemy unit of work is used before initialisation."""


@dataclass(slots=True)
class _AdapterState:
    engine: Engine | None = None


_STATE = _AdapterState()


def startup(
    *,
    engine: Engine | None = None,
    database_uri: str | None = None,
    force: bool = False,
) -> Engine:
    """Initialise the engine used by units of work created without one."""

    if _STATE.engine is not None and not force:
        raise StartupError("SQLAlchemy adapter already initialised; pass force=True to reconfigure")

    if engine is None:
        config = DatabaseConfig(uri=database_uri) if database_uri else get_database_config()
        engine = create_engine(config.uri, echo=config.echo, future=True)
    _STATE.engine = engine
    log.debug("SQLAlchemy adapter started on %s", engine.url)
    return engine


def configured_engine() -> Engine | None:
    """Return the engine currently managed by the adapter (if any)."""

    return _STATE.engine


def is_started() -> bool:
    return _STATE.engine is not None


def shutdown() -> None:
    """Dispose the managed engine and reset state (primarily for tests)."""

    if _STATE.engine is not None:
        _STATE.engine.dispose()
    _STATE.engine = None


class SqlAlchemyUnitOfWork:
    """One connection and one transaction; commit is explicit, rollback is automatic."""

    def __init__(self, engine: Engine | None = None) -> None:
        resolved = engine or _STATE.engine
        if resolved is None:
            raise StartupError(
                "SQLAlchemy adapter not initialised. Call arcore.adapters.sqlalchemy."
                "unit_of_work.startup() or pass an engine."
            )
        self.engine = resolved
        self._connection: Connection | None = None
        self._transaction: RootTransaction | None = None

    def __enter__(self) -> SqlAlchemyUnitOfWork:
        if self._connection is not None:
            raise StartupError("Unit of work connection already initialised")
        self._connection = self.engine.connect()
        self._transaction = self._connection.begin()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> Literal[False]:
        if self._transaction is not None and self._transaction.is_active:
            self.rollback()
        if self._connection is not None:
            self._connection.close()
        self._connection = None
        self._transaction = None
        return False  # don't swallow exceptions

    def commit(self) -> None:
        if self._transaction is None:
            raise StartupError("Unit of work transaction not initialised")
        self._transaction.commit()

    def rollback(self) -> None:
        if self._transaction is None:
            raise StartupError("Unit of work transaction not initialised")
        self._transaction.rollback()

    @property
    def connection(self) -> Connection:
        if self._connection is None:
            raise StartupError("Unit of work connection not initialised")
        return self._connection
