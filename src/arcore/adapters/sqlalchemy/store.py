"""Storage collaborator backed by SQLAlchemy Core."""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import TYPE_CHECKING

from sqlalchemy import delete, insert, update

from arcore.adapters.sqlalchemy.unit_of_work import SqlAlchemyUnitOfWork

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping, Sequence

    from sqlalchemy import ColumnElement, Connection, Executable, RowMapping, Table
    from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)


class SqlAlchemyStore:
    """Runs statements inside the calling thread's open transaction, or a fresh one.

    The outermost :meth:`transaction` owns a :class:`SqlAlchemyUnitOfWork`
    and commits it on success; inner scopes share its connection, so any
    exception escaping the outermost scope rolls back everything done inside.
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        self._local = threading.local()

    @property
    def in_transaction(self) -> bool:
        return getattr(self._local, "connection", None) is not None

    @contextmanager
    def transaction(self) -> Iterator[Connection]:
        current: Connection | None = getattr(self._local, "connection", None)
        if current is not None:
            yield current
            return

        with SqlAlchemyUnitOfWork(self.engine) as uow:
            self._local.connection = uow.connection
            try:
                yield uow.connection
                uow.commit()
            finally:
                self._local.connection = None

    def fetch_all(self, statement: Executable) -> Sequence[RowMapping]:
        with self.transaction() as connection:
            return connection.execute(statement).mappings().all()

    def fetch_one(self, statement: Executable) -> RowMapping | None:
        with self.transaction() as connection:
            return connection.execute(statement).mappings().first()

    def insert(self, table: Table, values: Mapping[str, object]) -> object:
        with self.transaction() as connection:
            result = connection.execute(insert(table).values(dict(values)))
            primary_key = result.inserted_primary_key
        identity = primary_key[0] if primary_key else None
        log.debug("Inserted into %s: identity=%s", table.name, identity)
        return identity

    def update(
        self, table: Table, where: ColumnElement[bool], values: Mapping[str, object]
    ) -> int:
        if not values:
            return 0
        with self.transaction() as connection:
            result = connection.execute(update(table).where(where).values(dict(values)))
        return result.rowcount

    def delete(self, table: Table, where: ColumnElement[bool]) -> int:
        with self.transaction() as connection:
            result = connection.execute(delete(table).where(where))
        return result.rowcount


if TYPE_CHECKING:
    from typing import cast

    from arcore.ports.storage import Store

    _store_check: Store = SqlAlchemyStore(cast("Engine", object()))
