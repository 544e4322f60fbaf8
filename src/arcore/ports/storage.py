"""Storage collaborator contract."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
    from contextlib import AbstractContextManager

    from sqlalchemy import ColumnElement, Connection, Executable, RowMapping, Table


@runtime_checkable
class Store(Protocol):
    """Parameterised CRUD plus a transactional scope.

    ``transaction()`` joins the scope already open on the calling thread, so
    nested operations commit or roll back together with the outermost one.
    """

    def transaction(self) -> AbstractContextManager[Connection]: ...

    def fetch_all(self, statement: Executable) -> Sequence[RowMapping]: ...

    def fetch_one(self, statement: Executable) -> RowMapping | None: ...

    def insert(self, table: Table, values: Mapping[str, object]) -> object: ...

    def update(
        self, table: Table, where: ColumnElement[bool], values: Mapping[str, object]
    ) -> int: ...

    def delete(self, table: Table, where: ColumnElement[bool]) -> int: ...
