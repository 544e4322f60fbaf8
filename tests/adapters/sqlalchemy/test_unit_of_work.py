from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine, select

from arcore.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyUnitOfWork,
    StartupError,
    configured_engine,
    is_started,
    shutdown,
    startup,
)
from tests.helpers.models import tags

if TYPE_CHECKING:
    from collections.abc import Iterator

    from sqlalchemy.engine import Engine


@pytest.fixture(autouse=True)
def reset_unit_of_work_state() -> Iterator[None]:
    shutdown()
    yield
    shutdown()


def test_sqlalchemy_unit_of_work_requires_startup() -> None:
    with pytest.raises(StartupError):
        SqlAlchemyUnitOfWork()


def test_startup_requires_force_for_reconfiguration() -> None:
    engine_a = create_engine("sqlite+pysqlite:///:memory:", future=True)
    engine_b = create_engine("sqlite+pysqlite:///:memory:", future=True)

    startup(engine=engine_a, force=True)

    with pytest.raises(StartupError):
        startup(engine=engine_b)

    startup(engine=engine_b, force=True)
    assert configured_engine() is engine_b
    assert is_started()


def test_startup_uses_database_uri(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DATABASE_URI", "sqlite+pysqlite:///:memory:")

    engine = startup()

    assert str(engine.url) == "sqlite+pysqlite:///:memory:"


def test_unit_of_work_commits_explicitly(sqlite_engine: Engine) -> None:
    startup(engine=sqlite_engine, force=True)

    with SqlAlchemyUnitOfWork() as uow:
        uow.connection.execute(tags.insert().values(name="kept"))
        uow.commit()

    with SqlAlchemyUnitOfWork() as uow:
        uow.connection.execute(tags.insert().values(name="dropped"))

    with SqlAlchemyUnitOfWork() as uow:
        names = uow.connection.execute(select(tags.c.name)).scalars().all()

    assert names == ["kept"]


def test_connection_is_unavailable_outside_scope(sqlite_engine: Engine) -> None:
    uow = SqlAlchemyUnitOfWork(sqlite_engine)

    with pytest.raises(StartupError):
        _ = uow.connection
