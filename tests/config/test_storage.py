from __future__ import annotations

from pathlib import Path  # noqa: TC003

import pytest  # noqa: TC002

from arcore.config import storage


def test_data_dir_override(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("ARCORE_DATA_DIR", str(tmp_path / "custom"))

    config = storage.get_storage_config()

    assert config.resolve_data_dir() == (tmp_path / "custom").resolve()
    assert not (tmp_path / "custom").exists()


def test_data_dir_defaults_to_xdg_data_home(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.delenv("ARCORE_DATA_DIR", raising=False)
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path))

    config = storage.get_storage_config()

    assert config.data_dir == tmp_path / storage.APP_DIR_NAME


def test_database_uri_env_wins(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DATABASE_URI", "postgresql+psycopg://db/app")
    monkeypatch.setenv("ARCORE_SQL_ECHO", "yes")

    config = storage.get_database_config()

    assert config == storage.DatabaseConfig(uri="postgresql+psycopg://db/app", echo=True)


def test_sqlite_file_is_created_under_data_dir(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.delenv("DATABASE_URI", raising=False)
    monkeypatch.setenv("ARCORE_DATA_DIR", str(tmp_path / "data-dir"))

    uri = storage.get_database_config().uri

    expected = (tmp_path / "data-dir" / storage.DEFAULT_DB_FILENAME).resolve()
    assert uri == f"sqlite+pysqlite:///{expected}"
    assert expected.parent.is_dir()
