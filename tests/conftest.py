from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest
from cryptography.fernet import Fernet
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine  # noqa: TC002
from sqlalchemy.pool import StaticPool

from arcore.adapters.codecs import AttributeCodec
from arcore.adapters.sqlalchemy import create_all_tables, shutdown
from arcore.app import Orm
from arcore.config import BindingConfig, CodecConfig
from tests.helpers.models import blog_metadata, register_models

os.environ.setdefault("DATABASE_URI", "sqlite+pysqlite:///:memory:")

if TYPE_CHECKING:
    from collections.abc import Iterator


@pytest.fixture
def sqlite_engine() -> Iterator[Engine]:
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_all_tables(engine)
    create_all_tables(engine, blog_metadata)
    try:
        yield engine
    finally:
        engine.dispose()
        shutdown()


@pytest.fixture
def codec_config() -> CodecConfig:
    return CodecConfig(encryption_key=Fernet.generate_key().decode("ascii"), hash_iterations=1_000)


@pytest.fixture
def binding_config() -> BindingConfig:
    return BindingConfig()


@pytest.fixture
def orm(sqlite_engine: Engine, codec_config: CodecConfig, binding_config: BindingConfig) -> Orm:
    instance = Orm(
        sqlite_engine,
        codec=AttributeCodec(codec_config),
        binding_config=binding_config,
    )
    register_models(instance)
    return instance
