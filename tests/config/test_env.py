from __future__ import annotations

import logging

import pytest

from arcore.config import (
    BindingConfig,
    ConfigurationError,
    MissingConfigurationError,
    env_bool,
    env_int,
    get_binding_config,
    require_env_vars,
)
from arcore.config.logging import level_from_environment


def test_require_env_vars_returns_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXAMPLE_VAR", "value")

    result = require_env_vars(["EXAMPLE_VAR"])

    assert result["EXAMPLE_VAR"] == "value"


def test_require_env_vars_lists_every_missing_name(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("MISSING_B", raising=False)
    monkeypatch.setenv("MISSING_A", "   ")

    with pytest.raises(MissingConfigurationError) as exc:
        require_env_vars(["MISSING_B", "MISSING_A"])

    assert "MISSING_A, MISSING_B" in str(exc.value)


def test_env_int_defaults_and_rejects_garbage(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("EXAMPLE_INT", raising=False)
    assert env_int("EXAMPLE_INT", 7) == 7

    monkeypatch.setenv("EXAMPLE_INT", "12")
    assert env_int("EXAMPLE_INT", 7) == 12

    monkeypatch.setenv("EXAMPLE_INT", "twelve")
    with pytest.raises(ConfigurationError):
        env_int("EXAMPLE_INT", 7)


@pytest.mark.parametrize(("raw", "expected"), [("yes", True), ("0", False), (" ON ", True)])
def test_env_bool_flags(monkeypatch: pytest.MonkeyPatch, raw: str, expected: bool) -> None:
    monkeypatch.setenv("EXAMPLE_FLAG", raw)

    assert env_bool("EXAMPLE_FLAG", default=not expected) is expected


def test_env_bool_rejects_unknown_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXAMPLE_FLAG", "maybe")

    with pytest.raises(ConfigurationError):
        env_bool("EXAMPLE_FLAG", default=False)


def test_binding_config_reads_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ARCORE_BINDING_RETENTION_DAYS", "9")
    monkeypatch.setenv("ARCORE_DELETE_COMMITTED_BINDINGS", "false")

    config = get_binding_config()

    assert config == BindingConfig(retention_days=9, delete_committed=False)


def test_binding_config_rejects_negative_retention() -> None:
    with pytest.raises(ConfigurationError):
        BindingConfig(retention_days=-1)


def test_log_level_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("ARCORE_LOG_LEVEL", raising=False)
    assert level_from_environment() == logging.INFO

    monkeypatch.setenv("ARCORE_LOG_LEVEL", "debug")
    assert level_from_environment() == logging.DEBUG

    monkeypatch.setenv("ARCORE_LOG_LEVEL", "chatty")
    with pytest.raises(ConfigurationError):
        level_from_environment()
