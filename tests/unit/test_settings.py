"""Tests for layered settings."""

import threading
from typing import Any

import pytest

from sqlbind.exceptions import InvalidArgumentError
from sqlbind.settings import (
    DB_SPEC,
    MAX_RETRIES,
    TIMEOUT_MS,
    config_value,
    current_settings,
    kv_pairs,
    load_defaults_from_env,
    normalize_key,
    override,
    reset_defaults,
    set_defaults,
    settings_scope,
    with_overrides,
)


@pytest.mark.parametrize(
    ("key", "expected"),
    [("max_retries", "max_retries"), ("sqlbind/MAX-RETRIES", "max_retries"), ("dbapi/row-fn", "row_fn")],
)
def test_normalize_key(key: str, expected: str) -> None:
    assert normalize_key(key) == expected


def test_kv_pairs() -> None:
    assert kv_pairs(["a", 1, "b", 2]) == [("a", 1), ("b", 2)]
    with pytest.raises(InvalidArgumentError):
        kv_pairs(["a"])


def test_builtin_defaults() -> None:
    settings = current_settings()

    assert settings["max_retries"] == 0
    assert settings["timeout_ms"] == 24 * 60 * 60 * 1000
    assert settings["retry_pause_ms"] == 5000
    assert settings["connection"] is None
    assert "only table or database owner can vacuum it" in settings["fatal_exceptions"]


def test_scope_restores_settings_on_exit() -> None:
    before = dict(current_settings())

    with settings_scope(MAX_RETRIES, 3, timeout_ms=1000) as inside:
        assert inside["max_retries"] == 3
        assert inside["timeout_ms"] == 1000
        override(MAX_RETRIES, 9)
        assert current_settings()["max_retries"] == 9

    assert dict(current_settings()) == before


def test_scope_restores_settings_when_block_raises() -> None:
    before = dict(current_settings())

    with pytest.raises(RuntimeError), settings_scope(MAX_RETRIES, 3):
        raise RuntimeError("boom")

    assert dict(current_settings()) == before


def test_nested_scopes_layer_overrides() -> None:
    with settings_scope(MAX_RETRIES, 1, TIMEOUT_MS, 100):
        with settings_scope(MAX_RETRIES, 2):
            assert current_settings()["max_retries"] == 2
            assert current_settings()["timeout_ms"] == 100
        assert current_settings()["max_retries"] == 1


def test_with_overrides_discards_changes() -> None:
    def configure() -> int:
        override(MAX_RETRIES, 5)
        return current_settings()["max_retries"]

    assert with_overrides(configure) == 5
    assert current_settings()["max_retries"] == 0


def test_current_settings_is_read_only() -> None:
    with pytest.raises(TypeError):
        current_settings()["max_retries"] = 4  # type: ignore[index]


def test_overrides_are_isolated_between_threads() -> None:
    """A thread sees the process defaults, never another thread's overrides."""
    seen: dict[str, Any] = {}
    overridden = threading.Event()

    def worker() -> None:
        overridden.wait(timeout=5)
        seen["before"] = current_settings()["max_retries"]
        override(MAX_RETRIES, 42)
        seen["after"] = current_settings()["max_retries"]

    thread = threading.Thread(target=worker)
    thread.start()
    override(MAX_RETRIES, 7)
    overridden.set()
    thread.join(timeout=5)

    assert seen == {"before": 0, "after": 42}
    assert current_settings()["max_retries"] == 7


def test_set_defaults_visible_to_other_threads() -> None:
    seen: list[int] = []
    set_defaults(MAX_RETRIES, 2)

    thread = threading.Thread(target=lambda: seen.append(current_settings()["max_retries"]))
    thread.start()
    thread.join(timeout=5)

    assert seen == [2]
    reset_defaults()
    assert current_settings()["max_retries"] == 0


def test_config_value_reads_nested_values() -> None:
    override(DB_SPEC, {"user": "sa", "options": {"ssl": True}})

    assert config_value(DB_SPEC, "user") == "sa"
    assert config_value("db_spec", "options", "ssl") is True
    assert config_value(DB_SPEC, "missing", "deeper") is None
    assert config_value(DB_SPEC, "user", overrides={DB_SPEC: {"user": "admin"}}) == "admin"


def test_config_value_requires_a_key() -> None:
    with pytest.raises(InvalidArgumentError):
        config_value()


def test_environment_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SQLBIND_MAX_RETRIES", "4")
    monkeypatch.setenv("SQLBIND_TIMEOUT_MS", "not-a-number")

    defaults = load_defaults_from_env()

    assert defaults["max_retries"] == 4
    assert defaults["timeout_ms"] == 24 * 60 * 60 * 1000
