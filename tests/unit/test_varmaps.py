"""Tests for key/value argument partitioning."""

import pytest

from sqlbind.exceptions import InvalidArgumentError
from sqlbind.settings import MAX_RETRIES, override
from sqlbind.varmaps import flatten_kvs, key_qualifier, partition


def test_partition_routes_each_key_by_qualifier() -> None:
    def row_fn(row: dict) -> dict:
        return row

    varmaps = partition(["col", "name", "sqlbind/MAX-RETRIES", 3, "dbapi/row_fn", row_fn], seed=False)

    assert varmaps.template_vars == {"col": "name"}
    assert varmaps.settings == {"max_retries": 3}
    assert varmaps.driver_params == {"row_fn": row_fn}


def test_partition_is_exhaustive() -> None:
    kvs = ["a", 1, "b", 2, "sqlbind/timeout_ms", 10, "jdbc/fetch-size", 50, "other/x", None]

    varmaps = partition(kvs, seed=False)

    total = len(varmaps.template_vars) + len(varmaps.settings) + len(varmaps.driver_params)
    assert total == len(kvs) // 2


def test_qualifier_match_is_case_insensitive() -> None:
    varmaps = partition(["SQLBind/Job-Name", "nightly"], seed=False)

    assert varmaps.settings == {"job_name": "nightly"}
    assert varmaps.driver_params == {}


def test_partition_seeds_settings_from_context() -> None:
    override(MAX_RETRIES, 7)

    seeded = partition(["sqlbind/timeout_ms", 100])

    assert seeded.settings["max_retries"] == 7
    assert seeded.settings["timeout_ms"] == 100
    assert "retry_pause_ms" in seeded.settings


def test_partition_rejects_odd_length() -> None:
    with pytest.raises(InvalidArgumentError, match="even number"):
        partition(["a", 1, "b"])


def test_partition_rejects_non_string_keys() -> None:
    with pytest.raises(InvalidArgumentError):
        partition([1, "a"])


def test_key_qualifier() -> None:
    assert key_qualifier("table") is None
    assert key_qualifier("sqlbind/connection") == "sqlbind"
    assert key_qualifier("a/b/c") == "a/b"


def test_flatten_kvs() -> None:
    assert flatten_kvs({"a": 1, "b": 2}) == ["a", 1, "b", 2]
