"""Tests for SQL resource loading."""

from pathlib import Path

import pytest

from sqlbind.exceptions import SQLFileNotFoundError
from sqlbind.loader import is_sql_resource, read_sql_file, resolve_sql_source


@pytest.mark.parametrize(("source", "expected"), [("q.sql", True), ("Q.SQL", True), ("select 1", False)])
def test_is_sql_resource(source: str, expected: bool) -> None:
    assert is_sql_resource(source) is expected


def test_read_sql_file_from_search_path(tmp_path: Path) -> None:
    (tmp_path / "queries").mkdir()
    (tmp_path / "queries" / "animals.sql").write_text("select * from ${table}")

    assert read_sql_file("animals.sql", [tmp_path / "missing", tmp_path / "queries"]) == "select * from ${table}"


def test_read_sql_file_absolute_path(tmp_path: Path) -> None:
    path = tmp_path / "one.sql"
    path.write_text("select 1")

    assert read_sql_file(path) == "select 1"


def test_missing_file_lists_searched_locations(tmp_path: Path) -> None:
    with pytest.raises(SQLFileNotFoundError) as exc_info:
        read_sql_file("nope.sql", [tmp_path])

    assert exc_info.value.name == "nope.sql"
    assert str(tmp_path / "nope.sql") in exc_info.value.searched


def test_resolve_sql_source_passes_text_through() -> None:
    assert resolve_sql_source("select 1") == "select 1"
