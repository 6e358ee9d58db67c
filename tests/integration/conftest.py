from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from sqlbind import SQL_FN, SqliteConfig, connection_scope, driver, execute, is_failure, prepare

if TYPE_CHECKING:
    from collections.abc import Generator

ANIMALS = (("Rabbit", "Awwww! What's up, Doc?"), ("Pig", "Oink"), ("Cow", "Moo"), ("Dog", "Woof"))


@pytest.fixture
def sqlite_config(tmp_path: Path) -> SqliteConfig:
    """File-backed config so several connection scopes see the same data."""
    return SqliteConfig({"database": str(tmp_path / "sqlbind_test.db")})


@pytest.fixture
def animals(sqlite_config: SqliteConfig) -> Generator[SqliteConfig, None, None]:
    """The test_data table holding one row per animal."""
    with connection_scope(sqlite_config):
        created = execute(
            """
            create table test_data (
                id integer primary key autoincrement,
                name varchar(200) not null,
                sound varchar(200)
            )
            """
        )
        assert not is_failure(created)

        insert = prepare("insert into test_data (name, sound) values (${name}, ${sound})", SQL_FN, driver.execute)
        for name, sound in ANIMALS:
            assert insert(name=name, sound=sound) == [1]
    yield sqlite_config
