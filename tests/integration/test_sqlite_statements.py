"""End-to-end statement tests against SQLite."""

from operator import itemgetter
from typing import Any

import pytest

from sqlbind import (
    CONNECTION,
    MAX_RETRIES,
    RETRY_PAUSE_MS,
    SQL_FN,
    TIMEOUT_MS,
    BatchCallbacks,
    FailureReason,
    FailureRecord,
    SqliteConfig,
    connection_scope,
    current_settings,
    define_query,
    define_statement,
    driver,
    for_all_substitutions,
    is_failure,
    override,
    prepare,
    query,
    transaction_scope,
)

pytestmark = pytest.mark.integration


def test_prepare_with_settings_override(animals: SqliteConfig) -> None:
    with connection_scope(animals):
        override(SQL_FN, driver.query)
        make_sound = prepare("select sound from test_data where name='Pig';")

        assert make_sound("dbapi/row_fn", itemgetter("sound")) == ["Oink"]


def test_prepare_with_template_and_bind_variables(animals: SqliteConfig) -> None:
    with connection_scope(animals):
        make_sound = prepare(
            "select ${column} from test_data where name=${animal};",
            SQL_FN,
            driver.query,
            "dbapi/row_fn",
            itemgetter("sound"),
            column="sound",
        )

        assert make_sound.unresolved_names == ("animal",)
        assert make_sound(animal="Cow") == ["Moo"]
        assert make_sound(animal="Dog") == ["Woof"]
        assert make_sound("animal", "Rabbit") == ["Awwww! What's up, Doc?"]


def test_defined_query(animals: SqliteConfig) -> None:
    find_animal = define_query(
        "find_animal", "select ${select-columns} from test_data where ${where-column}=${where-val};"
    )

    with connection_scope(animals) as connection:
        found = find_animal(
            CONNECTION, connection, "select-columns", "name, sound", "where-column", "sound", "where-val", "'Moo'"
        )

    assert found == [{"name": "Cow", "sound": "Moo"}]


def test_defined_statement(animals: SqliteConfig) -> None:
    silence = define_statement("silence", "update test_data set sound = null where name in (${names})")

    with connection_scope(animals):
        assert silence(names="'Pig', 'Cow'") == [2]
        assert query("select count(*) as n from test_data where sound is null") == [{"n": 2}]


def test_query_options(animals: SqliteConfig) -> None:
    with connection_scope(animals):
        arrays = query("select name from test_data order by id", "dbapi/as-arrays", True, "dbapi/max_rows", 2)
        count = query("select name from test_data", "dbapi/result_set_fn", len)

    assert arrays == [["name"], ["Rabbit"], ["Pig"]]
    assert count == 4


def test_scope_restores_connection_setting(animals: SqliteConfig) -> None:
    with connection_scope(animals) as connection:
        assert current_settings()["connection"] is connection
        assert current_settings()["db_spec"] is animals

    assert current_settings()["connection"] is None


def test_transaction_rolls_back_on_error(animals: SqliteConfig) -> None:
    with pytest.raises(RuntimeError), transaction_scope(animals):
        query("insert into test_data (name, sound) values ('Cat', 'Meow')", SQL_FN, driver.execute)
        msg = "abort"
        raise RuntimeError(msg)

    with connection_scope(animals):
        assert query("select * from test_data where name = 'Cat'") == []


def test_transaction_commits_on_success(animals: SqliteConfig) -> None:
    with connection_scope(animals):
        with transaction_scope():
            insert = prepare("insert into test_data (name, sound) values ('Cat', ${sound})", SQL_FN, driver.execute)
            insert(sound="Meow")

        assert query("select sound from test_data where name = 'Cat'") == [{"sound": "Meow"}]


def test_prepared_statement_reused_inside_transaction(animals: SqliteConfig) -> None:
    with connection_scope(animals), pytest.raises(RuntimeError), transaction_scope():
        insert = prepare("insert into test_data (name, sound) values (${name}, ${sound})", SQL_FN, driver.execute)
        insert(name="Cat", sound="Meow")
        insert(name="Duck", sound="Quack")
        msg = "abort"
        raise RuntimeError(msg)

    with connection_scope(animals):
        assert query("select count(*) as n from test_data") == [{"n": 4}]


def test_failures_are_returned_not_raised(animals: SqliteConfig) -> None:
    with connection_scope(animals):
        result = query("select * from no_such_table")

    assert isinstance(result, FailureRecord)
    assert result.reason is FailureReason.RETRIES_EXHAUSTED
    assert "no such table" in str(result.error)


def test_transient_failures_are_retried(animals: SqliteConfig) -> None:
    calls: list[int] = []

    def flaky_query(connection: Any, sql_params: Any, options: Any) -> Any:
        calls.append(1)
        if len(calls) < 3:
            msg = "database is locked"
            raise RuntimeError(msg)
        return driver.query(connection, sql_params, options)

    with connection_scope(animals):
        statement = prepare("select name from test_data where sound = ${sound}", SQL_FN, flaky_query)
        result = statement(MAX_RETRIES, 3, RETRY_PAUSE_MS, 0, sound="Oink")

    assert result == [{"name": "Pig"}]
    assert len(calls) == 3


def test_statement_timeout(animals: SqliteConfig) -> None:
    slow = "with recursive c(x) as (select 1 union all select x + 1 from c where x < 100000000) select count(*) from c"

    with connection_scope(animals):
        result = query(slow, TIMEOUT_MS, 100)

    assert isinstance(result, FailureRecord)
    assert "interrupted" in str(result.error)


def test_batch_inserts(animals: SqliteConfig) -> None:
    def on_success(acc: dict, result: Any, substitutions: dict) -> dict:
        return {**acc, "inserted": [*acc["inserted"], substitutions["name"]]}

    def on_failure(acc: dict, error: Any, substitutions: dict) -> dict:
        return {**acc, "failed": [*acc["failed"], error]}

    with connection_scope(animals):
        insert = prepare("insert into test_data (name, sound) values (${name}, ${sound})", SQL_FN, driver.execute)
        result = for_all_substitutions(
            insert,
            {"inserted": [], "failed": []},
            BatchCallbacks(on_success=on_success, on_failure=on_failure),
            ["name", "Horse", "sound", "Neigh"],
            ["name", None, "sound", "Silence"],
            {"name": "Duck", "sound": "Quack"},
        )
        names = query("select name from test_data where id > 4 order by id", "dbapi/row_fn", itemgetter("name"))

    assert result["inserted"] == ["Horse", "Duck"]
    assert len(result["failed"]) == 1
    assert is_failure(result["failed"][0])
    assert names == ["Horse", "Duck"]
