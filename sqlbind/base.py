"""Application-facing helpers: defined and one-off queries, keyed queries."""

import re
from typing import TYPE_CHECKING, Any, Callable, Optional, Union

from sqlglot import exp

from sqlbind import driver
from sqlbind.exceptions import InvalidArgumentError
from sqlbind.failures import FailureRecord
from sqlbind.settings import JOB_NAME, SQL_FN
from sqlbind.statement import prepare

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence
    from pathlib import Path

__all__ = (
    "define_query",
    "define_statement",
    "execute",
    "keyed_query",
    "keyed_query_fn",
    "keystring_to_where_conditions",
    "query",
    "row_key",
)

_NULL_KEY_VALUE = "NULL"

# 'column'->'value' or 'column'->NULL, followed by the next pair or the end
_KEY_PAIR = re.compile(r"'(?P<column>[^']+)'->(?:'(?P<value>.*?)'|(?P<null>NULL))(?: && (?=')|\Z)", re.DOTALL)


def _define(
    name: str,
    sql_fn: "Callable[..., Any]",
    sql_or_resource: "Union[str, Path]",
    constant_kvs: "tuple[Any, ...]",
    constant_vars: "dict[str, Any]",
) -> "Callable[..., Any]":
    def run(*runtime_kvs: Any, **runtime_vars: Any) -> Any:
        statement = prepare(
            sql_or_resource,
            JOB_NAME,
            name,
            SQL_FN,
            sql_fn,
            *constant_kvs,
            *runtime_kvs,
            **{**constant_vars, **runtime_vars},
        )
        return statement()

    run.__name__ = run.__qualname__ = name
    return run


def define_query(
    name: str, sql_or_resource: "Union[str, Path]", *kvs: Any, **template_vars: Any
) -> "Callable[..., Any]":
    """Define a reusable query.

    The returned function prepares and runs the SQL on the ``connection``
    setting each time it is called, with ``name`` as the job name. Arguments
    given at call time complete or override the ones given here.

    Example::

        find_animal = define_query("find_animal", "select ${columns} from animals where ${column}=${value}")
        find_animal(CONNECTION, conn, columns="name,sound", column="sound", value="'Moo'")
    """
    return _define(name, driver.query, sql_or_resource, kvs, template_vars)


def define_statement(
    name: str, sql_or_resource: "Union[str, Path]", *kvs: Any, **template_vars: Any
) -> "Callable[..., Any]":
    """Define a reusable update statement; see :func:`define_query`."""
    return _define(name, driver.execute, sql_or_resource, kvs, template_vars)


def query(sql_or_resource: "Union[str, Path]", *kvs: Any, **template_vars: Any) -> Any:
    """Run a query once on the ``connection`` setting."""
    return prepare(sql_or_resource, SQL_FN, driver.query, *kvs, **template_vars)()


def execute(sql_or_resource: "Union[str, Path]", *kvs: Any, **template_vars: Any) -> Any:
    """Run an update statement once on the ``connection`` setting."""
    return prepare(sql_or_resource, SQL_FN, driver.execute, *kvs, **template_vars)()


def _key_value(value: Any) -> str:
    return _NULL_KEY_VALUE if value is None else f"'{value}'"


def row_key(row: "dict[str, Any]", key_columns: "Sequence[str]") -> str:
    """Build the key string ``'col'->'value' && 'col2'->NULL`` for ``row``.

    Values are quoted; a NULL value is written as a bare ``NULL``.
    """
    return " && ".join(f"'{column}'->{_key_value(row.get(column))}" for column in key_columns)


def _index_rows(rows: "Iterable[dict[str, Any]]", key_columns: "Sequence[str]") -> "dict[str, Any]":
    result: dict[str, Any] = {}
    for row in rows:
        key = row_key(row, key_columns)
        if key not in result:
            result[key] = row
        elif isinstance(result[key], list):
            result[key].append(row)
        else:
            result[key] = [result[key], row]
    return result


def keyed_query_fn(
    sql_or_resource: "Union[str, Path]", *kvs: Any, key_columns: "Optional[Sequence[str]]" = None, **template_vars: Any
) -> "Callable[..., dict[str, Any]]":
    """Prepare a query whose rows are returned keyed by their key columns.

    The statement is prepared immediately on the ``connection`` setting. The
    returned function accepts further key/value arguments and may override
    ``key_columns``. Rows sharing a key are collected into a list in result
    order.

    Raises:
        FatalFailureError: When the query fails (raised by the returned function).
        InvalidArgumentError: When no key columns are given (raised by the returned function).
    """
    statement = prepare(sql_or_resource, SQL_FN, driver.query, *kvs, **template_vars)
    default_key_columns = key_columns

    def run(*extra_kvs: Any, key_columns: "Optional[Sequence[str]]" = None, **extra_vars: Any) -> "dict[str, Any]":
        columns = key_columns or default_key_columns
        if not columns:
            msg = "A keyed query must specify the column(s) that make up the key."
            raise InvalidArgumentError(msg)
        rows = statement(*extra_kvs, **extra_vars)
        if isinstance(rows, FailureRecord):
            rows.raise_error()
        return _index_rows(rows, columns)

    return run


def keyed_query(
    sql_or_resource: "Union[str, Path]", *kvs: Any, key_columns: "Sequence[str]", **template_vars: Any
) -> "dict[str, Any]":
    """Run a query once and return its rows keyed by ``key_columns``."""
    return keyed_query_fn(sql_or_resource, *kvs, key_columns=key_columns, **template_vars)()


def _parse_key_string(key_string: str) -> "list[tuple[str, Optional[str]]]":
    pairs: list[tuple[str, Optional[str]]] = []
    position = 0
    while position < len(key_string):
        match = _KEY_PAIR.match(key_string, position)
        if match is None:
            break
        pairs.append((match["column"], None if match["null"] else match["value"]))
        position = match.end()
    if not pairs or position != len(key_string):
        msg = f"Not a keyed query key string: {key_string!r}"
        raise InvalidArgumentError(msg)
    return pairs


def keystring_to_where_conditions(key_string: str, dialect: "Optional[str]" = None) -> str:
    """Turn a keyed query key string back into WHERE clause conditions.

    ``'id'->'1' && 'name'->NULL`` becomes ``id = '1' AND name IS NULL``.

    Args:
        key_string: A key produced by a keyed query.
        dialect: sqlglot dialect used to render the conditions.

    Raises:
        InvalidArgumentError: If ``key_string`` is not a key string.
    """
    conditions = [
        exp.column(column).is_(exp.null()) if value is None else exp.column(column).eq(exp.Literal.string(value))
        for column, value in _parse_key_string(key_string)
    ]
    return exp.and_(*conditions).sql(dialect=dialect)
