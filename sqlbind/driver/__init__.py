"""Driver boundary: DB-API implementation and the default SQL functions."""

import sqlite3
import sys
from typing import TYPE_CHECKING, Any, Optional

from sqlbind.driver.dbapi import DBAPIConfig, DBAPIDriver, DBConnection, PreparedStatement
from sqlbind.driver.protocols import DriverProtocol
from sqlbind.driver.sqlite import SqliteConfig, SqliteConnectionParams, SqliteDriver
from sqlbind.exceptions import InvalidArgumentError

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
    from types import ModuleType

__all__ = (
    "DBAPIConfig",
    "DBAPIDriver",
    "DBConnection",
    "DriverProtocol",
    "PreparedStatement",
    "SqliteConfig",
    "SqliteConnectionParams",
    "SqliteDriver",
    "as_connection",
    "execute",
    "query",
)


def _driver_module(connection: Any) -> "Optional[ModuleType]":
    return sys.modules.get(type(connection).__module__.partition(".")[0])


def as_connection(connection: Any) -> DBConnection:
    """Return ``connection`` as a :class:`DBConnection`, wrapping a raw DB-API connection if needed.

    A raw connection is wrapped with the driver module its class comes from,
    so its ``paramstyle`` picks the bind markers.
    """
    if isinstance(connection, DBConnection):
        return connection
    if isinstance(connection, sqlite3.Connection):
        return SqliteDriver().wrap(connection)
    if hasattr(connection, "cursor"):
        return DBAPIDriver(_driver_module(connection)).wrap(connection)
    msg = f"Not a database connection: {connection!r}"
    raise InvalidArgumentError(msg)


def query(connection: Any, sql_params: "Sequence[Any]", options: "Optional[Mapping[str, Any]]" = None) -> Any:
    """Run ``[statement, *binds]`` as a query on ``connection``'s driver.

    This is the ``sql_fn`` used by :func:`sqlbind.base.query` and defined queries.
    """
    handle = as_connection(connection)
    return handle.driver.query(handle, sql_params, options or {})


def execute(connection: Any, sql_params: "Sequence[Any]", options: "Optional[Mapping[str, Any]]" = None) -> Any:
    """Run ``[statement, *binds]`` as an update on ``connection``'s driver."""
    handle = as_connection(connection)
    return handle.driver.execute(handle, sql_params, options or {})
