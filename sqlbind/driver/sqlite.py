"""SQLite driver and configuration."""

import sqlite3
import time
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, ClassVar, Optional, TypedDict, Union

from typing_extensions import NotRequired

from sqlbind.driver.dbapi import DBAPIConfig, DBAPIDriver, DBConnection

if TYPE_CHECKING:
    from collections.abc import Generator

__all__ = ("SqliteConfig", "SqliteConnectionParams", "SqliteDriver")

# SQLite virtual machine instructions between timeout checks
_PROGRESS_INTERVAL = 1000


class SqliteConnectionParams(TypedDict, total=False):
    """SQLite connection parameters."""

    database: NotRequired[str]
    timeout: NotRequired[float]
    detect_types: NotRequired[int]
    isolation_level: "NotRequired[Optional[str]]"
    check_same_thread: NotRequired[bool]
    cached_statements: NotRequired[int]
    uri: NotRequired[bool]


class SqliteDriver(DBAPIDriver):
    """SQLite driver.

    Autocommit is controlled through ``isolation_level`` and statement
    timeouts are enforced with a progress handler, which makes SQLite abort
    the statement with ``OperationalError: interrupted``.
    """

    def __init__(self, module: Any = sqlite3) -> None:
        super().__init__(module)

    def set_autocommit(self, connection: DBConnection, autocommit: bool) -> None:
        connection.raw.isolation_level = None if autocommit else "DEFERRED"
        connection.autocommit = autocommit

    @contextmanager
    def statement_timeout(
        self, connection: DBConnection, timeout_seconds: Optional[float]
    ) -> "Generator[None, None, None]":
        if not timeout_seconds:
            yield
            return
        deadline = time.monotonic() + timeout_seconds
        connection.raw.set_progress_handler(lambda: int(time.monotonic() > deadline), _PROGRESS_INTERVAL)
        try:
            yield
        finally:
            connection.raw.set_progress_handler(None, _PROGRESS_INTERVAL)


class SqliteConfig(DBAPIConfig):
    """SQLite configuration.

    ``:memory:`` databases are private to each connection; use a file path or
    a shared-cache URI to see the same data from several scopes.
    """

    __slots__ = ()

    driver_type: "ClassVar[type[DBAPIDriver]]" = SqliteDriver

    def __init__(
        self,
        connection_config: "Optional[Union[SqliteConnectionParams, dict[str, Any]]]" = None,
        *,
        autocommit: bool = True,
    ) -> None:
        connection_config = dict(connection_config or {})
        connection_config.setdefault("database", ":memory:")
        database = str(connection_config["database"])
        if database.startswith("file:"):
            connection_config.setdefault("uri", True)
        super().__init__(sqlite3, connection_config, autocommit=autocommit)
