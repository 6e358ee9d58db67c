"""Generic DB-API 2.0 driver.

Works with any PEP 249 module. DB-API has no portable prepared statement
object, so :class:`PreparedStatement` keeps the SQL and its statement
options and every execution goes through a fresh cursor.
"""

import importlib
from contextlib import closing, contextmanager
from types import ModuleType
from typing import TYPE_CHECKING, Any, Callable, ClassVar, Optional, Union

from mypy_extensions import mypyc_attr

from sqlbind.exceptions import InvalidArgumentError, MissingConfigurationError
from sqlbind.templates import ParameterStyle
from sqlbind.utils.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Generator, Mapping, Sequence

__all__ = ("DBAPIConfig", "DBAPIDriver", "DBConnection", "PreparedStatement")

logger = get_logger("driver.dbapi")

_PARAMSTYLES = {
    "qmark": ParameterStyle.QMARK,
    "numeric": ParameterStyle.NUMERIC,
    "named": ParameterStyle.NUMERIC,
    "format": ParameterStyle.FORMAT,
    "pyformat": ParameterStyle.FORMAT,
}

QUERY_OPTIONS = frozenset({"row_fn", "result_set_fn", "as_arrays", "identifiers", "max_rows", "fetch_size"})
EXECUTE_OPTIONS = frozenset({"multi", "transaction", "fetch_size", "max_rows"})


class DBConnection:
    """An open connection together with the driver that owns it."""

    __slots__ = ("autocommit", "config", "driver", "in_transaction", "raw")

    def __init__(self, driver: "DBAPIDriver", raw: Any, config: "Optional[DBAPIConfig]" = None) -> None:
        self.driver = driver
        self.raw = raw
        self.config = config
        self.autocommit: Optional[bool] = None
        self.in_transaction = False

    def cursor(self) -> Any:
        return self.raw.cursor()

    def __repr__(self) -> str:
        driver = type(self.driver).__name__
        return f"DBConnection(driver={driver}, raw={self.raw!r}, in_transaction={self.in_transaction})"


class PreparedStatement:
    """SQL prepared for one connection."""

    __slots__ = ("connection", "options", "sql", "timeout_seconds")

    def __init__(
        self,
        connection: DBConnection,
        sql: str,
        timeout_seconds: Optional[float] = None,
        options: "Optional[Mapping[str, Any]]" = None,
    ) -> None:
        self.connection = connection
        self.sql = sql
        self.timeout_seconds = timeout_seconds
        self.options = dict(options or {})

    def __repr__(self) -> str:
        return f"PreparedStatement(sql={self.sql!r}, timeout_seconds={self.timeout_seconds!r})"


@mypyc_attr(allow_interpreted_subclasses=True)
class DBAPIDriver:
    """Driver over a PEP 249 module."""

    def __init__(self, module: Optional[ModuleType] = None) -> None:
        self.module = module

    @property
    def parameter_style(self) -> ParameterStyle:
        paramstyle = getattr(self.module, "paramstyle", "qmark")
        return _PARAMSTYLES.get(paramstyle, ParameterStyle.QMARK)

    def wrap(self, raw: Any, config: "Optional[DBAPIConfig]" = None) -> DBConnection:
        return DBConnection(self, raw, config)

    @contextmanager
    def open_connection(self, spec: "DBAPIConfig") -> "Generator[DBConnection, None, None]":
        connection = self.wrap(spec.create_connection(), spec)
        try:
            self.set_autocommit(connection, spec.autocommit)
            yield connection
        finally:
            connection.raw.close()

    @contextmanager
    def open_transaction(self, spec: "Union[DBAPIConfig, DBConnection]") -> "Generator[DBConnection, None, None]":
        if isinstance(spec, DBConnection):
            with self.transaction(spec):
                yield spec
            return
        with self.open_connection(spec) as connection, self.transaction(connection):
            yield connection

    @contextmanager
    def transaction(self, connection: DBConnection) -> "Generator[DBConnection, None, None]":
        """Run the block in a transaction, committing on success and rolling back on error.

        A transaction opened while another is active on the same connection joins it.
        """
        if connection.in_transaction:
            yield connection
            return

        prior_autocommit = connection.autocommit
        self.set_autocommit(connection, False)
        connection.in_transaction = True
        try:
            yield connection
        except BaseException:
            logger.debug("Rolling back transaction on %r", connection)
            self.rollback(connection)
            raise
        else:
            self.commit(connection)
        finally:
            connection.in_transaction = False
            if prior_autocommit is not None:
                self.set_autocommit(connection, prior_autocommit)

    def set_autocommit(self, connection: DBConnection, autocommit: bool) -> None:
        raw = connection.raw
        current = getattr(raw, "autocommit", None)
        if callable(current):
            current(autocommit)
        elif hasattr(raw, "autocommit"):
            raw.autocommit = autocommit
        else:
            logger.debug("%s does not support autocommit, leaving it unchanged", type(raw).__name__)
            return
        connection.autocommit = autocommit

    def commit(self, connection: DBConnection) -> None:
        connection.raw.commit()

    def rollback(self, connection: DBConnection) -> None:
        connection.raw.rollback()

    def prepare_statement(self, connection: DBConnection, sql: str, options: "Mapping[str, Any]") -> PreparedStatement:
        statement_options = dict(options)
        timeout_seconds = statement_options.pop("timeout_seconds", None)
        legacy_timeout = statement_options.pop("timeout", None)
        if timeout_seconds is None:
            timeout_seconds = legacy_timeout
        return PreparedStatement(connection, sql, timeout_seconds, statement_options)

    @contextmanager
    def statement_timeout(
        self, connection: DBConnection, timeout_seconds: Optional[float]
    ) -> "Generator[None, None, None]":
        """Bound the statement's running time. Generic DB-API offers no portable way to do so."""
        if timeout_seconds:
            logger.debug(
                "%s has no statement timeout support, %.3fs timeout not applied", type(self).__name__, timeout_seconds
            )
        yield

    def _split(self, sql_params: "Sequence[Any]", options: "Mapping[str, Any]", supported: "frozenset[str]") -> Any:
        if not sql_params:
            msg = "sql_params must contain at least the statement"
            raise InvalidArgumentError(msg)
        statement, *binds = sql_params
        if isinstance(statement, PreparedStatement):
            merged = {**statement.options, **options}
            sql, timeout = statement.sql, statement.timeout_seconds
        else:
            merged, sql, timeout = dict(options), str(statement), None
        for name in set(merged) - supported:
            logger.debug("Ignoring unsupported driver option %r", name)
        return sql, binds, timeout, merged

    def _cursor(self, connection: DBConnection, options: "Mapping[str, Any]") -> Any:
        cursor = connection.cursor()
        if options.get("fetch_size"):
            cursor.arraysize = options["fetch_size"]
        return cursor

    def execute(
        self, connection: DBConnection, sql_params: "Sequence[Any]", options: "Optional[Mapping[str, Any]]" = None
    ) -> "list[int]":
        """Execute a statement and return its update count.

        Options:
            multi: ``binds`` holds one parameter sequence per execution (``executemany``).
            transaction: run in a transaction when the connection is not already in one.
        """
        sql, binds, timeout, options = self._split(sql_params, options or {}, EXECUTE_OPTIONS)

        def run() -> "list[int]":
            with closing(self._cursor(connection, options)) as cursor, self.statement_timeout(connection, timeout):
                if options.get("multi"):
                    cursor.executemany(sql, binds)
                else:
                    cursor.execute(sql, binds)
                return [cursor.rowcount]

        if options.get("transaction") and not connection.in_transaction:
            with self.transaction(connection):
                return run()
        return run()

    def query(
        self, connection: DBConnection, sql_params: "Sequence[Any]", options: "Optional[Mapping[str, Any]]" = None
    ) -> Any:
        """Run a query and return its rows as dicts keyed by column name.

        Options:
            identifiers: column name transform, lower-casing by default.
            as_arrays: return ``[columns, row, row, ...]`` with rows as lists.
            max_rows: fetch at most this many rows.
            row_fn: applied to each row.
            result_set_fn: applied to the list of rows.
        """
        sql, binds, timeout, options = self._split(sql_params, options or {}, QUERY_OPTIONS)
        identifiers: "Callable[[str], str]" = options.get("identifiers") or str.lower
        row_fn: "Optional[Callable[[Any], Any]]" = options.get("row_fn")
        result_set_fn: "Optional[Callable[[list[Any]], Any]]" = options.get("result_set_fn")

        with closing(self._cursor(connection, options)) as cursor, self.statement_timeout(connection, timeout):
            cursor.execute(sql, binds)
            columns = [identifiers(column[0]) for column in cursor.description or ()]
            max_rows = options.get("max_rows")
            raw_rows = cursor.fetchmany(max_rows) if max_rows else cursor.fetchall()

        rows: list[Any]
        if options.get("as_arrays"):
            rows = [list(row) for row in raw_rows]
            if row_fn is not None:
                rows = [row_fn(row) for row in rows]
            result: list[Any] = [columns, *rows]
        else:
            rows = [dict(zip(columns, row)) for row in raw_rows]
            if row_fn is not None:
                rows = [row_fn(row) for row in rows]
            result = rows
        return result_set_fn(result) if result_set_fn is not None else result


class DBAPIConfig:
    """How to open connections with a DB-API module.

    Args:
        module: The DB-API module or its import name.
        connection_config: Keyword arguments for the module's ``connect``.
        autocommit: Autocommit mode of newly opened connections.
        parameter_style: Bind marker style, derived from the module's ``paramstyle`` when omitted.
    """

    __slots__ = ("_driver", "autocommit", "connection_config", "module", "parameter_style")

    driver_type: "ClassVar[type[DBAPIDriver]]" = DBAPIDriver

    def __init__(
        self,
        module: "Union[str, ModuleType]",
        connection_config: "Optional[Mapping[str, Any]]" = None,
        *,
        autocommit: bool = True,
        parameter_style: "Optional[Union[str, ParameterStyle]]" = None,
    ) -> None:
        if isinstance(module, str):
            try:
                module = importlib.import_module(module)
            except ImportError as e:
                msg = f"DB-API module {module!r} is not installed"
                raise MissingConfigurationError(msg, "db_spec") from e
        self.module = module
        self.connection_config = dict(connection_config or {})
        self.autocommit = autocommit
        self._driver = self.driver_type(module)
        self.parameter_style = ParameterStyle(parameter_style) if parameter_style else self._driver.parameter_style

    @property
    def driver(self) -> DBAPIDriver:
        return self._driver

    def create_connection(self) -> Any:
        return self.module.connect(**self.connection_config)

    @contextmanager
    def provide_connection(self) -> "Generator[DBConnection, None, None]":
        with self._driver.open_connection(self) as connection:
            yield connection

    @contextmanager
    def provide_transaction(self) -> "Generator[DBConnection, None, None]":
        with self._driver.open_transaction(self) as connection:
            yield connection

    def __repr__(self) -> str:
        return f"{type(self).__name__}(module={self.module.__name__!r}, autocommit={self.autocommit!r})"
