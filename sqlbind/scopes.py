"""Connection and transaction scopes.

Each scope opens a connection or transaction, binds it (and the spec it
came from) as the ``connection`` and ``db_spec`` settings for the body, and
restores the prior settings on exit.
"""

from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Union

from sqlbind.driver import DBAPIConfig, DBConnection, as_connection
from sqlbind.exceptions import MissingConfigurationError
from sqlbind.settings import CONNECTION, DB_SPEC, current_settings, settings_scope
from sqlbind.utils.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Generator

__all__ = ("connection_scope", "transaction_scope")

logger = get_logger("scopes")


@contextmanager
def connection_scope(spec: DBAPIConfig, *kvs: Any, **settings: Any) -> "Generator[DBConnection, None, None]":
    """Open a connection for the block and make it the effective ``connection`` setting.

    Args:
        spec: How to open the connection.
        *kvs: Further setting overrides for the scope.
        **settings: Further setting overrides for the scope.

    Yields:
        The open connection.
    """
    with settings_scope(*kvs, **settings), spec.provide_connection() as connection:
        logger.debug("Opened connection scope on %r", spec)
        with settings_scope(DB_SPEC, spec, CONNECTION, connection):
            yield connection


@contextmanager
def transaction_scope(
    spec: "Union[DBAPIConfig, DBConnection, Any, None]" = None, *kvs: Any, **settings: Any
) -> "Generator[DBConnection, None, None]":
    """Open a transaction for the block and make it the effective ``connection`` setting.

    The transaction commits when the block completes and rolls back if it
    raises. ``spec`` may be a configuration (a new connection is opened), an
    open connection, or omitted to use the current ``connection`` setting.

    Yields:
        The connection the transaction runs on.
    """
    if spec is None:
        spec = current_settings().get("connection")
        if spec is None:
            msg = "transaction_scope needs a spec, a connection, or a CONNECTION setting."
            raise MissingConfigurationError(msg, "connection")
    with settings_scope(*kvs, **settings):
        if isinstance(spec, DBAPIConfig):
            with spec.provide_transaction() as connection, settings_scope(DB_SPEC, spec, CONNECTION, connection):
                yield connection
            return

        connection = as_connection(spec)
        with connection.driver.open_transaction(connection), settings_scope(CONNECTION, connection):
            yield connection
