"""The driver boundary sqlbind executes through."""

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
    from contextlib import AbstractContextManager

__all__ = ("DriverProtocol",)


@runtime_checkable
class DriverProtocol(Protocol):
    """Operations sqlbind needs from a database driver.

    Connection and transaction handles are opaque to sqlbind; they are bound
    to the ``connection`` setting and handed back to the driver unchanged.
    Exceptions raised here are what the failure classifier sees.
    """

    def open_connection(self, spec: Any) -> "AbstractContextManager[Any]":
        """Open a connection described by ``spec`` for the duration of the block."""
        ...

    def open_transaction(self, spec: Any) -> "AbstractContextManager[Any]":
        """Open a transaction on ``spec`` (a spec or an open connection) for the block."""
        ...

    def prepare_statement(self, connection: Any, sql: str, options: "Mapping[str, Any]") -> Any:
        """Prepare ``sql`` on ``connection``. ``options`` carries ``timeout_seconds``."""
        ...

    def execute(self, connection: Any, sql_params: "Sequence[Any]", options: "Mapping[str, Any]") -> Any:
        """Execute ``[statement, *binds]`` and return the update counts."""
        ...

    def query(self, connection: Any, sql_params: "Sequence[Any]", options: "Mapping[str, Any]") -> Any:
        """Execute ``[statement, *binds]`` and return the rows."""
        ...

    def set_autocommit(self, connection: Any, autocommit: bool) -> None: ...

    def commit(self, connection: Any) -> None: ...

    def rollback(self, connection: Any) -> None: ...
