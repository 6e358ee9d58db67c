"""Run a described list of statements in one transaction."""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional, Union

from sqlbind.driver import DBAPIConfig, DBConnection, as_connection
from sqlbind.scopes import connection_scope, transaction_scope
from sqlbind.utils.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

__all__ = ("ExecMode", "StatementDetail", "run_statement", "run_statements_in_transaction", "statement_detail")

logger = get_logger("runner")


class ExecMode(str, Enum):
    QUERY = "query"
    EXECUTE = "execute"


@dataclass(frozen=True)
class StatementDetail:
    """One statement to run.

    Attributes:
        stmt_text: Final SQL text, bound with ``binds``. No template resolution is applied.
        exec_mode: ``QUERY`` when rows are expected, ``EXECUTE`` otherwise.
        op_comment: Logged before the statement runs.
        binds: Bind values.
        commit: Commit the connection right after the statement.
        opt_map: Driver options for the query or execute call.
        result: Filled in by :func:`run_statement`.
    """

    stmt_text: str
    exec_mode: ExecMode = ExecMode.QUERY
    op_comment: Optional[str] = None
    binds: "Sequence[Any]" = ()
    commit: bool = False
    opt_map: "dict[str, Any]" = field(default_factory=dict)
    result: Any = None


def statement_detail(stmt_text: str, **detail: Any) -> StatementDetail:
    """Build a :class:`StatementDetail`, accepting ``exec_mode`` as a string."""
    if "exec_mode" in detail and detail["exec_mode"] is not None:
        detail["exec_mode"] = ExecMode(detail["exec_mode"])
    else:
        detail.pop("exec_mode", None)
    return StatementDetail(stmt_text, **{k: v for k, v in detail.items() if v is not None})


def run_statement(connection: Any, detail: StatementDetail) -> StatementDetail:
    """Run one statement.

    Returns:
        A copy of ``detail`` with ``result`` set.
    """
    handle = as_connection(connection)
    logger.info("Running statement: [%s] ...", detail.stmt_text)
    if detail.op_comment:
        logger.info("Operation comment: %s", detail.op_comment)

    sql_params = [detail.stmt_text, *detail.binds]
    if detail.exec_mode is ExecMode.QUERY:
        logger.debug("Issuing statement as query (results expected) ...")
        result = handle.driver.query(handle, sql_params, detail.opt_map)
    else:
        logger.debug("Issuing statement as execution (no results expected) ...")
        result = handle.driver.execute(handle, sql_params, detail.opt_map)

    if detail.commit:
        handle.driver.commit(handle)
    return replace(detail, result=result)


def run_statements_in_transaction(
    conn_or_spec: "Union[DBAPIConfig, DBConnection, Any]", details: "Iterable[StatementDetail]"
) -> "list[StatementDetail]":
    """Run ``details`` in order inside one transaction.

    ``conn_or_spec`` is either a configuration (a connection is opened for
    the run) or an open connection. Any failure rolls the transaction back
    and propagates.

    Returns:
        The details with their results.
    """
    if isinstance(conn_or_spec, DBAPIConfig):
        with connection_scope(conn_or_spec) as connection, transaction_scope(connection):
            return [run_statement(connection, detail) for detail in details]

    with transaction_scope(as_connection(conn_or_spec)) as connection:
        return [run_statement(connection, detail) for detail in details]
