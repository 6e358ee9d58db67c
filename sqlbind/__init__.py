"""sqlbind: templated SQL with bind-variable fallback, retries and scoped settings."""

from sqlbind import driver, exceptions, failures, settings, templates, utils
from sqlbind.__metadata__ import __version__
from sqlbind.base import (
    define_query,
    define_statement,
    execute,
    keyed_query,
    keyed_query_fn,
    keystring_to_where_conditions,
    query,
)
from sqlbind.batch import BatchCallbacks, Continue, Halt, for_all_substitutions
from sqlbind.driver import DBAPIConfig, DBConnection, SqliteConfig
from sqlbind.exceptions import (
    BatchHalt,
    FatalFailureError,
    InvalidArgumentError,
    MissingConfigurationError,
    SQLBindError,
    SQLFileNotFoundError,
    TransientFailureError,
    UnboundVariableError,
)
from sqlbind.failures import (
    FailureKind,
    FailureReason,
    FailureRecord,
    any_fatal,
    flatten,
    is_failure,
    is_fatal,
    try_sql,
)
from sqlbind.retry import RetrySettings, retry_with_timeout
from sqlbind.runner import ExecMode, StatementDetail, run_statement, run_statements_in_transaction, statement_detail
from sqlbind.scopes import connection_scope, transaction_scope
from sqlbind.settings import (
    ABORT_FN,
    CONNECTION,
    DB_SPEC,
    FATAL_EXCEPTIONS,
    JOB_NAME,
    MAX_RETRIES,
    PARAMETER_STYLE,
    RETRY_PAUSE_MS,
    SQL_FN,
    SQL_PATHS,
    TIMEOUT_MS,
    config_value,
    current_settings,
    override,
    set_defaults,
    settings_scope,
    with_overrides,
)
from sqlbind.statement import PreparedSQL, prepare
from sqlbind.templates import ParameterStyle, ResolvedStatement, resolve, substitute, template_variables
from sqlbind.varmaps import VarMaps, partition

__all__ = (
    "ABORT_FN",
    "CONNECTION",
    "DB_SPEC",
    "FATAL_EXCEPTIONS",
    "JOB_NAME",
    "MAX_RETRIES",
    "PARAMETER_STYLE",
    "RETRY_PAUSE_MS",
    "SQL_FN",
    "SQL_PATHS",
    "TIMEOUT_MS",
    "BatchCallbacks",
    "BatchHalt",
    "Continue",
    "DBAPIConfig",
    "DBConnection",
    "ExecMode",
    "FailureKind",
    "FailureReason",
    "FailureRecord",
    "FatalFailureError",
    "Halt",
    "InvalidArgumentError",
    "MissingConfigurationError",
    "ParameterStyle",
    "PreparedSQL",
    "ResolvedStatement",
    "RetrySettings",
    "SQLBindError",
    "SQLFileNotFoundError",
    "SqliteConfig",
    "StatementDetail",
    "TransientFailureError",
    "UnboundVariableError",
    "VarMaps",
    "__version__",
    "any_fatal",
    "config_value",
    "connection_scope",
    "current_settings",
    "define_query",
    "define_statement",
    "driver",
    "exceptions",
    "execute",
    "failures",
    "flatten",
    "for_all_substitutions",
    "is_failure",
    "is_fatal",
    "keyed_query",
    "keyed_query_fn",
    "keystring_to_where_conditions",
    "override",
    "partition",
    "prepare",
    "query",
    "resolve",
    "retry_with_timeout",
    "run_statement",
    "run_statements_in_transaction",
    "set_defaults",
    "settings",
    "settings_scope",
    "statement_detail",
    "substitute",
    "template_variables",
    "templates",
    "transaction_scope",
    "try_sql",
    "utils",
    "with_overrides",
)
