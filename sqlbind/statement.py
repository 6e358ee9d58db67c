"""Statement preparation and execution.

:func:`prepare` turns a SQL template (or ``.sql`` resource) plus call-site
key/value arguments into a :class:`PreparedSQL`: placeholders that resolve
are substituted into the text, the rest become bind parameters, and the
statement is prepared once on the configured connection. Calling the
result binds the remaining variables and runs the statement through
:func:`~sqlbind.retry.retry_with_timeout`.
"""

from functools import partial
from typing import TYPE_CHECKING, Any, Optional, Union

from sqlbind.driver import DBConnection, as_connection
from sqlbind.exceptions import MissingConfigurationError, UnboundVariableError
from sqlbind.failures import any_fatal
from sqlbind.loader import resolve_sql_source
from sqlbind.retry import RetrySettings, retry_with_timeout
from sqlbind.settings import SETTING_NAMES, TIMEOUT_GRACE_MS, current_settings, normalize_key
from sqlbind.templates import ParameterStyle, ResolvedStatement, resolve, template_variables
from sqlbind.utils import millis
from sqlbind.utils.logging import get_logger
from sqlbind.utils.text import censor_statement, first_line
from sqlbind.varmaps import partition

if TYPE_CHECKING:
    from collections.abc import Mapping
    from pathlib import Path

__all__ = ("PreparedSQL", "log_censored_sql", "prepare", "resolve_sql")

logger = get_logger("statement")


def log_censored_sql(sql: str) -> None:
    """Log SQL about to be executed, with credentials redacted."""
    logger.debug("Executing: <<EOF\n%s\nEOF", censor_statement(sql))


def resolve_sql(
    sql_or_resource: "Union[str, Path]",
    template_vars: "Optional[Mapping[str, Any]]" = None,
    defaults: "Optional[Mapping[str, Any]]" = None,
    *,
    style: ParameterStyle = ParameterStyle.QMARK,
) -> ResolvedStatement:
    """Load (if needed) and resolve a SQL template.

    Variables resolve from ``template_vars``, then the environment, then
    ``defaults``. ``defaults`` is a settings map: a placeholder such as
    ``${test-table}`` also matches the normalized setting ``test_table``, and
    its ``sql_paths`` entry lists directories searched for ``.sql`` resources.
    The library's own settings (``connection``, ``job_name`` ...) are never
    template defaults, so a placeholder sharing one of their names becomes a
    bind parameter unless it is given explicitly.

    Returns:
        The resolved statement.
    """
    settings = dict(defaults or {})
    source = resolve_sql_source(sql_or_resource, settings.get("sql_paths"))
    template_defaults = {k: v for k, v in settings.items() if k not in SETTING_NAMES}
    for name in template_variables(source):
        setting = normalize_key(name)
        if name not in template_defaults and setting in template_defaults:
            template_defaults[name] = template_defaults[setting]
    return resolve(source, template_vars, template_defaults, style=style)


def _parameter_style(settings: "Mapping[str, Any]", connection: DBConnection) -> ParameterStyle:
    if settings.get("parameter_style"):
        return ParameterStyle(settings["parameter_style"])
    if connection.config is not None:
        return connection.config.parameter_style
    return connection.driver.parameter_style


class PreparedSQL:
    """A statement prepared on one connection, callable with bind variables.

    Call it with further key/value arguments: template variables bind the
    statement's parameters, settings and driver parameters override those
    given to :func:`prepare` for that call only. It may be called any number
    of times while its connection is open. Settings not given to
    :func:`prepare` or to the call are read from the scope active at call
    time; the connection stays the one it was prepared on.
    """

    __slots__ = ("bind_order", "connection", "driver_params", "settings", "sql", "statement", "unresolved_names")

    def __init__(
        self,
        connection: DBConnection,
        statement: Any,
        sql: str,
        unresolved_names: "tuple[str, ...]",
        bind_order: "tuple[str, ...]",
        settings: "Mapping[str, Any]",
        driver_params: "Mapping[str, Any]",
    ) -> None:
        self.connection = connection
        self.statement = statement
        self.sql = sql
        self.unresolved_names = unresolved_names
        self.bind_order = bind_order
        self.settings = dict(settings)
        self.driver_params = dict(driver_params)

    def __repr__(self) -> str:
        return f"PreparedSQL(sql={censor_statement(self.sql)!r}, unresolved_names={self.unresolved_names!r})"

    def effective_settings(self, call_settings: "Optional[Mapping[str, Any]]" = None) -> "dict[str, Any]":
        """Settings for one call: current scope, then :func:`prepare` settings, then ``call_settings``."""
        return {**current_settings(), **self.settings, **(call_settings or {})}

    def job_name(self, settings: "Optional[Mapping[str, Any]]" = None) -> str:
        job_name = (settings or self.effective_settings()).get("job_name")
        if callable(job_name):
            job_name = job_name(censor_statement(self.sql))
        return job_name or first_line(censor_statement(self.sql))

    def bind_values(self, template_vars: "Mapping[str, Any]") -> "list[Any]":
        """Map each bind marker to its value.

        Raises:
            UnboundVariableError: If an unresolved variable has no value.
        """
        missing = tuple(name for name in self.unresolved_names if name not in template_vars)
        if missing:
            raise UnboundVariableError(missing, censor_statement(self.sql))
        return [template_vars[name] for name in self.bind_order]

    def __call__(self, *kvs: Any, **template_vars: Any) -> Any:
        call = partition(kvs, seed=False)
        call.template_vars.update(template_vars)
        settings = self.effective_settings(call.settings)
        driver_params = {**self.driver_params, **call.driver_params}

        sql_fn = settings.get("sql_fn")
        if sql_fn is None:
            msg = "SQL_FN must be defined to execute a PreparedStatement."
            raise MissingConfigurationError(msg, "sql_fn")

        bind_values = self.bind_values(call.template_vars)
        unused = set(call.template_vars) - set(self.unresolved_names)
        if unused:
            logger.debug("Ignoring variables not used by the statement: %s", ", ".join(sorted(unused)))

        abort_fn = settings.get("abort_fn") or any_fatal
        if abort_fn is any_fatal:
            abort_fn = partial(any_fatal, fatal_exceptions=settings.get("fatal_exceptions") or ())
        retry_settings = RetrySettings(
            max_retries=settings.get("max_retries") or 0,
            timeout_ms=(settings.get("timeout_ms") or 0) + TIMEOUT_GRACE_MS,
            retry_pause_ms=settings.get("retry_pause_ms") or 0,
            abort_fn=abort_fn,
        )

        log_censored_sql(self.sql)
        return retry_with_timeout(
            self.job_name(settings),
            retry_settings,
            sql_fn,
            self.connection,
            [self.statement, *bind_values],
            driver_params,
        )


def prepare(sql_or_resource: "Union[str, Path]", *kvs: Any, **template_vars: Any) -> PreparedSQL:
    """Prepare a SQL template or ``.sql`` resource on the configured connection.

    Keys in ``kvs`` are partitioned as described in :mod:`sqlbind.varmaps`:

    - settings (``CONNECTION``, ``SQL_FN``, ``JOB_NAME``, ``MAX_RETRIES`` ...)
      override the scoped settings for this statement.
    - driver parameters are passed to the driver when preparing and executing.
    - template variables are substituted into the SQL text. Variables that
      cannot be resolved from them, the environment or the settings become
      bind parameters supplied when the statement is called.

    Required settings: ``CONNECTION``. ``SQL_FN`` may be given here or when
    calling the statement.

    Raises:
        MissingConfigurationError: If no connection is configured.
        InvalidArgumentError: On malformed ``kvs``.

    Returns:
        A callable statement. Calling it returns the result of
        ``sql_fn(connection, [statement, *binds], driver_params)`` or a
        :class:`~sqlbind.failures.FailureRecord`.
    """
    varmaps = partition(kvs, seed=False)
    varmaps.template_vars.update(template_vars)
    settings = {**current_settings(), **varmaps.settings}

    if settings.get("connection") is None:
        msg = "CONNECTION must be defined."
        raise MissingConfigurationError(msg, "connection")
    connection = as_connection(settings["connection"])

    resolved = resolve_sql(
        sql_or_resource, varmaps.template_vars, settings, style=_parameter_style(settings, connection)
    )
    timeout_seconds = millis.to_seconds(settings.get("timeout_ms") or 0)
    statement = connection.driver.prepare_statement(
        connection, resolved.sql, {"timeout_seconds": timeout_seconds, **varmaps.driver_params}
    )
    return PreparedSQL(
        connection,
        statement,
        resolved.sql,
        resolved.unresolved_names,
        resolved.bind_order,
        varmaps.settings,
        varmaps.driver_params,
    )
