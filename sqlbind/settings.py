"""Layered library settings.

Settings resolve with the precedence: per-call value, then the current
scope's override frame, then process-wide defaults. Override frames live in
a context variable, so each thread or task sees only the scopes it entered
itself.
"""

import os
import threading
from collections.abc import Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Callable, Optional, TypeVar

from sqlbind.exceptions import InvalidArgumentError
from sqlbind.failures import any_fatal
from sqlbind.utils import millis
from sqlbind.utils.logging import get_logger
from sqlbind.utils.text import first_line

if TYPE_CHECKING:
    from collections.abc import Generator, Iterable

__all__ = (
    "ABORT_FN",
    "CONNECTION",
    "DB_SPEC",
    "DEFAULT_FATAL_EXCEPTIONS",
    "FATAL_EXCEPTIONS",
    "JOB_NAME",
    "MAX_RETRIES",
    "NAMESPACE",
    "PARAMETER_STYLE",
    "RETRY_PAUSE_MS",
    "SQL_FN",
    "SETTING_NAMES",
    "SQL_PATHS",
    "TIMEOUT_GRACE_MS",
    "TIMEOUT_MS",
    "config_value",
    "current_settings",
    "kv_pairs",
    "load_defaults_from_env",
    "normalize_key",
    "override",
    "reset_defaults",
    "set_defaults",
    "settings_scope",
    "with_overrides",
)

T = TypeVar("T")

logger = get_logger("settings")

NAMESPACE = "sqlbind"

CONNECTION = f"{NAMESPACE}/connection"
"""The open connection or transaction handle statements execute against."""

DB_SPEC = f"{NAMESPACE}/db_spec"
"""The configuration object used to open ``CONNECTION``."""

SQL_FN = f"{NAMESPACE}/sql_fn"
"""Callable ``(connection, [statement, *binds], options)`` that runs a prepared statement."""

JOB_NAME = f"{NAMESPACE}/job_name"
"""Job name for logging, or a callable deriving it from the SQL text."""

MAX_RETRIES = f"{NAMESPACE}/max_retries"
TIMEOUT_MS = f"{NAMESPACE}/timeout_ms"
RETRY_PAUSE_MS = f"{NAMESPACE}/retry_pause_ms"

ABORT_FN = f"{NAMESPACE}/abort_fn"
"""Predicate over the accumulated errors; True stops retrying."""

FATAL_EXCEPTIONS = f"{NAMESPACE}/fatal_exceptions"
"""Message substrings that mark an error as fatal."""

SQL_PATHS = f"{NAMESPACE}/sql_paths"
"""Directories searched for ``.sql`` resources given by relative path."""

PARAMETER_STYLE = f"{NAMESPACE}/parameter_style"
"""Bind marker style; the connection's driver decides when unset."""

TIMEOUT_GRACE_MS = millis.from_seconds(5)
"""Added to ``TIMEOUT_MS`` so the driver can time out before the retry budget does."""

DEFAULT_FATAL_EXCEPTIONS = (
    "Serializable isolation violation on table",
    "current transaction is aborted, commands ignored until end of transaction block",
    "only table or database owner can vacuum it",
    "only table or database owner can analyze it",
)


def _env_int(key: str, default: int) -> int:
    """Get integer value from environment variable."""
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning("Invalid integer value for %s: %s, using default %d", key, value, default)
        return default


def _builtin_defaults() -> "dict[str, Any]":
    return {
        "connection": None,
        "db_spec": None,
        "sql_fn": None,
        "job_name": first_line,
        "max_retries": 0,
        "timeout_ms": millis.from_minutes(60 * 24),
        "retry_pause_ms": millis.from_seconds(5),
        "abort_fn": any_fatal,
        "fatal_exceptions": list(DEFAULT_FATAL_EXCEPTIONS),
        "sql_paths": [],
        "parameter_style": None,
    }


SETTING_NAMES = frozenset(_builtin_defaults())
"""Normalized names of the library's own settings."""


def load_defaults_from_env() -> "dict[str, Any]":
    """Build the process defaults, honouring environment overrides.

    Environment Variables Supported:
    - SQLBIND_MAX_RETRIES: Retries after the first attempt (integer)
    - SQLBIND_TIMEOUT_MS: Statement timeout in milliseconds (integer)
    - SQLBIND_RETRY_PAUSE_MS: Pause between attempts in milliseconds (integer)

    Returns:
        The default settings map.
    """
    defaults = _builtin_defaults()
    defaults["max_retries"] = _env_int("SQLBIND_MAX_RETRIES", defaults["max_retries"])
    defaults["timeout_ms"] = _env_int("SQLBIND_TIMEOUT_MS", defaults["timeout_ms"])
    defaults["retry_pause_ms"] = _env_int("SQLBIND_RETRY_PAUSE_MS", defaults["retry_pause_ms"])
    return defaults


_defaults_lock = threading.Lock()
_defaults: "Mapping[str, Any]" = MappingProxyType(load_defaults_from_env())

_frame: "ContextVar[Optional[Mapping[str, Any]]]" = ContextVar("sqlbind_settings_frame", default=None)


def normalize_key(key: str) -> str:
    """Strip any qualifier from ``key`` and return its bare lower-cased name.

    ``"sqlbind/MAX-RETRIES"`` and ``"max_retries"`` both normalize to ``"max_retries"``.
    """
    if not isinstance(key, str):
        msg = f"Setting keys must be strings, got {key!r}"
        raise InvalidArgumentError(msg)
    return key.rpartition("/")[2].lower().replace("-", "_")


def kv_pairs(kvs: "Iterable[Any]") -> "list[tuple[Any, Any]]":
    """Pair up a flat ``k1, v1, k2, v2`` sequence.

    Raises:
        InvalidArgumentError: If the sequence has an odd number of items.
    """
    items = list(kvs)
    if len(items) % 2:
        msg = f"Expecting an even number of key/value parameters, got {len(items)}"
        raise InvalidArgumentError(msg)
    return list(zip(items[::2], items[1::2]))


def _normalized(kvs: "Iterable[Any]", settings: "Mapping[str, Any]") -> "dict[str, Any]":
    overrides = {normalize_key(k): v for k, v in kv_pairs(kvs)}
    overrides.update((normalize_key(k), v) for k, v in settings.items())
    return overrides


def current_settings() -> "Mapping[str, Any]":
    """Return a read-only view of the settings effective in this context."""
    frame = _frame.get()
    if frame is None:
        return _defaults
    return MappingProxyType({**_defaults, **frame})


def override(*kvs: Any, **settings: Any) -> None:
    """Override settings in the current context.

    Outside of any scope this affects the rest of the current context (for the
    main thread, the rest of the program). Inside a scope the change is undone
    when the scope exits.

    Args:
        *kvs: Flat key/value pairs, keys may be setting constants or bare names.
        **settings: Bare setting names and values.
    """
    overrides = _normalized(kvs, settings)
    _frame.set({**(_frame.get() or {}), **overrides})


def set_defaults(*kvs: Any, **settings: Any) -> None:
    """Change the process-wide defaults seen by every thread and task."""
    global _defaults
    overrides = _normalized(kvs, settings)
    with _defaults_lock:
        _defaults = MappingProxyType({**_defaults, **overrides})


def reset_defaults() -> None:
    """Restore the process-wide defaults to their initial values."""
    global _defaults
    with _defaults_lock:
        _defaults = MappingProxyType(load_defaults_from_env())


@contextmanager
def settings_scope(*kvs: Any, **settings: Any) -> "Generator[Mapping[str, Any], None, None]":
    """Apply overrides for the duration of the block.

    The prior frame is restored on exit however the block terminates, and any
    :func:`override` calls made inside the block are discarded with it.

    Yields:
        The settings effective inside the scope.
    """
    overrides = _normalized(kvs, settings)
    token = _frame.set({**(_frame.get() or {}), **overrides})
    try:
        yield current_settings()
    finally:
        _frame.reset(token)


def with_overrides(fn: "Callable[..., T]", *args: Any, **kwargs: Any) -> T:
    """Call ``fn`` in a fresh settings scope and restore the settings afterwards."""
    with settings_scope():
        return fn(*args, **kwargs)


def config_value(*keys: Any, overrides: "Optional[Mapping[str, Any]]" = None) -> Any:
    """Read a (possibly nested) setting value.

    The first key names a setting and is normalized; later keys index into the
    value, using item access for mappings and attribute access otherwise.

    Args:
        *keys: Setting constant or bare name, followed by nested keys.
        overrides: Highest-precedence values, e.g. per-call settings.

    Returns:
        The value, or None when any step is missing.
    """
    if not keys:
        msg = "config_value requires at least one key"
        raise InvalidArgumentError(msg)
    merged = {**current_settings(), **{normalize_key(k): v for k, v in (overrides or {}).items()}}
    value: Any = merged.get(normalize_key(keys[0]))
    for key in keys[1:]:
        if value is None:
            return None
        value = value.get(key) if isinstance(value, Mapping) else getattr(value, key, None)
    return value
