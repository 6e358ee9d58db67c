from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from collections.abc import Mapping

    from sqlbind.failures import FailureRecord

__all__ = (
    "BatchHalt",
    "FatalFailureError",
    "InvalidArgumentError",
    "MissingConfigurationError",
    "SQLBindError",
    "SQLFileNotFoundError",
    "TransientFailureError",
    "UnboundVariableError",
)


class SQLBindError(Exception):
    """Base exception class from which all sqlbind exceptions inherit."""

    detail: str

    def __init__(self, *args: Any, detail: str = "") -> None:
        """Initialize ``SQLBindError``.

        Args:
            *args: args are converted to :class:`str` before passing to :class:`Exception`
            detail: detail of the exception.
        """
        str_args = [str(arg) for arg in args if arg]
        if not detail:
            if str_args:
                detail, *str_args = str_args
            elif hasattr(self, "detail"):
                detail = self.detail
        self.detail = detail
        super().__init__(*str_args)

    def __repr__(self) -> str:
        if self.detail:
            return f"{self.__class__.__name__} - {self.detail}"
        return self.__class__.__name__

    def __str__(self) -> str:
        return " ".join((*self.args, self.detail)).strip()


class InvalidArgumentError(SQLBindError, ValueError):
    """Malformed call-site input, e.g. an odd-length key/value list."""


class MissingConfigurationError(SQLBindError):
    """A required setting was not supplied by any configuration tier."""

    setting: Optional[str]

    def __init__(self, message: str, setting: Optional[str] = None) -> None:
        super().__init__(detail=message)
        self.setting = setting


class UnboundVariableError(SQLBindError):
    """A template placeholder has no value at execution time."""

    names: "tuple[str, ...]"
    sql: Optional[str]

    def __init__(self, names: "tuple[str, ...]", sql: Optional[str] = None) -> None:
        detail_message = f"No value bound for template variable(s): {', '.join(names)}"
        if sql:
            detail_message = f"{detail_message}\nSQL: {sql}"
        super().__init__(detail=detail_message)
        self.names = names
        self.sql = sql


class SQLFileNotFoundError(SQLBindError):
    """A referenced ``.sql`` resource could not be found."""

    def __init__(self, name: str, searched: "Optional[list[str]]" = None) -> None:
        message = f"SQL file {name!r} not found"
        if searched:
            message = f"{message} (searched: {', '.join(searched)})"
        super().__init__(message)
        self.name = name
        self.searched = searched or []


class _FailureRecordError(SQLBindError):
    record: "FailureRecord"

    def __init__(self, record: "FailureRecord") -> None:
        super().__init__(detail=record.describe())
        self.record = record


class TransientFailureError(_FailureRecordError):
    """A classified, retryable driver failure surfaced as an exception."""


class FatalFailureError(_FailureRecordError):
    """A non-retryable driver failure, or an exhausted retry/timeout budget."""


class BatchHalt(SQLBindError):
    """A batch failure callback stopped processing.

    Carries the accumulator as it stood before the failing substitution set.
    """

    accumulator: Any
    substitutions: "Mapping[str, Any]"

    def __init__(self, accumulator: Any, substitutions: "Mapping[str, Any]") -> None:
        super().__init__(detail=f"Batch halted while processing {dict(substitutions)!r}")
        self.accumulator = accumulator
        self.substitutions = substitutions
