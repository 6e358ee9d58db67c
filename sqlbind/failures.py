"""Failure classification.

Driver errors can carry two independent chains: sibling errors reported
together (an ``ExceptionGroup`` or a ``next_exception`` link, as set by some
drivers for batch failures) and the ``__cause__``/``__context__`` chain.
:func:`flatten` captures both into a :class:`FailureRecord`, and fatal
errors are recognised by substring match against a configured message list.
"""

from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass
from enum import Enum
from functools import cached_property, singledispatch
from typing import Any, Callable, Optional, TypeVar

from sqlbind.exceptions import FatalFailureError, TransientFailureError

__all__ = (
    "FailureKind",
    "FailureReason",
    "FailureRecord",
    "any_fatal",
    "cause_chain",
    "failure_chain",
    "flatten",
    "is_failure",
    "is_fatal",
    "try_sql",
)

T = TypeVar("T")


class FailureKind(Enum):
    TRANSIENT = "transient"
    FATAL = "fatal"


class FailureReason(Enum):
    """Why a failure record was produced."""

    RAISED = "raised"
    ABORTED = "aborted"
    RETRIES_EXHAUSTED = "retries_exhausted"
    TIMED_OUT = "timed_out"


def failure_chain(error: BaseException) -> "Iterator[BaseException]":
    """Yield ``error`` followed by its sibling errors, depth first."""
    if isinstance(error, BaseExceptionGroup):
        for member in error.exceptions:
            yield from failure_chain(member)
        return
    seen: set[int] = set()
    current: Optional[BaseException] = error
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        next_exception = getattr(current, "next_exception", None)
        current = next_exception if isinstance(next_exception, BaseException) else None


def cause_chain(error: BaseException) -> "Iterator[BaseException]":
    """Yield ``error`` followed by the errors it was raised from or during."""
    seen: set[int] = set()
    current: Optional[BaseException] = error
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        if current.__cause__ is not None:
            current = current.__cause__
        elif not current.__suppress_context__:
            current = current.__context__
        else:
            current = None


@dataclass(frozen=True)
class FailureRecord:
    """A classified failure.

    ``failures`` and ``causes`` are expanded on first access.
    """

    error: BaseException
    errors: "tuple[BaseException, ...]" = ()
    kind: FailureKind = FailureKind.FATAL
    reason: FailureReason = FailureReason.RAISED
    job_name: Optional[str] = None
    attempts: int = 1
    elapsed_ms: float = 0.0

    def __post_init__(self) -> None:
        if not self.errors:
            object.__setattr__(self, "errors", (self.error,))

    @cached_property
    def failures(self) -> "tuple[BaseException, ...]":
        return tuple(failure_chain(self.error))

    @cached_property
    def causes(self) -> "tuple[BaseException, ...]":
        return tuple(cause_chain(self.error))

    @property
    def fatal(self) -> bool:
        return self.kind is FailureKind.FATAL

    def describe(self) -> str:
        """One-line human readable summary."""
        prefix = f"{self.job_name}: " if self.job_name else ""
        return (
            f"{prefix}{self.kind.value} failure ({self.reason.value}) after {self.attempts} attempt(s): "
            f"{type(self.error).__name__}: {self.error}"
        )

    def raise_error(self) -> None:
        """Raise this record as :class:`FatalFailureError` or :class:`TransientFailureError`."""
        error_type = FatalFailureError if self.fatal else TransientFailureError
        raise error_type(self) from self.error


def _fatal_messages(fatal_exceptions: "Optional[Iterable[str]]") -> "Sequence[str]":
    if fatal_exceptions is not None:
        return list(fatal_exceptions)
    from sqlbind.settings import current_settings

    return list(current_settings().get("fatal_exceptions") or ())


def _error_text(error: BaseException) -> str:
    chain = {id(e): e for e in (*failure_chain(error), *cause_chain(error))}
    return "\n".join(f"{type(e).__module__}.{type(e).__qualname__}: {e}" for e in chain.values())


def is_fatal(error: Optional[BaseException], fatal_exceptions: "Optional[Iterable[str]]" = None) -> bool:
    """Return True if any fatal message substring occurs in the error's text.

    Args:
        error: The error to classify.
        fatal_exceptions: Message substrings, the ``fatal_exceptions`` setting when omitted.

    Returns:
        True if the error is fatal, False otherwise or when there is no error text.
    """
    if error is None:
        return False
    text = _error_text(error)
    if not text:
        return False
    return any(substring and substring in text for substring in _fatal_messages(fatal_exceptions))


def any_fatal(errors: "Iterable[BaseException]", fatal_exceptions: "Optional[Iterable[str]]" = None) -> bool:
    """Return True if any error in ``errors`` is fatal.

    This is the default abort predicate for :func:`sqlbind.retry.retry_with_timeout`.
    """
    messages = _fatal_messages(fatal_exceptions)
    return any(is_fatal(error, messages) for error in errors)


def flatten(error: BaseException, fatal_exceptions: "Optional[Iterable[str]]" = None) -> FailureRecord:
    """Capture ``error`` as a :class:`FailureRecord` classified by :func:`is_fatal`."""
    kind = FailureKind.FATAL if is_fatal(error, fatal_exceptions) else FailureKind.TRANSIENT
    return FailureRecord(error=error, kind=kind)


@singledispatch
def is_failure(value: Any) -> bool:
    """Return True if ``value`` represents a failure."""
    return False


@is_failure.register(BaseException)
def _is_failure_exception(value: BaseException) -> bool:
    return True


@is_failure.register(FailureRecord)
def _is_failure_record(value: FailureRecord) -> bool:
    return True


def try_sql(fn: "Callable[..., T]", *args: Any, **kwargs: Any) -> "T | FailureRecord":
    """Return ``fn(*args, **kwargs)``, or the flattened failure if it raises."""
    try:
        return fn(*args, **kwargs)
    except Exception as e:  # noqa: BLE001
        return flatten(e)
