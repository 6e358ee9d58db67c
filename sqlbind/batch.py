"""Run an operation over many substitution sets, folding the results."""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Generic, TypeVar, Union

from sqlbind.exceptions import BatchHalt, InvalidArgumentError
from sqlbind.failures import is_failure
from sqlbind.settings import kv_pairs
from sqlbind.utils.logging import get_logger
from sqlbind.varmaps import flatten_kvs

if TYPE_CHECKING:
    from collections.abc import Sequence

__all__ = ("BatchCallbacks", "Continue", "Halt", "for_all_substitutions")

AccT = TypeVar("AccT")

logger = get_logger("batch")


@dataclass(frozen=True)
class Continue(Generic[AccT]):
    """Callback result: carry on with ``accumulator``."""

    accumulator: AccT


@dataclass(frozen=True)
class Halt(Generic[AccT]):
    """Callback result: stop the batch and return this value."""

    accumulator: AccT


@dataclass(frozen=True)
class BatchCallbacks(Generic[AccT]):
    """Folding callbacks, each called as ``(accumulator, result_or_error, substitutions)``."""

    on_success: "Callable[[AccT, Any, Mapping[str, Any]], Any]"
    on_failure: "Callable[[AccT, Any, Mapping[str, Any]], Any]"


def _callbacks(callbacks: "Union[BatchCallbacks[Any], Mapping[str, Any]]") -> "BatchCallbacks[Any]":
    if isinstance(callbacks, BatchCallbacks):
        return callbacks
    try:
        return BatchCallbacks(on_success=callbacks["on_success"], on_failure=callbacks["on_failure"])
    except KeyError as e:
        msg = f"Batch callbacks must define on_success and on_failure, missing {e}"
        raise InvalidArgumentError(msg) from e


def for_all_substitutions(
    operation: "Callable[..., Any]",
    initial: AccT,
    callbacks: "Union[BatchCallbacks[AccT], Mapping[str, Any]]",
    *substitution_sets: "Union[Sequence[Any], Mapping[str, Any]]",
) -> "Union[AccT, Halt[AccT]]":
    """Call ``operation`` once per substitution set, in order, folding the results.

    Each set is a flat key/value sequence or a mapping and is passed to
    ``operation`` as flat positional key/value arguments. When the operation
    succeeds ``on_success`` receives the result. When the operation raises or
    returns a failure (see :func:`~sqlbind.failures.is_failure`), or when
    ``on_success`` raises, ``on_failure`` receives the error instead. Either
    callback returns the next accumulator, optionally wrapped in
    :class:`Continue`, or a :class:`Halt` to stop early.

    Raises:
        BatchHalt: If ``on_failure`` raises. It carries the accumulator from
            before the failing set and is chained from the callback's error.

    Returns:
        The final accumulator, or the :class:`Halt` that stopped the batch.
    """
    handlers = _callbacks(callbacks)
    accumulator: Any = initial
    outcome: Any

    for substitution_set in substitution_sets:
        kvs = flatten_kvs(substitution_set) if isinstance(substitution_set, Mapping) else list(substitution_set)
        substitutions = dict(kv_pairs(kvs))

        outcome = None
        try:
            result = operation(*kvs)
            failed = is_failure(result)
            if not failed:
                outcome = handlers.on_success(accumulator, result, substitutions)
        except Exception as e:  # noqa: BLE001
            result, failed = e, True

        if failed:
            logger.debug("Batch operation failed for %r: %s", substitutions, result)
            try:
                outcome = handlers.on_failure(accumulator, result, substitutions)
            except Exception as e:
                raise BatchHalt(accumulator, substitutions) from e

        if isinstance(outcome, Halt):
            logger.info("Batch halted after %r", substitutions)
            return outcome
        accumulator = outcome.accumulator if isinstance(outcome, Continue) else outcome

    return accumulator
