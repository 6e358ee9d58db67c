"""Bounded, timed retry of an operation.

The timeout is a single budget shared by every attempt: elapsed time is
measured from the start of the first attempt, so a run of slow failures
cannot multiply the total latency.
"""

import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, TypeVar, Union

from sqlbind.exceptions import InvalidArgumentError
from sqlbind.failures import FailureKind, FailureReason, FailureRecord, any_fatal
from sqlbind.utils import millis
from sqlbind.utils.logging import get_logger, job_context

if TYPE_CHECKING:
    from collections.abc import Sequence

__all__ = ("RetrySettings", "retry_with_timeout")

T = TypeVar("T")

logger = get_logger("retry")


@dataclass(frozen=True)
class RetrySettings:
    """Retry policy.

    Attributes:
        max_retries: Retries after the first attempt; 0 means exactly one attempt.
        timeout_ms: Total budget across all attempts and pauses.
        retry_pause_ms: Pause before each retry.
        abort_fn: Called with every error so far; returning True stops retrying.
    """

    max_retries: int = 0
    timeout_ms: int = millis.from_minutes(60 * 24)
    retry_pause_ms: int = millis.from_seconds(5)
    abort_fn: "Callable[[Sequence[BaseException]], bool]" = any_fatal

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            msg = f"max_retries must be >= 0, got {self.max_retries}"
            raise InvalidArgumentError(msg)
        if self.timeout_ms <= 0:
            msg = f"timeout_ms must be > 0, got {self.timeout_ms}"
            raise InvalidArgumentError(msg)
        if self.retry_pause_ms < 0:
            msg = f"retry_pause_ms must be >= 0, got {self.retry_pause_ms}"
            raise InvalidArgumentError(msg)


def retry_with_timeout(
    job_name: str, settings: RetrySettings, fn: "Callable[..., T]", *args: Any, **kwargs: Any
) -> "Union[T, FailureRecord]":
    """Call ``fn(*args, **kwargs)`` until it succeeds or the policy gives up.

    Errors are not raised. When the policy gives up, a fatal
    :class:`~sqlbind.failures.FailureRecord` holding every error is returned,
    so callers must check the result with :func:`~sqlbind.failures.is_failure`.

    Args:
        job_name: Name used in log messages and on the failure record.
        settings: The retry policy.
        fn: The operation to attempt.
        *args: Positional arguments for ``fn``.
        **kwargs: Keyword arguments for ``fn``.

    Returns:
        The first successful result, or a FailureRecord.
    """
    errors: list[BaseException] = []
    retries = 0
    start = time.monotonic()

    with job_context(job_name):
        while True:
            try:
                result = fn(*args, **kwargs)
            except Exception as e:  # noqa: BLE001
                errors.append(e)
            else:
                if retries:
                    logger.info("%s succeeded after %d retries", job_name, retries)
                return result

            elapsed_ms = (time.monotonic() - start) * 1000
            if settings.abort_fn(tuple(errors)):
                reason = FailureReason.ABORTED
            elif retries >= settings.max_retries:
                reason = FailureReason.RETRIES_EXHAUSTED
            elif elapsed_ms + settings.retry_pause_ms >= settings.timeout_ms:
                reason = FailureReason.TIMED_OUT
            else:
                logger.warning(
                    "%s failed (attempt %d of %d), retrying in %d ms: %s",
                    job_name,
                    retries + 1,
                    settings.max_retries + 1,
                    settings.retry_pause_ms,
                    errors[-1],
                )
                time.sleep(millis.to_seconds(settings.retry_pause_ms))
                retries += 1
                continue

            record = FailureRecord(
                error=errors[-1],
                errors=tuple(errors),
                kind=FailureKind.FATAL,
                reason=reason,
                job_name=job_name,
                attempts=retries + 1,
                elapsed_ms=elapsed_ms,
            )
            logger.error("%s", record.describe())
            return record
