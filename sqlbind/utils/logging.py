"""Centralized logging configuration for sqlbind.

All loggers live under the ``sqlbind`` namespace. The name of the SQL job
currently executing is tracked in a context variable and attached to every
record emitted while it runs.
"""

from __future__ import annotations

import json
import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Generator
    from logging import LogRecord

__all__ = (
    "JobNameFilter",
    "StructuredFormatter",
    "configure_logging",
    "get_job_name",
    "get_logger",
    "job_context",
    "job_name_var",
)

job_name_var: ContextVar[str | None] = ContextVar("sqlbind_job_name", default=None)


def get_job_name() -> str | None:
    """Get the name of the SQL job running in the current context.

    Returns:
        The job name or None outside of a job
    """
    return job_name_var.get()


@contextmanager
def job_context(job_name: str | None) -> Generator[None, None, None]:
    """Tag log records emitted inside the block with ``job_name``."""
    token = job_name_var.set(job_name)
    try:
        yield
    finally:
        job_name_var.reset(token)


class StructuredFormatter(logging.Formatter):
    """Structured JSON formatter with job name support."""

    def format(self, record: LogRecord) -> str:
        """Format log record as structured JSON.

        Args:
            record: The log record to format

        Returns:
            JSON formatted log entry
        """
        log_entry: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if job_name := getattr(record, "job_name", None) or get_job_name():
            log_entry["job_name"] = job_name

        if hasattr(record, "extra_fields"):
            log_entry.update(record.extra_fields)

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


class JobNameFilter(logging.Filter):
    """Filter that adds the current job name to log records."""

    def filter(self, record: LogRecord) -> bool:
        if job_name := get_job_name():
            record.job_name = job_name
        return True


def get_logger(name: str | None = None) -> logging.Logger:
    """Get a logger instance under the ``sqlbind`` namespace.

    Args:
        name: Logger name. If not provided, returns the root sqlbind logger.

    Returns:
        Configured logger instance
    """
    if name is None:
        return logging.getLogger("sqlbind")

    if not name.startswith("sqlbind"):
        name = f"sqlbind.{name}"

    logger = logging.getLogger(name)

    if not any(isinstance(f, JobNameFilter) for f in logger.filters):
        logger.addFilter(JobNameFilter())

    return logger


def configure_logging(
    level: str = "INFO",
    format_style: str = "structured",
    log_to_file: str | None = None,
    extra_handlers: list[logging.Handler] | None = None,
) -> None:
    """Configure logging for the sqlbind library.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_style: Log format style ("structured" for JSON, "simple" for text)
        log_to_file: Optional file path to log to
        extra_handlers: Additional handlers to add
    """
    root_logger = logging.getLogger("sqlbind")
    root_logger.setLevel(getattr(logging, level.upper()))
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    if format_style == "structured":
        formatter: logging.Formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_to_file:
        file_handler = logging.FileHandler(log_to_file)
        file_handler.setFormatter(StructuredFormatter())
        root_logger.addHandler(file_handler)

    if extra_handlers:
        for handler in extra_handlers:
            root_logger.addHandler(handler)

    root_logger.propagate = False

    root_logger.info(
        "sqlbind logging configured",
        extra={
            "extra_fields": {
                "level": level,
                "format_style": format_style,
                "handlers_count": len(root_logger.handlers),
            }
        },
    )
