"""Text helpers for SQL logging."""

import re

__all__ = ("censor_statement", "first_line")

# Credential assignments as they appear in Redshift COPY/UNLOAD statements
_CENSOR_PATTERNS = (
    (re.compile(r"aws_access_key_id=[^;']+", re.IGNORECASE), "aws_access_key_id=XXX"),
    (re.compile(r"aws_secret_access_key=[^';]+", re.IGNORECASE), "aws_secret_access_key=XXX"),
    (re.compile(r"token=[^']+", re.IGNORECASE), "token=XXX"),
    (re.compile(r"password=[^';\s]+", re.IGNORECASE), "password=XXX"),
)


def censor_statement(statement: str) -> str:
    """Replace credential values embedded in SQL text with ``XXX``.

    Args:
        statement: SQL text that may carry credentials.

    Returns:
        The SQL text with sensitive values redacted.
    """
    for pattern, replacement in _CENSOR_PATTERNS:
        statement = pattern.sub(replacement, statement)
    return statement


def first_line(text: str) -> str:
    """Return the first non-blank line of ``text``, stripped."""
    for line in text.splitlines():
        if line.strip():
            return line.strip()
    return ""
