"""SQL resource loading.

A statement source ending in ``.sql`` (any case) names a file rather than
SQL text. Relative paths are tried as given, then under each directory of
the ``sql_paths`` setting.
"""

from pathlib import Path
from typing import TYPE_CHECKING, Optional, Union

from sqlbind.exceptions import SQLFileNotFoundError
from sqlbind.utils.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Iterable

__all__ = ("is_sql_resource", "read_sql_file", "resolve_sql_source")

logger = get_logger("loader")


def is_sql_resource(source: Union[str, Path]) -> bool:
    return str(source).upper().endswith(".SQL")


def read_sql_file(
    path: Union[str, Path], search_paths: "Optional[Iterable[Union[str, Path]]]" = None, encoding: str = "utf-8"
) -> str:
    """Read a SQL file.

    Args:
        path: File path, absolute or relative.
        search_paths: Directories tried in order when ``path`` is relative and not found as given.
        encoding: Text encoding of the file.

    Raises:
        SQLFileNotFoundError: If no candidate file exists.

    Returns:
        The file's text.
    """
    candidate = Path(path)
    candidates = [candidate]
    if not candidate.is_absolute():
        candidates.extend(Path(directory) / candidate for directory in search_paths or ())

    for file_path in candidates:
        if file_path.is_file():
            logger.debug("Loading SQL from %s", file_path)
            return file_path.read_text(encoding=encoding)

    raise SQLFileNotFoundError(str(path), [str(c) for c in candidates])


def resolve_sql_source(
    sql_or_resource: Union[str, Path], search_paths: "Optional[Iterable[Union[str, Path]]]" = None
) -> str:
    """Return SQL text, loading it from a file when ``sql_or_resource`` names one."""
    if is_sql_resource(sql_or_resource):
        return read_sql_file(sql_or_resource, search_paths)
    return str(sql_or_resource)
