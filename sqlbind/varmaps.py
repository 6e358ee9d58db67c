"""Partitioning of call-site key/value arguments.

Every key lands in exactly one of three maps:

- no qualifier (``"table"``): a template variable, name kept as given.
- the ``sqlbind`` qualifier (``"sqlbind/max_retries"``): a library setting.
- any other qualifier (``"dbapi/row_fn"``): a driver parameter.

Setting and driver parameter names are normalized with
:func:`sqlbind.settings.normalize_key`.
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from sqlbind.exceptions import InvalidArgumentError
from sqlbind.settings import NAMESPACE, current_settings, kv_pairs, normalize_key

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

__all__ = ("VarMaps", "flatten_kvs", "key_qualifier", "partition")


@dataclass
class VarMaps:
    """A partitioned key/value argument list."""

    settings: "dict[str, Any]" = field(default_factory=dict)
    template_vars: "dict[str, Any]" = field(default_factory=dict)
    driver_params: "dict[str, Any]" = field(default_factory=dict)


def key_qualifier(key: str) -> "str | None":
    """Return the qualifier of ``key``, or None for a bare template variable name."""
    if not isinstance(key, str):
        msg = f"Keys must be strings, got {key!r}"
        raise InvalidArgumentError(msg)
    qualifier, sep, _ = key.rpartition("/")
    return qualifier if sep else None


def partition(kvs: "Iterable[Any]", *, seed: bool = True) -> VarMaps:
    """Split flat key/value pairs into settings, template variables and driver parameters.

    Args:
        kvs: Flat ``k1, v1, k2, v2`` sequence.
        seed: Start the settings map from the settings effective in this context.

    Raises:
        InvalidArgumentError: On an odd-length sequence or a non-string key.

    Returns:
        The partitioned maps.
    """
    varmaps = VarMaps(settings=dict(current_settings()) if seed else {})
    for key, value in kv_pairs(kvs):
        qualifier = key_qualifier(key)
        if qualifier is None:
            varmaps.template_vars[key] = value
        elif qualifier.lower() == NAMESPACE:
            varmaps.settings[normalize_key(key)] = value
        else:
            varmaps.driver_params[normalize_key(key)] = value
    return varmaps


def flatten_kvs(mapping: "Mapping[str, Any]") -> "list[Any]":
    """Turn a mapping back into a flat key/value list."""
    return [item for pair in mapping.items() for item in pair]
