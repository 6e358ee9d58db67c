"""SQL template resolution.

Templates carry ``${name}`` placeholders. Each placeholder is resolved from
explicit substitutions, then the process environment, then a defaults
mapping. Placeholders no tier can resolve are rewritten as positional bind
markers and reported back so the caller can supply bind values later.
"""

import os
import re
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional

from sqlbind.exceptions import UnboundVariableError

if TYPE_CHECKING:
    from collections.abc import Mapping

__all__ = ("PLACEHOLDER_PATTERN", "ParameterStyle", "ResolvedStatement", "resolve", "substitute", "template_variables")

PLACEHOLDER_PATTERN = re.compile(r"\$\{\s*([A-Za-z_][\w.-]*)\s*\}")

_MISSING = object()


class ParameterStyle(str, Enum):
    """Positional bind marker styles, named after DB-API ``paramstyle`` values."""

    QMARK = "qmark"
    NUMERIC = "numeric"
    FORMAT = "format"
    NUMERIC_DOLLAR = "numeric_dollar"

    def marker(self, position: int) -> str:
        """Return the bind marker for the 1-based ``position``."""
        if self is ParameterStyle.QMARK:
            return "?"
        if self is ParameterStyle.FORMAT:
            return "%s"
        if self is ParameterStyle.NUMERIC:
            return f":{position}"
        return f"${position}"


@dataclass(frozen=True)
class ResolvedStatement:
    """SQL text after substitution plus the bind parameters it still expects.

    Attributes:
        sql: SQL with resolvable placeholders substituted and the rest turned into bind markers.
        unresolved_names: Distinct unresolved names in first-occurrence order.
        bind_order: Unresolved name for each bind marker, left to right.
    """

    sql: str
    unresolved_names: "tuple[str, ...]"
    bind_order: "tuple[str, ...]"


def _lookup(
    name: str, substitutions: "Mapping[str, Any]", environ: "Mapping[str, str]", defaults: "Mapping[str, Any]"
) -> Any:
    for source in (substitutions, environ, defaults):
        value = source.get(name)
        if value is not None:
            return value
    return _MISSING


def resolve(
    template: str,
    substitutions: "Optional[Mapping[str, Any]]" = None,
    defaults: "Optional[Mapping[str, Any]]" = None,
    *,
    environ: "Optional[Mapping[str, str]]" = None,
    style: ParameterStyle = ParameterStyle.QMARK,
) -> ResolvedStatement:
    """Substitute placeholders in ``template`` and collect the unresolved ones.

    Args:
        template: SQL text with ``${name}`` placeholders.
        substitutions: Explicit values, highest precedence.
        defaults: Fallback values consulted after the environment.
        environ: Environment mapping, ``os.environ`` when omitted.
        style: Bind marker style for unresolved placeholders.

    Returns:
        The resolved statement. Never raises for missing values.
    """
    substitutions = substitutions or {}
    defaults = defaults or {}
    environ = os.environ if environ is None else environ

    pieces: list[str] = []
    unresolved: list[str] = []
    bind_order: list[str] = []
    position = 0

    def literal(text: str) -> str:
        return text.replace("%", "%%") if style is ParameterStyle.FORMAT else text

    for match in PLACEHOLDER_PATTERN.finditer(template):
        pieces.append(literal(template[position : match.start()]))
        position = match.end()
        name = match.group(1)
        value = _lookup(name, substitutions, environ, defaults)
        if value is _MISSING:
            if name not in unresolved:
                unresolved.append(name)
            bind_order.append(name)
            pieces.append(style.marker(len(bind_order)))
        else:
            pieces.append(literal(str(value)))
    pieces.append(literal(template[position:]))

    return ResolvedStatement("".join(pieces), tuple(unresolved), tuple(bind_order))


def template_variables(template: str) -> "list[str]":
    """List the distinct placeholder names in ``template`` in first-occurrence order."""
    names: list[str] = []
    for match in PLACEHOLDER_PATTERN.finditer(template):
        if match.group(1) not in names:
            names.append(match.group(1))
    return names


def substitute(
    template: str,
    substitutions: "Optional[Mapping[str, Any]]" = None,
    defaults: "Optional[Mapping[str, Any]]" = None,
    *,
    environ: "Optional[Mapping[str, str]]" = None,
    **values: Any,
) -> str:
    """Fully substitute ``template``.

    Raises:
        UnboundVariableError: If any placeholder cannot be resolved.
    """
    resolved = resolve(template, {**(substitutions or {}), **values}, defaults, environ=environ)
    if resolved.unresolved_names:
        raise UnboundVariableError(resolved.unresolved_names, template)
    return resolved.sql
