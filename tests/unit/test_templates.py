"""Tests for SQL template resolution."""

import pytest

from sqlbind.exceptions import UnboundVariableError
from sqlbind.templates import ParameterStyle, resolve, substitute, template_variables


def test_unresolved_placeholder_becomes_bind_parameter() -> None:
    """A variable no tier resolves turns into a bind marker."""
    resolved = resolve("select ${col} from t where id=${id};", {"col": "name"}, environ={})

    assert resolved.sql == "select name from t where id=?;"
    assert resolved.unresolved_names == ("id",)
    assert resolved.bind_order == ("id",)


def test_substitutions_take_precedence_over_environment_and_defaults() -> None:
    environ = {"col": "from_env", "tab": "env_table"}
    defaults = {"col": "from_default", "tab": "default_table", "lim": 10}

    resolved = resolve("select ${col} from ${tab} limit ${lim}", {"col": "explicit"}, defaults, environ=environ)

    assert resolved.sql == "select explicit from env_table limit 10"
    assert resolved.unresolved_names == ()


def test_process_environment_is_consulted(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SQLBIND_TEST_SCHEMA", "analytics")

    resolved = resolve("select * from ${SQLBIND_TEST_SCHEMA}.events")

    assert resolved.sql == "select * from analytics.events"


def test_none_values_fall_through_to_next_tier() -> None:
    resolved = resolve("${a} ${b}", {"a": None, "b": None}, {"a": "default"}, environ={})

    assert resolved.sql == "default ?"
    assert resolved.unresolved_names == ("b",)


def test_repeated_names_share_one_unresolved_entry() -> None:
    """Duplicates collapse in unresolved_names but keep a marker per occurrence."""
    resolved = resolve("a=${id} or b=${x} or c=${id}", environ={})

    assert resolved.sql == "a=? or b=? or c=?"
    assert resolved.unresolved_names == ("id", "x")
    assert resolved.bind_order == ("id", "x", "id")


def test_repeated_resolved_names_get_the_same_value() -> None:
    resolved = resolve("${t}.a = ${t}.b", {"t": "users"}, environ={})

    assert resolved.sql == "users.a = users.b"


def test_numeric_styles_number_markers_left_to_right() -> None:
    numeric = resolve("a=${x} and b=${y}", environ={}, style=ParameterStyle.NUMERIC)
    dollar = resolve("a=${x} and b=${y}", environ={}, style=ParameterStyle.NUMERIC_DOLLAR)

    assert numeric.sql == "a=:1 and b=:2"
    assert dollar.sql == "a=$1 and b=$2"


def test_format_style_escapes_literal_percent_signs() -> None:
    template = "name like '%${prefix}%' and id=${id}"

    resolved = resolve(template, {"prefix": "ab"}, environ={}, style=ParameterStyle.FORMAT)

    assert resolved.sql == "name like '%%ab%%' and id=%s"


def test_hyphenated_names_are_placeholders() -> None:
    resolved = resolve("drop table if exists ${test-table};", {"test-table": "animals"}, environ={})

    assert resolved.sql == "drop table if exists animals;"


@pytest.mark.parametrize("template", ["", "select 1", "select '${'", "price > $5", "${ }", "${1abc}"])
def test_resolution_never_raises_and_leaves_non_placeholders_alone(template: str) -> None:
    resolved = resolve(template, environ={})

    assert resolved.sql == template
    assert resolved.unresolved_names == ()


def test_template_variables_in_first_occurrence_order() -> None:
    assert template_variables("${b} ${a} ${b} ${c}") == ["b", "a", "c"]


def test_substitute_requires_every_variable() -> None:
    assert substitute("select * from ${table}", table="users", environ={}) == "select * from users"

    with pytest.raises(UnboundVariableError) as exc_info:
        substitute("select * from ${table} where id=${id}", table="users", environ={})

    assert exc_info.value.names == ("id",)
