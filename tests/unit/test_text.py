"""Tests for SQL text helpers."""

from sqlbind.utils.text import censor_statement, first_line


def test_censor_copy_credentials() -> None:
    sql = (
        "copy events from 's3://bucket/key' credentials "
        "'aws_access_key_id=AKIAEXAMPLE;aws_secret_access_key=s3cr3t;token=abc123'"
    )

    censored = censor_statement(sql)

    assert "AKIAEXAMPLE" not in censored
    assert "s3cr3t" not in censored
    assert "abc123" not in censored
    assert "aws_access_key_id=XXX;aws_secret_access_key=XXX;token=XXX'" in censored


def test_censor_password() -> None:
    assert censor_statement("create user bob PASSWORD=hunter2 valid") == "create user bob password=XXX valid"


def test_censor_leaves_plain_sql_alone() -> None:
    assert censor_statement("select * from animals") == "select * from animals"


def test_first_line() -> None:
    assert first_line("\n  select *\n  from t") == "select *"
    assert first_line("") == ""
