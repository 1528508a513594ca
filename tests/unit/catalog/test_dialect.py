"""Unit tests for PostgreSQL dialect helpers."""

import pytest

from schema_migrator.catalog import ColumnInfo
from schema_migrator.dialect import (
    column_definition,
    normalize_default,
    normalize_type,
    quote_ident,
    quote_table,
    render_default,
    type_signature,
)


def test_quote_ident():
    assert quote_ident("individuals") == '"individuals"'
    assert quote_ident('we"ird') == '"we""ird"'
    assert quote_table("events", "public") == '"public"."events"'
    assert quote_table("events") == '"events"'


@pytest.mark.parametrize("declared,expected", [
    ("VARCHAR(255)", "character varying"),
    ("int4", "integer"),
    ("timestamptz", "timestamp with time zone"),
    ("Double  Precision", "double precision"),
    ("text", "text"),
])
def test_normalize_type(declared, expected):
    assert normalize_type(declared) == expected


@pytest.mark.parametrize("default,expected", [
    (None, None),
    ("NULL::text", None),
    ("'active'::character varying", "'active'"),
    ("(0)", "0"),
    ("now()", "current_timestamp"),
    ("CURRENT_TIMESTAMP", "current_timestamp"),
    (False, "false"),
])
def test_normalize_default(default, expected):
    assert normalize_default(default) == expected


def test_render_default():
    assert render_default(True) == "true"
    assert render_default(3) == "3"
    assert render_default("'x'") == "'x'"


def test_type_signature():
    assert type_signature(ColumnInfo("t", "c", "varchar(50)")) == (
        "character varying", 50, None, None
    )
    assert type_signature(ColumnInfo("t", "c", "numeric(10,2)")) == ("numeric", None, 10, 2)
    # Precision reported for integers is not part of the declared type.
    assert type_signature(
        ColumnInfo("t", "c", "integer", numeric_precision=32, numeric_scale=0)
    ) == ("integer", None, None, None)


def test_column_definition():
    column = ColumnInfo(
        "individuals", "status", "character varying", is_nullable=False,
        character_maximum_length=20, default="'member'",
    )

    assert column_definition(column) == "character varying(20) NOT NULL DEFAULT 'member'"
