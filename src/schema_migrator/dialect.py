"""PostgreSQL dialect helpers: identifier quoting, type and default rendering."""

import re
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from schema_migrator.catalog.models import ColumnInfo

TYPE_ALIASES = {
    "varchar": "character varying",
    "char": "character",
    "bpchar": "character",
    "int": "integer",
    "int4": "integer",
    "serial": "integer",
    "serial4": "integer",
    "int8": "bigint",
    "bigserial": "bigint",
    "serial8": "bigint",
    "int2": "smallint",
    "smallserial": "smallint",
    "tinyint": "smallint",
    "bool": "boolean",
    "float8": "double precision",
    "double": "double precision",
    "float4": "real",
    "float": "double precision",
    "decimal": "numeric",
    "timestamp": "timestamp without time zone",
    "datetime": "timestamp without time zone",
    "timestamptz": "timestamp with time zone",
    "time": "time without time zone",
    "timetz": "time with time zone",
    "mediumtext": "text",
    "longtext": "text",
    "tinytext": "text",
}

CHARACTER_TYPES = frozenset({"character varying", "character"})
EXACT_NUMERIC_TYPES = frozenset({"numeric"})

_CAST_SUFFIX = re.compile(r"::[a-z_][a-z0-9_ ]*(\[\])?(\(\d+(,\s*\d+)?\))?$", re.IGNORECASE)
_LENGTH_SUFFIX = re.compile(r"\s*\(.*\)\s*$")


def quote_ident(name: str) -> str:
    """Quote an identifier for PostgreSQL."""
    return '"' + name.replace('"', '""') + '"'


def quote_table(table: str, schema: str | None = None) -> str:
    if schema:
        return f"{quote_ident(schema)}.{quote_ident(table)}"
    return quote_ident(table)


def normalize_type(data_type: str) -> str:
    """Canonical spelling of a type name, without length or precision."""
    base = " ".join(data_type.strip().lower().split())
    base = _LENGTH_SUFFIX.sub("", base)
    return TYPE_ALIASES.get(base, base)


def render_type(column: "ColumnInfo") -> str:
    """Render the declared type of a column including length or precision."""
    declared = column.data_type.strip()
    if "(" in declared:
        return declared

    canonical = normalize_type(declared)
    if canonical in CHARACTER_TYPES and column.character_maximum_length:
        return f"{declared}({column.character_maximum_length})"

    if canonical in EXACT_NUMERIC_TYPES and column.numeric_precision:
        if column.numeric_scale is not None:
            return f"{declared}({column.numeric_precision},{column.numeric_scale})"
        return f"{declared}({column.numeric_precision})"

    return declared


def render_default(default: Any) -> str | None:
    """Render a default value as a SQL expression."""
    if default is None:
        return None
    if isinstance(default, bool):
        return "true" if default else "false"
    if isinstance(default, (int, float)):
        return str(default)
    return str(default)


def normalize_default(default: Any) -> str | None:
    """Canonical form of a default expression for comparison."""
    rendered = render_default(default)
    if rendered is None:
        return None

    value = rendered.strip()
    while value.startswith("(") and value.endswith(")"):
        value = value[1:-1].strip()
    while _CAST_SUFFIX.search(value):
        value = _CAST_SUFFIX.sub("", value).strip()

    if value.upper() == "NULL":
        return None
    if not value.startswith("'"):
        value = value.lower()
    if value == "now()":
        value = "current_timestamp"
    return value


def column_definition(column: "ColumnInfo") -> str:
    """Render a full column definition (without the column name)."""
    definition = render_type(column)

    if "identity" in column.extra.lower():
        definition += " GENERATED BY DEFAULT AS IDENTITY"

    if not column.is_nullable:
        definition += " NOT NULL"

    default = render_default(column.default)
    if default is not None and "identity" not in column.extra.lower():
        definition += f" DEFAULT {default}"

    return definition


_TYPE_PARAMS = re.compile(r"\((\d+)(?:\s*,\s*(\d+))?\)")


def type_signature(column: "ColumnInfo") -> tuple[str, int | None, int | None, int | None]:
    """Return (type, length, precision, scale) with only the parameters the type uses."""
    canonical = normalize_type(column.data_type)
    length = column.character_maximum_length
    precision = column.numeric_precision
    scale = column.numeric_scale

    match = _TYPE_PARAMS.search(column.data_type)
    if match and canonical in CHARACTER_TYPES:
        length = int(match.group(1))
    elif match and canonical in EXACT_NUMERIC_TYPES:
        precision = int(match.group(1))
        scale = int(match.group(2)) if match.group(2) else 0

    if canonical not in CHARACTER_TYPES:
        length = None
    if canonical not in EXACT_NUMERIC_TYPES:
        precision = scale = None
    return canonical, length, precision, scale
