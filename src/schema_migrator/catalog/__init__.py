"""Schema introspection for schema_migrator."""

from schema_migrator.catalog.base import SchemaCatalog
from schema_migrator.catalog.baseline import load_baseline, save_baseline
from schema_migrator.catalog.models import (
    ColumnInfo,
    ConstraintInfo,
    ForeignKeyInfo,
    IndexInfo,
    SchemaSnapshot,
    TableInfo,
)
from schema_migrator.catalog.postgres import PostgresSchemaCatalog

__all__ = [
    "ColumnInfo",
    "ConstraintInfo",
    "ForeignKeyInfo",
    "IndexInfo",
    "PostgresSchemaCatalog",
    "SchemaCatalog",
    "SchemaSnapshot",
    "TableInfo",
    "load_baseline",
    "save_baseline",
]
