"""Data models describing the structure of a database at one instant."""

import hashlib
import json
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class TableInfo:
    """Information about a database table."""
    name: str
    engine: str | None = None
    collation: str | None = None
    row_count: int | None = None
    last_analyzed: datetime | None = None
    last_vacuumed: datetime | None = None
    comment: str | None = None


@dataclass(frozen=True)
class ColumnInfo:
    """Information about a table column."""
    table: str
    name: str
    data_type: str
    is_nullable: bool = True
    ordinal_position: int = 0
    character_maximum_length: int | None = None
    numeric_precision: int | None = None
    numeric_scale: int | None = None
    default: str | None = None
    key: str = ""
    extra: str = ""

    @property
    def is_primary_key(self) -> bool:
        return self.key == "PRI"

    @property
    def qualified_name(self) -> str:
        return f"{self.table}.{self.name}"


@dataclass(frozen=True)
class IndexInfo:
    """Information about a database index."""
    table: str
    name: str
    columns: tuple[str, ...]
    is_unique: bool = False
    is_primary: bool = False
    method: str = "btree"
    is_constraint: bool = False

    @property
    def qualified_name(self) -> str:
        return f"{self.table}.{self.name}"


@dataclass(frozen=True)
class ForeignKeyInfo:
    """Information about a foreign key constraint."""
    name: str
    table: str
    columns: tuple[str, ...]
    referenced_table: str
    referenced_columns: tuple[str, ...]
    on_delete: str = "NO ACTION"
    on_update: str = "NO ACTION"

    @property
    def column(self) -> str:
        return self.columns[0]

    @property
    def referenced_column(self) -> str:
        return self.referenced_columns[0]

    @property
    def qualified_name(self) -> str:
        return f"{self.table}.{self.name}"


@dataclass(frozen=True)
class ConstraintInfo:
    """Information about a table constraint (PRIMARY KEY, UNIQUE, CHECK, ...)."""
    name: str
    table: str
    kind: str


# Original camelCase keys accepted when loading desired schemas.
_KEY_ALIASES = {
    "tableName": "table",
    "isNullable": "is_nullable",
    "dataType": "data_type",
    "maxLength": "character_maximum_length",
    "numericPrecision": "numeric_precision",
    "numericScale": "numeric_scale",
    "defaultValue": "default",
    "columnKey": "key",
    "position": "ordinal_position",
    "isUnique": "is_unique",
    "isPrimary": "is_primary",
    "referencedTableName": "referenced_table",
    "onDelete": "on_delete",
    "onUpdate": "on_update",
    "rowCount": "row_count",
    "tableRows": "row_count",
    "type": "kind",
}


def _normalize_keys(data: dict[str, Any]) -> dict[str, Any]:
    return {_KEY_ALIASES.get(key, key): value for key, value in data.items()}


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().upper() in ("YES", "TRUE", "1")
    return bool(value)


def _as_datetime(value: Any) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


def _as_tuple(value: Any) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    return tuple(value)


def _table_from_dict(data: dict[str, Any]) -> TableInfo:
    data = _normalize_keys(data)
    return TableInfo(
        name=data["name"],
        engine=data.get("engine"),
        collation=data.get("collation"),
        row_count=data.get("row_count"),
        last_analyzed=_as_datetime(data.get("last_analyzed")),
        last_vacuumed=_as_datetime(data.get("last_vacuumed")),
        comment=data.get("comment"),
    )


def _column_from_dict(data: dict[str, Any]) -> ColumnInfo:
    data = _normalize_keys(data)
    return ColumnInfo(
        table=data["table"],
        name=data["name"],
        data_type=data["data_type"],
        is_nullable=_as_bool(data.get("is_nullable", True)),
        ordinal_position=int(data.get("ordinal_position") or 0),
        character_maximum_length=data.get("character_maximum_length"),
        numeric_precision=data.get("numeric_precision"),
        numeric_scale=data.get("numeric_scale"),
        default=data.get("default"),
        key=data.get("key") or "",
        extra=data.get("extra") or "",
    )


def _index_from_dict(data: dict[str, Any]) -> IndexInfo:
    data = _normalize_keys(data)
    columns = data.get("columns")
    if columns is None and "columnName" in data:
        columns = [data["columnName"]]
    if "nonUnique" in data and "is_unique" not in data:
        data["is_unique"] = not _as_bool(data["nonUnique"])
    return IndexInfo(
        table=data["table"],
        name=data["name"],
        columns=_as_tuple(columns),
        is_unique=_as_bool(data.get("is_unique", False)),
        is_primary=_as_bool(data.get("is_primary", False)),
        method=data.get("method") or "btree",
        is_constraint=_as_bool(data.get("is_constraint", False)),
    )


def _foreign_key_from_dict(data: dict[str, Any]) -> ForeignKeyInfo:
    data = _normalize_keys(data)
    columns = data.get("columns") or data.get("columnName") or data.get("column")
    referenced = (
        data.get("referenced_columns")
        or data.get("referencedColumnName")
        or data.get("referenced_column")
    )
    return ForeignKeyInfo(
        name=data["name"],
        table=data["table"],
        columns=_as_tuple(columns),
        referenced_table=data["referenced_table"],
        referenced_columns=_as_tuple(referenced),
        on_delete=data.get("on_delete") or "NO ACTION",
        on_update=data.get("on_update") or "NO ACTION",
    )


def _merge_rows(entities: list[Any], columns_attr: str, *others: str) -> tuple[Any, ...]:
    """Merge one-row-per-column entries (as information_schema reports them)."""
    merged: dict[tuple[str, str], Any] = {}
    for entity in entities:
        key = (entity.table, entity.name)
        if key not in merged:
            merged[key] = entity
            continue
        existing = merged[key]
        changes = {columns_attr: getattr(existing, columns_attr) + getattr(entity, columns_attr)}
        for attr in others:
            changes[attr] = getattr(existing, attr) + getattr(entity, attr)
        merged[key] = replace(existing, **changes)
    return tuple(merged.values())


def _constraint_from_dict(data: dict[str, Any]) -> ConstraintInfo:
    data = _normalize_keys(data)
    return ConstraintInfo(name=data["name"], table=data["table"], kind=data["kind"])


def _jsonable(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, tuple):
        return list(value)
    return value


def _entity_to_dict(entity: Any) -> dict[str, Any]:
    return {key: _jsonable(value) for key, value in entity.__dict__.items()}


@dataclass(frozen=True)
class SchemaSnapshot:
    """Point-in-time description of a database's structure.

    Immutable once captured. Lookups are computed on demand.
    """
    tables: tuple[TableInfo, ...] = ()
    columns: tuple[ColumnInfo, ...] = ()
    indexes: tuple[IndexInfo, ...] = ()
    foreign_keys: tuple[ForeignKeyInfo, ...] = ()
    constraints: tuple[ConstraintInfo, ...] = ()
    captured_at: datetime = field(default_factory=datetime.now, compare=False)

    @property
    def table_names(self) -> list[str]:
        return [table.name for table in self.tables]

    def get_table(self, name: str) -> TableInfo | None:
        for table in self.tables:
            if table.name == name:
                return table
        return None

    def has_table(self, name: str) -> bool:
        return self.get_table(name) is not None

    def columns_for(self, table: str) -> list[ColumnInfo]:
        columns = [column for column in self.columns if column.table == table]
        return sorted(columns, key=lambda c: c.ordinal_position)

    def get_column(self, table: str, name: str) -> ColumnInfo | None:
        for column in self.columns:
            if column.table == table and column.name == name:
                return column
        return None

    def indexes_for(self, table: str) -> list[IndexInfo]:
        return [index for index in self.indexes if index.table == table]

    def foreign_keys_for(self, table: str) -> list[ForeignKeyInfo]:
        return [fk for fk in self.foreign_keys if fk.table == table]

    def row_count(self, table: str) -> int | None:
        info = self.get_table(table)
        return info.row_count if info else None

    def without_tables(self, names: set[str] | frozenset[str]) -> "SchemaSnapshot":
        """Return a copy with the given tables and everything attached to them removed."""
        return SchemaSnapshot(
            tables=tuple(t for t in self.tables if t.name not in names),
            columns=tuple(c for c in self.columns if c.table not in names),
            indexes=tuple(i for i in self.indexes if i.table not in names),
            foreign_keys=tuple(fk for fk in self.foreign_keys if fk.table not in names),
            constraints=tuple(c for c in self.constraints if c.table not in names),
            captured_at=self.captured_at,
        )

    def structure(self) -> dict[str, Any]:
        """Structural description, ignoring row counts and timestamps."""
        return {
            "tables": sorted(
                (t.name, t.engine or "", t.collation or "") for t in self.tables
            ),
            "columns": sorted(
                (c.table, c.name, c.data_type, c.is_nullable,
                 c.character_maximum_length, c.numeric_precision, c.numeric_scale,
                 c.default, c.extra)
                for c in self.columns
            ),
            "indexes": sorted(
                (i.table, i.name, i.columns, i.is_unique, i.is_primary, i.method)
                for i in self.indexes
            ),
            "foreign_keys": sorted(
                (fk.table, fk.name, fk.columns, fk.referenced_table, fk.referenced_columns,
                 fk.on_delete.upper(), fk.on_update.upper())
                for fk in self.foreign_keys
            ),
        }

    def fingerprint(self) -> str:
        """Stable hash of the structure, used to detect drift between reads."""
        payload = json.dumps(self.structure(), sort_keys=True, default=str)
        return hashlib.sha256(payload.encode()).hexdigest()

    def to_dict(self) -> dict[str, Any]:
        return {
            "tables": [_entity_to_dict(t) for t in self.tables],
            "columns": [_entity_to_dict(c) for c in self.columns],
            "indexes": [_entity_to_dict(i) for i in self.indexes],
            "foreign_keys": [_entity_to_dict(fk) for fk in self.foreign_keys],
            "constraints": [_entity_to_dict(c) for c in self.constraints],
            "captured_at": self.captured_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SchemaSnapshot":
        """Build a snapshot from a dictionary (snake_case or camelCase keys)."""
        captured_at = _as_datetime(data.get("captured_at") or data.get("capturedAt"))
        return cls(
            tables=tuple(_table_from_dict(t) for t in data.get("tables", [])),
            columns=tuple(_column_from_dict(c) for c in data.get("columns", [])),
            indexes=_merge_rows(
                [_index_from_dict(i) for i in data.get("indexes", [])], "columns"
            ),
            foreign_keys=_merge_rows(
                [
                    _foreign_key_from_dict(fk)
                    for fk in data.get("foreign_keys", data.get("foreignKeys", []))
                ],
                "columns",
                "referenced_columns",
            ),
            constraints=tuple(_constraint_from_dict(c) for c in data.get("constraints", [])),
            captured_at=captured_at or datetime.now(),
        )
