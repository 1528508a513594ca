"""Migration operations.

Every structural change the planner can emit is one of the operation classes
below. ``MigrationOperation`` is the closed union of them; code that
dispatches over operations does so through tables keyed by operation class
and raises ``TypeError`` for anything outside the union.
"""

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, ClassVar, Union, get_args

from schema_migrator.catalog.models import (
    ColumnInfo,
    ForeignKeyInfo,
    IndexInfo,
    TableInfo,
)


class MigrationType(str, Enum):
    """Step type tags."""
    CREATE_TABLES = "create_tables"
    ADD_COLUMNS = "add_columns"
    MODIFY_COLUMNS = "modify_columns"
    CREATE_INDEXES = "create_indexes"
    ADD_FOREIGN_KEYS = "add_foreign_keys"
    DROP_FOREIGN_KEYS = "drop_foreign_keys"
    DROP_INDEXES = "drop_indexes"
    DROP_COLUMNS = "drop_columns"
    DROP_TABLES = "drop_tables"

    @property
    def is_destructive(self) -> bool:
        return self in DESTRUCTIVE_TYPES


# Forward plans emit steps in this order; drops only when explicitly included.
EXECUTION_ORDER = (
    MigrationType.CREATE_TABLES,
    MigrationType.ADD_COLUMNS,
    MigrationType.MODIFY_COLUMNS,
    MigrationType.CREATE_INDEXES,
    MigrationType.ADD_FOREIGN_KEYS,
    MigrationType.DROP_FOREIGN_KEYS,
    MigrationType.DROP_INDEXES,
    MigrationType.DROP_COLUMNS,
    MigrationType.DROP_TABLES,
)

DESTRUCTIVE_TYPES = frozenset({
    MigrationType.DROP_FOREIGN_KEYS,
    MigrationType.DROP_INDEXES,
    MigrationType.DROP_COLUMNS,
    MigrationType.DROP_TABLES,
})

# Tag of the rollback step generated for each forward step type.
ROLLBACK_TYPES = {
    MigrationType.CREATE_TABLES: MigrationType.DROP_TABLES,
    MigrationType.ADD_COLUMNS: MigrationType.DROP_COLUMNS,
    MigrationType.MODIFY_COLUMNS: MigrationType.MODIFY_COLUMNS,
    MigrationType.CREATE_INDEXES: MigrationType.DROP_INDEXES,
    MigrationType.ADD_FOREIGN_KEYS: MigrationType.DROP_FOREIGN_KEYS,
    MigrationType.DROP_FOREIGN_KEYS: MigrationType.ADD_FOREIGN_KEYS,
    MigrationType.DROP_INDEXES: MigrationType.CREATE_INDEXES,
}

# Heuristic cost per operation in milliseconds. Not a measurement.
OPERATION_COST_MS = {
    "create_table": 1000,
    "add_column": 500,
    "modify_column": 2000,
    "create_index": 3000,
    "add_foreign_key": 1000,
    "drop_table": 100,
    "drop_column": 1000,
    "drop_index": 100,
    "drop_foreign_key": 100,
    "modify_table": 0,
}


@dataclass(frozen=True)
class CreateTable:
    """Create a table with its columns and primary key."""
    table: TableInfo
    columns: tuple[ColumnInfo, ...]

    kind: ClassVar[str] = "create_table"
    migration_type: ClassVar[MigrationType | None] = MigrationType.CREATE_TABLES

    @property
    def affected_entities(self) -> tuple[str, ...]:
        return (self.table.name,)


@dataclass(frozen=True)
class DropTable:
    table: TableInfo
    row_count: int | None = None

    kind: ClassVar[str] = "drop_table"
    migration_type: ClassVar[MigrationType | None] = MigrationType.DROP_TABLES

    @property
    def affected_entities(self) -> tuple[str, ...]:
        return (self.table.name,)


@dataclass(frozen=True)
class ModifyTable:
    """Table-level attribute drift (access method, collation, comment).

    Reported in the plan summary only; no step is generated for it.
    """
    current: TableInfo
    desired: TableInfo
    changes: tuple[str, ...]

    kind: ClassVar[str] = "modify_table"
    migration_type: ClassVar[MigrationType | None] = None

    @property
    def affected_entities(self) -> tuple[str, ...]:
        return (self.current.name,)


@dataclass(frozen=True)
class AddColumn:
    column: ColumnInfo

    kind: ClassVar[str] = "add_column"
    migration_type: ClassVar[MigrationType | None] = MigrationType.ADD_COLUMNS

    @property
    def affected_entities(self) -> tuple[str, ...]:
        return (self.column.qualified_name,)


@dataclass(frozen=True)
class ModifyColumn:
    """Change a column from ``current`` to ``desired``."""
    current: ColumnInfo
    desired: ColumnInfo
    changes: tuple[str, ...]

    kind: ClassVar[str] = "modify_column"
    migration_type: ClassVar[MigrationType | None] = MigrationType.MODIFY_COLUMNS

    @property
    def affected_entities(self) -> tuple[str, ...]:
        return (self.current.qualified_name,)


@dataclass(frozen=True)
class DropColumn:
    column: ColumnInfo
    row_count: int | None = None

    kind: ClassVar[str] = "drop_column"
    migration_type: ClassVar[MigrationType | None] = MigrationType.DROP_COLUMNS

    @property
    def affected_entities(self) -> tuple[str, ...]:
        return (self.column.qualified_name,)


@dataclass(frozen=True)
class CreateIndex:
    """Create an index, replacing an existing definition of the same name if given."""
    index: IndexInfo
    replaces: IndexInfo | None = None

    kind: ClassVar[str] = "create_index"
    migration_type: ClassVar[MigrationType | None] = MigrationType.CREATE_INDEXES

    @property
    def affected_entities(self) -> tuple[str, ...]:
        return (self.index.qualified_name,)


@dataclass(frozen=True)
class DropIndex:
    index: IndexInfo

    kind: ClassVar[str] = "drop_index"
    migration_type: ClassVar[MigrationType | None] = MigrationType.DROP_INDEXES

    @property
    def affected_entities(self) -> tuple[str, ...]:
        return (self.index.qualified_name,)


@dataclass(frozen=True)
class AddForeignKey:
    foreign_key: ForeignKeyInfo
    replaces: ForeignKeyInfo | None = None

    kind: ClassVar[str] = "add_foreign_key"
    migration_type: ClassVar[MigrationType | None] = MigrationType.ADD_FOREIGN_KEYS

    @property
    def affected_entities(self) -> tuple[str, ...]:
        return (self.foreign_key.qualified_name,)


@dataclass(frozen=True)
class DropForeignKey:
    foreign_key: ForeignKeyInfo

    kind: ClassVar[str] = "drop_foreign_key"
    migration_type: ClassVar[MigrationType | None] = MigrationType.DROP_FOREIGN_KEYS

    @property
    def affected_entities(self) -> tuple[str, ...]:
        return (self.foreign_key.qualified_name,)


MigrationOperation = Union[
    CreateTable,
    DropTable,
    ModifyTable,
    AddColumn,
    ModifyColumn,
    DropColumn,
    CreateIndex,
    DropIndex,
    AddForeignKey,
    DropForeignKey,
]

OPERATION_TYPES: tuple[type, ...] = get_args(MigrationOperation)


def _inverse_create_index(op: CreateIndex) -> MigrationOperation:
    if op.replaces is not None:
        return CreateIndex(index=op.replaces, replaces=op.index)
    return DropIndex(index=op.index)


def _inverse_add_foreign_key(op: AddForeignKey) -> MigrationOperation:
    if op.replaces is not None:
        return AddForeignKey(foreign_key=op.replaces, replaces=op.foreign_key)
    return DropForeignKey(foreign_key=op.foreign_key)


# None marks an operation that cannot be undone.
_INVERSES = {
    CreateTable: lambda op: DropTable(table=op.table, row_count=0),
    DropTable: lambda op: None,
    ModifyTable: lambda op: None,
    AddColumn: lambda op: DropColumn(column=op.column, row_count=0),
    ModifyColumn: lambda op: ModifyColumn(
        current=op.desired, desired=op.current, changes=op.changes
    ),
    DropColumn: lambda op: None,
    CreateIndex: _inverse_create_index,
    DropIndex: lambda op: CreateIndex(index=op.index),
    AddForeignKey: _inverse_add_foreign_key,
    DropForeignKey: lambda op: AddForeignKey(foreign_key=op.foreign_key),
}


def _lookup(table: dict[type, Any], op: Any) -> Any:
    try:
        return table[type(op)]
    except KeyError:
        raise TypeError(f"Unhandled migration operation: {type(op).__name__}") from None


def invert(op: MigrationOperation) -> MigrationOperation | None:
    """Return the operation undoing ``op``, or None if it is irreversible."""
    return _lookup(_INVERSES, op)(op)


def is_reversible(op: MigrationOperation) -> bool:
    return invert(op) is not None


def operation_cost(op: MigrationOperation) -> int:
    _lookup(_INVERSES, op)
    return OPERATION_COST_MS[op.kind]


def operation_to_dict(op: MigrationOperation) -> dict[str, Any]:
    _lookup(_INVERSES, op)
    return {
        "operation": op.kind,
        "entities": list(op.affected_entities),
        **asdict(op),
    }
