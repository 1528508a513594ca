"""Project migration operations onto a schema snapshot without touching a database."""

from collections.abc import Iterable
from dataclasses import replace

from schema_migrator.catalog.models import SchemaSnapshot
from schema_migrator.planner.operations import (
    AddColumn,
    AddForeignKey,
    CreateIndex,
    CreateTable,
    DropColumn,
    DropForeignKey,
    DropIndex,
    DropTable,
    MigrationOperation,
    ModifyColumn,
    ModifyTable,
)


def _create_table(snapshot: SchemaSnapshot, op: CreateTable) -> SchemaSnapshot:
    return replace(
        snapshot,
        tables=snapshot.tables + (op.table,),
        columns=snapshot.columns + tuple(op.columns),
    )


def _drop_table(snapshot: SchemaSnapshot, op: DropTable) -> SchemaSnapshot:
    return snapshot.without_tables({op.table.name})


def _modify_table(snapshot: SchemaSnapshot, op: ModifyTable) -> SchemaSnapshot:
    return replace(
        snapshot,
        tables=tuple(
            op.desired if t.name == op.current.name else t for t in snapshot.tables
        ),
    )


def _add_column(snapshot: SchemaSnapshot, op: AddColumn) -> SchemaSnapshot:
    return replace(snapshot, columns=snapshot.columns + (op.column,))


def _modify_column(snapshot: SchemaSnapshot, op: ModifyColumn) -> SchemaSnapshot:
    key = (op.current.table, op.current.name)
    return replace(
        snapshot,
        columns=tuple(
            replace(op.desired, ordinal_position=c.ordinal_position)
            if (c.table, c.name) == key else c
            for c in snapshot.columns
        ),
    )


def _drop_column(snapshot: SchemaSnapshot, op: DropColumn) -> SchemaSnapshot:
    # Indexes and foreign keys over a dropped column go with it.
    table, name = op.column.table, op.column.name
    return replace(
        snapshot,
        columns=tuple(
            c for c in snapshot.columns if (c.table, c.name) != (table, name)
        ),
        indexes=tuple(
            i for i in snapshot.indexes if not (i.table == table and name in i.columns)
        ),
        foreign_keys=tuple(
            fk for fk in snapshot.foreign_keys
            if not (fk.table == table and name in fk.columns)
        ),
    )


def _without_index(snapshot: SchemaSnapshot, table: str, name: str) -> SchemaSnapshot:
    return replace(
        snapshot,
        indexes=tuple(
            i for i in snapshot.indexes if (i.table, i.name) != (table, name)
        ),
    )


def _create_index(snapshot: SchemaSnapshot, op: CreateIndex) -> SchemaSnapshot:
    if op.replaces is not None:
        snapshot = _without_index(snapshot, op.replaces.table, op.replaces.name)
    return replace(snapshot, indexes=snapshot.indexes + (op.index,))


def _drop_index(snapshot: SchemaSnapshot, op: DropIndex) -> SchemaSnapshot:
    return _without_index(snapshot, op.index.table, op.index.name)


def _without_foreign_key(snapshot: SchemaSnapshot, table: str, name: str) -> SchemaSnapshot:
    return replace(
        snapshot,
        foreign_keys=tuple(
            fk for fk in snapshot.foreign_keys if (fk.table, fk.name) != (table, name)
        ),
    )


def _add_foreign_key(snapshot: SchemaSnapshot, op: AddForeignKey) -> SchemaSnapshot:
    if op.replaces is not None:
        snapshot = _without_foreign_key(snapshot, op.replaces.table, op.replaces.name)
    return replace(snapshot, foreign_keys=snapshot.foreign_keys + (op.foreign_key,))


def _drop_foreign_key(snapshot: SchemaSnapshot, op: DropForeignKey) -> SchemaSnapshot:
    return _without_foreign_key(snapshot, op.foreign_key.table, op.foreign_key.name)


_APPLIERS = {
    CreateTable: _create_table,
    DropTable: _drop_table,
    ModifyTable: _modify_table,
    AddColumn: _add_column,
    ModifyColumn: _modify_column,
    DropColumn: _drop_column,
    CreateIndex: _create_index,
    DropIndex: _drop_index,
    AddForeignKey: _add_foreign_key,
    DropForeignKey: _drop_foreign_key,
}


def apply_operation(snapshot: SchemaSnapshot, op: MigrationOperation) -> SchemaSnapshot:
    applier = _APPLIERS.get(type(op))
    if applier is None:
        raise TypeError(f"Unhandled migration operation: {type(op).__name__}")
    return applier(snapshot, op)


def apply_operations(
    snapshot: SchemaSnapshot,
    operations: Iterable[MigrationOperation],
) -> SchemaSnapshot:
    """Return the snapshot the database would have after running ``operations`` in order."""
    for op in operations:
        snapshot = apply_operation(snapshot, op)
    return snapshot
