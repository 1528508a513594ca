"""DDL rendering for migration operations (PostgreSQL dialect)."""

from collections.abc import Callable

from schema_migrator.catalog.models import ForeignKeyInfo, IndexInfo
from schema_migrator.dialect import (
    column_definition,
    quote_ident,
    quote_table,
    render_default,
    render_type,
)
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


def _columns(names: tuple[str, ...]) -> str:
    return ", ".join(quote_ident(name) for name in names)


def _drop_index(index: IndexInfo, schema: str | None) -> str:
    return f"DROP INDEX {quote_table(index.name, schema)}"


def _create_index(index: IndexInfo, schema: str | None) -> str:
    unique = "UNIQUE " if index.is_unique else ""
    using = "" if index.method in (None, "", "btree") else f" USING {index.method}"
    return (
        f"CREATE {unique}INDEX {quote_ident(index.name)} "
        f"ON {quote_table(index.table, schema)}{using} ({_columns(index.columns)})"
    )


def _drop_foreign_key(fk: ForeignKeyInfo, schema: str | None) -> str:
    return (
        f"ALTER TABLE {quote_table(fk.table, schema)} "
        f"DROP CONSTRAINT {quote_ident(fk.name)}"
    )


def _add_foreign_key(fk: ForeignKeyInfo, schema: str | None) -> str:
    sql = (
        f"ALTER TABLE {quote_table(fk.table, schema)} "
        f"ADD CONSTRAINT {quote_ident(fk.name)} "
        f"FOREIGN KEY ({_columns(fk.columns)}) "
        f"REFERENCES {quote_table(fk.referenced_table, schema)} "
        f"({_columns(fk.referenced_columns)})"
    )
    if fk.on_delete and fk.on_delete.upper() != "NO ACTION":
        sql += f" ON DELETE {fk.on_delete.upper()}"
    if fk.on_update and fk.on_update.upper() != "NO ACTION":
        sql += f" ON UPDATE {fk.on_update.upper()}"
    return sql


def render_create_table(op: CreateTable, schema: str | None) -> tuple[str, ...]:
    columns = sorted(op.columns, key=lambda c: c.ordinal_position)
    lines = [f"    {quote_ident(c.name)} {column_definition(c)}" for c in columns]

    primary_key = tuple(c.name for c in columns if c.is_primary_key)
    if primary_key:
        lines.append(f"    PRIMARY KEY ({_columns(primary_key)})")

    return (
        f"CREATE TABLE {quote_table(op.table.name, schema)} (\n"
        + ",\n".join(lines)
        + "\n)",
    )


def render_drop_table(op: DropTable, schema: str | None) -> tuple[str, ...]:
    return (f"DROP TABLE {quote_table(op.table.name, schema)}",)


def render_modify_table(op: ModifyTable, schema: str | None) -> tuple[str, ...]:
    return ()


def render_add_column(op: AddColumn, schema: str | None) -> tuple[str, ...]:
    column = op.column
    return (
        f"ALTER TABLE {quote_table(column.table, schema)} "
        f"ADD COLUMN {quote_ident(column.name)} {column_definition(column)}",
    )


def render_modify_column(op: ModifyColumn, schema: str | None) -> tuple[str, ...]:
    desired = op.desired
    name = quote_ident(desired.name)
    actions = []

    if "type" in op.changes:
        new_type = render_type(desired)
        actions.append(f"ALTER COLUMN {name} TYPE {new_type} USING {name}::{new_type}")

    if "nullable" in op.changes:
        verb = "DROP" if desired.is_nullable else "SET"
        actions.append(f"ALTER COLUMN {name} {verb} NOT NULL")

    if "default" in op.changes:
        default = render_default(desired.default)
        if default is None:
            actions.append(f"ALTER COLUMN {name} DROP DEFAULT")
        else:
            actions.append(f"ALTER COLUMN {name} SET DEFAULT {default}")

    if not actions:
        return ()
    return (f"ALTER TABLE {quote_table(desired.table, schema)} " + ", ".join(actions),)


def render_drop_column(op: DropColumn, schema: str | None) -> tuple[str, ...]:
    return (
        f"ALTER TABLE {quote_table(op.column.table, schema)} "
        f"DROP COLUMN {quote_ident(op.column.name)}",
    )


def render_create_index(op: CreateIndex, schema: str | None) -> tuple[str, ...]:
    statements = []
    if op.replaces is not None:
        statements.append(_drop_index(op.replaces, schema))
    statements.append(_create_index(op.index, schema))
    return tuple(statements)


def render_drop_index(op: DropIndex, schema: str | None) -> tuple[str, ...]:
    return (_drop_index(op.index, schema),)


def render_add_foreign_key(op: AddForeignKey, schema: str | None) -> tuple[str, ...]:
    statements = []
    if op.replaces is not None:
        statements.append(_drop_foreign_key(op.replaces, schema))
    statements.append(_add_foreign_key(op.foreign_key, schema))
    return tuple(statements)


def render_drop_foreign_key(op: DropForeignKey, schema: str | None) -> tuple[str, ...]:
    return (_drop_foreign_key(op.foreign_key, schema),)


_RENDERERS: dict[type, Callable[..., tuple[str, ...]]] = {
    CreateTable: render_create_table,
    DropTable: render_drop_table,
    ModifyTable: render_modify_table,
    AddColumn: render_add_column,
    ModifyColumn: render_modify_column,
    DropColumn: render_drop_column,
    CreateIndex: render_create_index,
    DropIndex: render_drop_index,
    AddForeignKey: render_add_foreign_key,
    DropForeignKey: render_drop_foreign_key,
}


def render_sql(op: MigrationOperation, schema: str | None = None) -> tuple[str, ...]:
    """Render the statements implementing one operation.

    Args:
        op: Operation to render
        schema: Schema used to qualify table names

    Raises:
        TypeError: If ``op`` is not a migration operation
    """
    renderer = _RENDERERS.get(type(op))
    if renderer is None:
        raise TypeError(f"Unhandled migration operation: {type(op).__name__}")
    return renderer(op, schema)
