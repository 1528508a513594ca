"""Unit tests for DDL rendering."""

import pytest

from schema_migrator.catalog import ColumnInfo, ForeignKeyInfo, IndexInfo, TableInfo
from schema_migrator.planner import (
    AddColumn,
    AddForeignKey,
    CreateIndex,
    CreateTable,
    DropColumn,
    DropForeignKey,
    DropIndex,
    DropTable,
    ModifyColumn,
    ModifyTable,
    render_sql,
)


@pytest.fixture
def fk():
    return ForeignKeyInfo(
        "fk_attendance_individual", "attendance", ("individual_id",),
        "individuals", ("id",), on_delete="cascade",
    )


def test_create_table_with_primary_key(small_groups):
    op = CreateTable(table=small_groups.tables[0], columns=small_groups.columns)

    (sql,) = render_sql(op, "public")

    assert sql == (
        'CREATE TABLE "public"."small_groups" (\n'
        '    "id" integer NOT NULL,\n'
        '    "name" character varying(120) NOT NULL,\n'
        '    PRIMARY KEY ("id")\n'
        ")"
    )


def test_create_table_identity_column():
    column = ColumnInfo(
        "households", "id", "bigint", is_nullable=False, ordinal_position=1,
        key="PRI", extra="identity", default="nextval('x')",
    )

    (sql,) = render_sql(CreateTable(table=TableInfo("households"), columns=(column,)))

    assert '"id" bigint GENERATED BY DEFAULT AS IDENTITY NOT NULL' in sql
    assert "DEFAULT nextval" not in sql
    assert sql.startswith('CREATE TABLE "households" (')


def test_drop_table():
    assert render_sql(DropTable(table=TableInfo("events")), "public") == (
        'DROP TABLE "public"."events"',
    )


def test_add_column(visitor_column):
    assert render_sql(AddColumn(column=visitor_column), "public") == (
        'ALTER TABLE "public"."individuals" ADD COLUMN "is_visitor" boolean DEFAULT false',
    )


def test_add_numeric_column():
    column = ColumnInfo(
        "events", "offering", "numeric", is_nullable=False,
        numeric_precision=10, numeric_scale=2, default=0,
    )

    assert render_sql(AddColumn(column=column)) == (
        'ALTER TABLE "events" ADD COLUMN "offering" numeric(10,2) NOT NULL DEFAULT 0',
    )


def test_modify_column_combines_actions():
    current = ColumnInfo(
        "individuals", "first_name", "character varying",
        is_nullable=False, character_maximum_length=100,
    )
    desired = ColumnInfo(
        "individuals", "first_name", "character varying",
        is_nullable=True, character_maximum_length=150, default="'unknown'",
    )
    op = ModifyColumn(current=current, desired=desired, changes=("type", "nullable", "default"))

    (sql,) = render_sql(op, "public")

    assert sql == (
        'ALTER TABLE "public"."individuals" '
        'ALTER COLUMN "first_name" TYPE character varying(150) '
        'USING "first_name"::character varying(150), '
        'ALTER COLUMN "first_name" DROP NOT NULL, '
        "ALTER COLUMN \"first_name\" SET DEFAULT 'unknown'"
    )


def test_modify_column_drops_default():
    current = ColumnInfo("events", "name", "text", default="'Sunday service'")
    desired = ColumnInfo("events", "name", "text")

    assert render_sql(ModifyColumn(current=current, desired=desired, changes=("default",))) == (
        'ALTER TABLE "events" ALTER COLUMN "name" DROP DEFAULT',
    )


def test_drop_column():
    column = ColumnInfo("individuals", "legacy_notes", "text")

    assert render_sql(DropColumn(column=column), "public") == (
        'ALTER TABLE "public"."individuals" DROP COLUMN "legacy_notes"',
    )


def test_create_and_drop_index(visitor_index):
    assert render_sql(CreateIndex(index=visitor_index), "public") == (
        'CREATE INDEX "idx_is_visitor" ON "public"."individuals" ("is_visitor")',
    )
    assert render_sql(DropIndex(index=visitor_index), "public") == (
        'DROP INDEX "public"."idx_is_visitor"',
    )


def test_unique_index_with_method():
    index = IndexInfo("individuals", "idx_names", ("last_name", "first_name"),
                      is_unique=True, method="hash")

    assert render_sql(CreateIndex(index=index)) == (
        'CREATE UNIQUE INDEX "idx_names" ON "individuals" USING hash '
        '("last_name", "first_name")',
    )


def test_add_foreign_key(fk):
    assert render_sql(AddForeignKey(foreign_key=fk), "public") == (
        'ALTER TABLE "public"."attendance" ADD CONSTRAINT "fk_attendance_individual" '
        'FOREIGN KEY ("individual_id") REFERENCES "public"."individuals" ("id") '
        "ON DELETE CASCADE",
    )


def test_replace_foreign_key(fk):
    previous = ForeignKeyInfo(
        "fk_attendance_individual", "attendance", ("individual_id",), "individuals", ("id",)
    )

    statements = render_sql(AddForeignKey(foreign_key=fk, replaces=previous))

    assert statements[0] == (
        'ALTER TABLE "attendance" DROP CONSTRAINT "fk_attendance_individual"'
    )
    assert statements[1].endswith("ON DELETE CASCADE")


def test_drop_foreign_key(fk):
    assert render_sql(DropForeignKey(foreign_key=fk)) == (
        'ALTER TABLE "attendance" DROP CONSTRAINT "fk_attendance_individual"',
    )


def test_modify_table_renders_nothing():
    op = ModifyTable(
        current=TableInfo("events", engine="heap"),
        desired=TableInfo("events", engine="columnar"),
        changes=("engine",),
    )

    assert render_sql(op) == ()


def test_unknown_operation():
    with pytest.raises(TypeError, match="Unhandled migration operation: str"):
        render_sql("DROP TABLE events")
