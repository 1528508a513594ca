"""Schema catalog backed by PostgreSQL's information_schema and pg_catalog."""

import logging
from typing import Any

from schema_migrator.catalog.base import SchemaCatalog
from schema_migrator.catalog.models import (
    ColumnInfo,
    ConstraintInfo,
    ForeignKeyInfo,
    IndexInfo,
    SchemaSnapshot,
    TableInfo,
)
from schema_migrator.connections.postgres import PostgresConnection
from schema_migrator.dialect import column_definition, quote_ident, quote_table
from schema_migrator.exceptions import (
    CatalogUnavailable,
    ConnectionError,
    OperationTimeoutError,
    RetryExhaustedError,
    SchemaError,
)

logger = logging.getLogger(__name__)

_REFERENTIAL_ACTIONS = {
    "a": "NO ACTION",
    "r": "RESTRICT",
    "c": "CASCADE",
    "n": "SET NULL",
    "d": "SET DEFAULT",
}

_CONSTRAINT_KINDS = {
    "p": "PRIMARY KEY",
    "u": "UNIQUE",
    "f": "FOREIGN KEY",
    "c": "CHECK",
    "x": "EXCLUDE",
}


class PostgresSchemaCatalog(SchemaCatalog):
    """Introspects one PostgreSQL schema."""

    def __init__(
        self,
        connection: PostgresConnection,
        schema_name: str = "public",
        system_tables: frozenset[str] | set[str] = frozenset(),
    ):
        """Initialize the catalog.

        Args:
            connection: PostgreSQL connection instance
            schema_name: Name of the schema to inspect
            system_tables: Tables owned by the migrator, never diffed
        """
        super().__init__(system_tables)
        self.connection = connection
        self.schema_name = schema_name

    async def _fetch_all(self, query: str, params: tuple) -> list[dict[str, Any]]:
        """Run a metadata query, translating connectivity failures."""
        try:
            return await self.connection.fetch_all(query, params)
        except (ConnectionError, RetryExhaustedError, OperationTimeoutError) as e:
            logger.error("Catalog query failed: %s", e)
            raise CatalogUnavailable(f"Cannot read database catalog: {e}") from e

    async def _fetch_one(self, query: str, params: tuple) -> dict[str, Any] | None:
        rows = await self._fetch_all(query, params)
        return rows[0] if rows else None

    async def get_full_schema(self) -> SchemaSnapshot:
        """Capture a snapshot of the whole schema."""
        snapshot = await self._capture(None)
        logger.info(
            "Captured schema %s: %d tables, %d columns, %d indexes, %d foreign keys",
            self.schema_name, len(snapshot.tables), len(snapshot.columns),
            len(snapshot.indexes), len(snapshot.foreign_keys)
        )
        return snapshot

    async def get_table_schema(self, table: str) -> SchemaSnapshot | None:
        """Capture a snapshot restricted to one table."""
        snapshot = await self._capture(table)
        if not snapshot.tables:
            return None
        return snapshot

    async def _capture(self, table: str | None) -> SchemaSnapshot:
        snapshot = SchemaSnapshot(
            tables=tuple(await self._get_tables(table)),
            columns=tuple(await self._get_columns(table)),
            indexes=tuple(await self._get_indexes(table)),
            foreign_keys=tuple(await self._get_foreign_keys(table)),
            constraints=tuple(await self._get_constraints(table)),
        )
        hidden = {name for name in snapshot.table_names if self.is_system_table(name)}
        return snapshot.without_tables(hidden) if hidden else snapshot

    def _table_filter(self, column: str, table: str | None) -> tuple[str, tuple]:
        if table is None:
            return "", (self.schema_name,)
        return f" AND {column} = %s", (self.schema_name, table)

    async def _get_tables(self, table: str | None) -> list[TableInfo]:
        """Get tables with access method, row estimate and maintenance timestamps."""
        condition, params = self._table_filter("c.relname", table)
        query = f"""
        SELECT
            c.relname AS name,
            am.amname AS engine,
            (SELECT datcollate FROM pg_database
             WHERE datname = current_database()) AS collation,
            st.n_live_tup AS row_count,
            GREATEST(st.last_analyze, st.last_autoanalyze) AS last_analyzed,
            GREATEST(st.last_vacuum, st.last_autovacuum) AS last_vacuumed,
            obj_description(c.oid, 'pg_class') AS comment
        FROM pg_class c
        JOIN pg_namespace n ON n.oid = c.relnamespace
        LEFT JOIN pg_am am ON am.oid = c.relam
        LEFT JOIN pg_stat_user_tables st ON st.relid = c.oid
        WHERE n.nspname = %s
        AND c.relkind IN ('r', 'p'){condition}
        ORDER BY c.relname
        """
        rows = await self._fetch_all(query, params)
        return [
            TableInfo(
                name=row["name"],
                engine=row["engine"],
                collation=row["collation"],
                row_count=row["row_count"],
                last_analyzed=row["last_analyzed"],
                last_vacuumed=row["last_vacuumed"],
                comment=row["comment"],
            )
            for row in rows
        ]

    async def _get_columns(self, table: str | None) -> list[ColumnInfo]:
        """Get column information including the key role of each column."""
        condition, params = self._table_filter("c.table_name", table)
        query = f"""
        SELECT
            c.table_name,
            c.column_name,
            c.ordinal_position,
            c.is_nullable,
            c.data_type,
            c.udt_name,
            c.character_maximum_length,
            c.numeric_precision,
            c.numeric_scale,
            c.column_default,
            c.is_identity,
            c.is_generated,
            COALESCE((
                SELECT CASE
                    WHEN bool_or(tc.constraint_type = 'PRIMARY KEY') THEN 'PRI'
                    WHEN bool_or(tc.constraint_type = 'UNIQUE') THEN 'UNI'
                    WHEN bool_or(tc.constraint_type = 'FOREIGN KEY') THEN 'MUL'
                END
                FROM information_schema.key_column_usage ku
                JOIN information_schema.table_constraints tc
                    ON tc.constraint_name = ku.constraint_name
                    AND tc.table_schema = ku.table_schema
                    AND tc.table_name = ku.table_name
                WHERE ku.table_schema = c.table_schema
                AND ku.table_name = c.table_name
                AND ku.column_name = c.column_name
            ), '') AS column_key
        FROM information_schema.columns c
        WHERE c.table_schema = %s{condition}
        ORDER BY c.table_name, c.ordinal_position
        """
        rows = await self._fetch_all(query, params)
        return [self._column_from_row(row) for row in rows]

    @staticmethod
    def _column_from_row(row: dict[str, Any]) -> ColumnInfo:
        data_type = row["data_type"]
        if data_type == "USER-DEFINED":
            data_type = row["udt_name"]
        elif data_type == "ARRAY":
            data_type = row["udt_name"].lstrip("_") + "[]"

        extras = []
        if row.get("is_identity") == "YES":
            extras.append("identity")
        if row.get("is_generated") == "ALWAYS":
            extras.append("generated")

        return ColumnInfo(
            table=row["table_name"],
            name=row["column_name"],
            data_type=data_type,
            is_nullable=row["is_nullable"] == "YES",
            ordinal_position=row["ordinal_position"],
            character_maximum_length=row["character_maximum_length"],
            numeric_precision=row["numeric_precision"],
            numeric_scale=row["numeric_scale"],
            default=row["column_default"],
            key=row["column_key"] or "",
            extra=" ".join(extras),
        )

    async def _get_indexes(self, table: str | None) -> list[IndexInfo]:
        """Get index information, flagging indexes that back a constraint."""
        condition, params = self._table_filter("t.relname", table)
        query = f"""
        SELECT
            t.relname AS table_name,
            i.relname AS index_name,
            idx.indisunique AS is_unique,
            idx.indisprimary AS is_primary,
            am.amname AS method,
            EXISTS (
                SELECT 1 FROM pg_constraint con WHERE con.conindid = idx.indexrelid
            ) AS is_constraint,
            array_agg(a.attname ORDER BY array_position(idx.indkey, a.attnum)) AS columns
        FROM pg_index idx
        JOIN pg_class i ON i.oid = idx.indexrelid
        JOIN pg_class t ON t.oid = idx.indrelid
        JOIN pg_namespace n ON n.oid = t.relnamespace
        JOIN pg_am am ON am.oid = i.relam
        JOIN pg_attribute a ON a.attrelid = t.oid AND a.attnum = ANY(idx.indkey)
        WHERE n.nspname = %s{condition}
        GROUP BY t.relname, i.relname, idx.indisunique, idx.indisprimary,
                 am.amname, idx.indexrelid
        ORDER BY t.relname, i.relname
        """
        rows = await self._fetch_all(query, params)
        return [
            IndexInfo(
                table=row["table_name"],
                name=row["index_name"],
                columns=tuple(row["columns"]),
                is_unique=row["is_unique"],
                is_primary=row["is_primary"],
                method=row["method"],
                is_constraint=row["is_constraint"],
            )
            for row in rows
        ]

    async def _get_foreign_keys(self, table: str | None) -> list[ForeignKeyInfo]:
        """Get foreign keys with their column pairs in declaration order."""
        condition, params = self._table_filter("cl.relname", table)
        query = f"""
        SELECT
            con.conname AS name,
            cl.relname AS table_name,
            ARRAY(
                SELECT a.attname
                FROM unnest(con.conkey) WITH ORDINALITY AS k(attnum, ord)
                JOIN pg_attribute a ON a.attrelid = con.conrelid AND a.attnum = k.attnum
                ORDER BY k.ord
            ) AS columns,
            ref.relname AS referenced_table,
            ARRAY(
                SELECT a.attname
                FROM unnest(con.confkey) WITH ORDINALITY AS k(attnum, ord)
                JOIN pg_attribute a ON a.attrelid = con.confrelid AND a.attnum = k.attnum
                ORDER BY k.ord
            ) AS referenced_columns,
            con.confdeltype AS on_delete,
            con.confupdtype AS on_update
        FROM pg_constraint con
        JOIN pg_class cl ON cl.oid = con.conrelid
        JOIN pg_namespace n ON n.oid = cl.relnamespace
        JOIN pg_class ref ON ref.oid = con.confrelid
        WHERE con.contype = 'f'
        AND n.nspname = %s{condition}
        ORDER BY cl.relname, con.conname
        """
        rows = await self._fetch_all(query, params)
        return [
            ForeignKeyInfo(
                name=row["name"],
                table=row["table_name"],
                columns=tuple(row["columns"]),
                referenced_table=row["referenced_table"],
                referenced_columns=tuple(row["referenced_columns"]),
                on_delete=_REFERENTIAL_ACTIONS.get(row["on_delete"], "NO ACTION"),
                on_update=_REFERENTIAL_ACTIONS.get(row["on_update"], "NO ACTION"),
            )
            for row in rows
        ]

    async def _get_constraints(self, table: str | None) -> list[ConstraintInfo]:
        """Get table constraints."""
        condition, params = self._table_filter("cl.relname", table)
        query = f"""
        SELECT con.conname AS name, cl.relname AS table_name, con.contype AS kind
        FROM pg_constraint con
        JOIN pg_class cl ON cl.oid = con.conrelid
        JOIN pg_namespace n ON n.oid = cl.relnamespace
        WHERE n.nspname = %s{condition}
        ORDER BY cl.relname, con.conname
        """
        rows = await self._fetch_all(query, params)
        return [
            ConstraintInfo(
                name=row["name"],
                table=row["table_name"],
                kind=_CONSTRAINT_KINDS.get(row["kind"], row["kind"]),
            )
            for row in rows
        ]

    async def table_exists(self, table: str) -> bool:
        query = """
        SELECT EXISTS (
            SELECT 1 FROM information_schema.tables
            WHERE table_schema = %s AND table_name = %s
        ) AS exists
        """
        row = await self._fetch_one(query, (self.schema_name, table))
        return bool(row and row["exists"])

    async def column_exists(self, table: str, column: str) -> bool:
        query = """
        SELECT EXISTS (
            SELECT 1 FROM information_schema.columns
            WHERE table_schema = %s AND table_name = %s AND column_name = %s
        ) AS exists
        """
        row = await self._fetch_one(query, (self.schema_name, table, column))
        return bool(row and row["exists"])

    async def index_exists(self, table: str, index: str) -> bool:
        query = """
        SELECT EXISTS (
            SELECT 1 FROM pg_indexes
            WHERE schemaname = %s AND tablename = %s AND indexname = %s
        ) AS exists
        """
        row = await self._fetch_one(query, (self.schema_name, table, index))
        return bool(row and row["exists"])

    async def get_table_row_count(self, table: str) -> int:
        query = f"SELECT COUNT(*) AS count FROM {quote_table(table, self.schema_name)}"
        row = await self._fetch_one(query, ())
        return int(row["count"]) if row else 0

    async def get_create_table_statement(self, table: str) -> str:
        """Render CREATE TABLE plus CREATE INDEX statements for one table.

        Raises:
            SchemaError: If the table does not exist
        """
        columns = await self._get_columns(table)
        if not columns:
            raise SchemaError(f"Table '{table}' not found in schema '{self.schema_name}'")

        constraints_query = """
        SELECT con.conname AS name, pg_get_constraintdef(con.oid) AS definition
        FROM pg_constraint con
        JOIN pg_class cl ON cl.oid = con.conrelid
        JOIN pg_namespace n ON n.oid = cl.relnamespace
        WHERE n.nspname = %s AND cl.relname = %s
        ORDER BY con.contype DESC, con.conname
        """
        constraints = await self._fetch_all(constraints_query, (self.schema_name, table))

        indexes_query = """
        SELECT pg_get_indexdef(idx.indexrelid) AS definition
        FROM pg_index idx
        JOIN pg_class t ON t.oid = idx.indrelid
        JOIN pg_namespace n ON n.oid = t.relnamespace
        WHERE n.nspname = %s AND t.relname = %s
        AND NOT EXISTS (SELECT 1 FROM pg_constraint con WHERE con.conindid = idx.indexrelid)
        ORDER BY idx.indexrelid
        """
        indexes = await self._fetch_all(indexes_query, (self.schema_name, table))

        lines = [f"    {quote_ident(c.name)} {column_definition(c)}" for c in columns]
        lines.extend(
            f"    CONSTRAINT {quote_ident(row['name'])} {row['definition']}"
            for row in constraints
        )

        statement = (
            f"CREATE TABLE {quote_table(table, self.schema_name)} (\n"
            + ",\n".join(lines)
            + "\n);"
        )
        for row in indexes:
            statement += f"\n{row['definition']};"
        return statement

    async def get_database_size(self) -> dict[str, Any]:
        query = """
        SELECT
            COALESCE(SUM(pg_total_relation_size(c.oid)), 0) AS total_size,
            COALESCE(SUM(pg_relation_size(c.oid)), 0) AS data_size,
            COALESCE(SUM(pg_indexes_size(c.oid)), 0) AS index_size,
            COUNT(*) AS table_count
        FROM pg_class c
        JOIN pg_namespace n ON n.oid = c.relnamespace
        WHERE n.nspname = %s AND c.relkind IN ('r', 'p')
        """
        row = await self._fetch_one(query, (self.schema_name,))
        return {key: int(value) for key, value in (row or {}).items()}
