"""In-memory schema catalog."""

from typing import Any

from schema_migrator.catalog.base import SchemaCatalog
from schema_migrator.catalog.models import SchemaSnapshot
from schema_migrator.dialect import column_definition, quote_ident
from schema_migrator.exceptions import CatalogUnavailable, SchemaError
from schema_migrator.mocks.data_store import InMemoryDataStore


class InMemorySchemaCatalog(SchemaCatalog):
    """Catalog answering from a snapshot held in an in-memory data store."""

    def __init__(
        self,
        data_store: InMemoryDataStore | None = None,
        system_tables: frozenset[str] | set[str] = frozenset(),
    ):
        super().__init__(system_tables)
        self.data_store = data_store or InMemoryDataStore()
        self.available = True
        self.calls: list[str] = []

    @property
    def snapshot(self) -> SchemaSnapshot:
        return self.data_store.snapshot

    @snapshot.setter
    def snapshot(self, snapshot: SchemaSnapshot) -> None:
        self.data_store.snapshot = snapshot

    def _check(self, call: str) -> None:
        self.calls.append(call)
        if not self.available:
            raise CatalogUnavailable("Cannot read database catalog: mock catalog unavailable")

    def _visible(self) -> SchemaSnapshot:
        snapshot = self.data_store.snapshot
        hidden = {name for name in snapshot.table_names if self.is_system_table(name)}
        return snapshot.without_tables(hidden) if hidden else snapshot

    async def get_full_schema(self) -> SchemaSnapshot:
        self._check("get_full_schema")
        return self._visible()

    async def get_table_schema(self, table: str) -> SchemaSnapshot | None:
        self._check("get_table_schema")
        snapshot = self._visible()
        if not snapshot.has_table(table):
            return None
        others = {name for name in snapshot.table_names if name != table}
        return snapshot.without_tables(others)

    async def table_exists(self, table: str) -> bool:
        self._check("table_exists")
        return self.data_store.snapshot.has_table(table)

    async def column_exists(self, table: str, column: str) -> bool:
        self._check("column_exists")
        return self.data_store.snapshot.get_column(table, column) is not None

    async def index_exists(self, table: str, index: str) -> bool:
        self._check("index_exists")
        return any(i.name == index for i in self.data_store.snapshot.indexes_for(table))

    async def get_table_row_count(self, table: str) -> int:
        self._check("get_table_row_count")
        return self.data_store.row_count(table)

    async def get_create_table_statement(self, table: str) -> str:
        self._check("get_create_table_statement")
        columns = self.data_store.snapshot.columns_for(table)
        if not columns:
            raise SchemaError(f"Table '{table}' not found")
        lines = ",\n".join(
            f"    {quote_ident(c.name)} {column_definition(c)}" for c in columns
        )
        return f"CREATE TABLE {quote_ident(table)} (\n{lines}\n);"

    async def get_database_size(self) -> dict[str, Any]:
        self._check("get_database_size")
        return {
            "total_size": 0,
            "data_size": 0,
            "index_size": 0,
            "table_count": len(self._visible().tables),
        }
