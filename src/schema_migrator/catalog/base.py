"""Abstract schema catalog shared by the planner and executor."""

from abc import ABC, abstractmethod
from typing import Any

from schema_migrator.catalog.models import SchemaSnapshot

# Prefixes of tables owned by the database engine itself.
ENGINE_TABLE_PREFIXES = ("pg_", "information_schema", "sql_")


class SchemaCatalog(ABC):
    """Read-only view over a live database's structural metadata.

    Implementations never cache between calls: every answer reflects the
    database at the instant of the call.
    """

    def __init__(self, system_tables: frozenset[str] | set[str] = frozenset()):
        self.system_tables = frozenset(system_tables)

    def is_system_table(self, name: str) -> bool:
        """Check whether a table belongs to the engine or to the migrator itself."""
        return name in self.system_tables or name.startswith(ENGINE_TABLE_PREFIXES)

    @abstractmethod
    async def get_full_schema(self) -> SchemaSnapshot:
        """Capture a snapshot of every table, column, index, foreign key and constraint.

        Raises:
            CatalogUnavailable: If the metadata cannot be read
        """

    @abstractmethod
    async def get_table_schema(self, table: str) -> SchemaSnapshot | None:
        """Capture a snapshot restricted to one table, or None if it does not exist."""

    @abstractmethod
    async def table_exists(self, table: str) -> bool:
        """Check if a table exists."""

    @abstractmethod
    async def column_exists(self, table: str, column: str) -> bool:
        """Check if a column exists in a table."""

    @abstractmethod
    async def index_exists(self, table: str, index: str) -> bool:
        """Check if an index exists on a table."""

    @abstractmethod
    async def get_table_row_count(self, table: str) -> int:
        """Count the rows of a table exactly."""

    @abstractmethod
    async def get_create_table_statement(self, table: str) -> str:
        """Render the dialect-native definition of a table."""

    @abstractmethod
    async def get_database_size(self) -> dict[str, Any]:
        """Get size information for the inspected schema."""
