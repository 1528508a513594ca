"""In-memory data store for mock implementations.

This module provides a zero-dependency, in-memory stand-in for a PostgreSQL
database: a schema snapshot, row counts, table rows and a log of every
statement executed against it.
"""

from collections import defaultdict
from typing import Any

from schema_migrator.catalog.models import SchemaSnapshot


class InMemoryDataStore:
    """In-memory state shared by the mock connection and catalog."""

    def __init__(
        self,
        snapshot: SchemaSnapshot | None = None,
        row_counts: dict[str, int] | None = None,
    ):
        """Initialize the store.

        Args:
            snapshot: Schema the mock database starts with
            row_counts: Exact row count per table
        """
        self.snapshot = snapshot or SchemaSnapshot()
        self.row_counts: dict[str, int] = dict(row_counts or {})
        self.rows: dict[str, list[dict[str, Any]]] = defaultdict(list)

        # Statement log
        self.executed: list[str] = []
        self.committed: list[tuple[str, ...]] = []
        self.rolled_back: list[tuple[str, ...]] = []

    def clear(self) -> None:
        """Clear all data (for test isolation)."""
        self.__init__()

    def row_count(self, table: str) -> int:
        if table in self.row_counts:
            return self.row_counts[table]
        if table in self.rows:
            return len(self.rows[table])
        return self.snapshot.row_count(table) or 0

    def insert_rows(self, table: str, rows: list[dict[str, Any]]) -> None:
        self.rows[table].extend(rows)
        self.row_counts[table] = len(self.rows[table])
