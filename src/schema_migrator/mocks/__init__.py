"""Mock implementations for schema_migrator.

This module provides in-memory mock implementations of schema_migrator
components for testing purposes. All mocks use only the Python standard
library and the package itself.
"""

from .catalog import InMemorySchemaCatalog
from .connections import MockPostgresConnection, MockTransaction
from .data_store import InMemoryDataStore
from .ledger import InMemoryExecutionLedger
from .manager import MockSchemaMigrationManager

__all__ = [
    "InMemoryDataStore",
    "InMemoryExecutionLedger",
    "InMemorySchemaCatalog",
    "MockPostgresConnection",
    "MockSchemaMigrationManager",
    "MockTransaction",
]
