"""Connection management modules."""

from schema_migrator.connections.base import BaseConnection
from schema_migrator.connections.postgres import PostgresConnection

__all__ = ["BaseConnection", "PostgresConnection"]
