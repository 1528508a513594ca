"""Data models for schema_migrator."""

from schema_migrator.models.types import ConnectionState, HealthStatus

__all__ = ["ConnectionState", "HealthStatus"]
