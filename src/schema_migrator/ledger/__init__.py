"""Execution ledger for schema_migrator."""

from schema_migrator.ledger.base import ExecutionLedger
from schema_migrator.ledger.postgres import PostgresExecutionLedger

__all__ = ["ExecutionLedger", "PostgresExecutionLedger"]
