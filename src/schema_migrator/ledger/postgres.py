"""Execution ledger stored in a PostgreSQL table."""

import json
import logging
from typing import Any

from psycopg.types.json import Jsonb

from schema_migrator.connections.postgres import PostgresConnection
from schema_migrator.dialect import quote_table
from schema_migrator.exceptions import (
    ConnectionError,
    LedgerError,
    OperationTimeoutError,
    RetryExhaustedError,
)
from schema_migrator.executor.models import ExecutionRecord
from schema_migrator.ledger.base import ExecutionLedger

logger = logging.getLogger(__name__)

_LEDGER_ERRORS = (ConnectionError, OperationTimeoutError, RetryExhaustedError)


class PostgresExecutionLedger(ExecutionLedger):
    """Writes execution records to the ``migration_executions`` table."""

    def __init__(
        self,
        connection: PostgresConnection,
        table: str = "migration_executions",
        schema_name: str | None = None,
    ):
        """Initialize the ledger.

        Args:
            connection: PostgreSQL connection instance
            table: Ledger table name
            schema_name: Schema holding the ledger table
        """
        self.connection = connection
        self.table = table
        self.schema_name = schema_name
        self._qualified = quote_table(table, schema_name)

    async def ensure_schema(self) -> None:
        """Create the ledger table if needed."""
        query = f"""
        CREATE TABLE IF NOT EXISTS {self._qualified} (
            id SERIAL PRIMARY KEY,
            execution_id VARCHAR(64) NOT NULL UNIQUE,
            plan_summary JSONB NOT NULL,
            results JSONB NOT NULL,
            duration_ms INTEGER NOT NULL,
            status VARCHAR(20) NOT NULL,
            backup_path TEXT,
            dry_run BOOLEAN NOT NULL DEFAULT FALSE,
            error_message TEXT,
            created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
        """
        try:
            await self.connection.execute(query)
        except _LEDGER_ERRORS as e:
            raise LedgerError(f"Failed to create ledger table {self.table}: {e}") from e

    async def record(self, record: ExecutionRecord) -> None:
        query = f"""
        INSERT INTO {self._qualified} (
            execution_id, plan_summary, results, duration_ms, status,
            backup_path, dry_run, error_message, created_at
        ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
        """
        params = (
            record.execution_id,
            Jsonb(record.plan_summary, dumps=_dumps),
            Jsonb(record.results, dumps=_dumps),
            record.duration_ms,
            record.status,
            record.backup_path,
            record.dry_run,
            record.error_message,
            record.created_at,
        )
        try:
            await self.connection.execute(query, params)
        except _LEDGER_ERRORS as e:
            raise LedgerError(
                f"Failed to record execution {record.execution_id}: {e}"
            ) from e
        logger.debug("Recorded execution %s", record.execution_id)

    async def list_executions(self, limit: int = 50) -> list[ExecutionRecord]:
        query = f"""
        SELECT execution_id, plan_summary, results, duration_ms, status,
               backup_path, dry_run, error_message, created_at
        FROM {self._qualified}
        ORDER BY created_at DESC, id DESC
        LIMIT %s
        """
        try:
            rows = await self.connection.fetch_all(query, (limit,))
        except _LEDGER_ERRORS as e:
            raise LedgerError(f"Failed to read execution history: {e}") from e
        return [self._from_row(row) for row in rows]

    async def get_execution(self, execution_id: str) -> ExecutionRecord | None:
        query = f"""
        SELECT execution_id, plan_summary, results, duration_ms, status,
               backup_path, dry_run, error_message, created_at
        FROM {self._qualified}
        WHERE execution_id = %s
        """
        try:
            row = await self.connection.fetch_one(query, (execution_id,))
        except _LEDGER_ERRORS as e:
            raise LedgerError(f"Failed to read execution {execution_id}: {e}") from e
        return self._from_row(row) if row else None

    @staticmethod
    def _from_row(row: dict[str, Any]) -> ExecutionRecord:
        return ExecutionRecord(
            execution_id=row["execution_id"],
            plan_summary=_loads(row["plan_summary"]),
            results=_loads(row["results"]),
            duration_ms=row["duration_ms"],
            status=row["status"],
            backup_path=row["backup_path"],
            dry_run=row["dry_run"],
            error_message=row["error_message"],
            created_at=row["created_at"],
        )


def _dumps(value: Any) -> str:
    return json.dumps(value, default=str)


def _loads(value: Any) -> Any:
    # psycopg decodes JSONB already; text columns come back as strings.
    if isinstance(value, str):
        return json.loads(value)
    return value
