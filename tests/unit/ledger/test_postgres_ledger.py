"""Unit tests for PostgresExecutionLedger."""

import json
from datetime import datetime

import pytest
from unittest.mock import AsyncMock, MagicMock
from psycopg.types.json import Jsonb

from schema_migrator.exceptions import LedgerError, PostgresConnectionError
from schema_migrator.executor import ExecutionRecord
from schema_migrator.ledger import PostgresExecutionLedger


@pytest.fixture
def mock_connection():
    """Create a mock PostgreSQL connection."""
    connection = MagicMock()
    connection.execute = AsyncMock()
    connection.fetch_all = AsyncMock()
    connection.fetch_one = AsyncMock()
    return connection


@pytest.fixture
def ledger(mock_connection):
    return PostgresExecutionLedger(mock_connection, "migration_executions", "public")


@pytest.fixture
def record():
    return ExecutionRecord(
        execution_id="mig_1700000000000_a1b2c3d4e",
        plan_summary={"columns_to_add": [{"entities": ["individuals.is_visitor"]}]},
        results=[{"index": 0, "status": "completed"}],
        duration_ms=120,
        status="completed",
        created_at=datetime(2024, 3, 10, 9, 30),
    )


def _row(record: ExecutionRecord, **overrides):
    row = {
        "execution_id": record.execution_id,
        "plan_summary": record.plan_summary,
        "results": record.results,
        "duration_ms": record.duration_ms,
        "status": record.status,
        "backup_path": None,
        "dry_run": False,
        "error_message": None,
        "created_at": record.created_at,
    }
    row.update(overrides)
    return row


@pytest.mark.asyncio
async def test_ensure_schema(ledger, mock_connection):
    """Test ledger table creation."""
    await ledger.ensure_schema()

    mock_connection.execute.assert_called_once()
    query = mock_connection.execute.call_args[0][0]
    assert 'CREATE TABLE IF NOT EXISTS "public"."migration_executions"' in query
    assert "execution_id VARCHAR(64) NOT NULL UNIQUE" in query


@pytest.mark.asyncio
async def test_record(ledger, mock_connection, record):
    await ledger.record(record)

    query, params = mock_connection.execute.call_args[0]
    assert 'INSERT INTO "public"."migration_executions"' in query
    assert params[0] == record.execution_id
    assert isinstance(params[1], Jsonb)
    assert params[1].obj == record.plan_summary
    assert params[2].obj == record.results
    assert params[3:] == (120, "completed", None, False, None, record.created_at)


@pytest.mark.asyncio
async def test_record_failure(ledger, mock_connection, record):
    mock_connection.execute.side_effect = PostgresConnectionError("connection lost")

    with pytest.raises(LedgerError, match="connection lost"):
        await ledger.record(record)


@pytest.mark.asyncio
async def test_list_executions(ledger, mock_connection, record):
    mock_connection.fetch_all.return_value = [
        _row(record, results=json.dumps(record.results)),
    ]

    records = await ledger.list_executions(limit=5)

    assert records == [record]
    query, params = mock_connection.fetch_all.call_args[0]
    assert "ORDER BY created_at DESC, id DESC" in query
    assert params == (5,)


@pytest.mark.asyncio
async def test_get_execution(ledger, mock_connection, record):
    mock_connection.fetch_one.return_value = _row(record, error_message="boom")

    found = await ledger.get_execution(record.execution_id)

    assert found.error_message == "boom"
    mock_connection.fetch_one.assert_called_once()
    assert mock_connection.fetch_one.call_args[0][1] == (record.execution_id,)


@pytest.mark.asyncio
async def test_get_execution_missing(ledger, mock_connection):
    mock_connection.fetch_one.return_value = None

    assert await ledger.get_execution("mig_0_missing") is None


@pytest.mark.asyncio
async def test_read_failure(ledger, mock_connection):
    mock_connection.fetch_all.side_effect = PostgresConnectionError("connection lost")

    with pytest.raises(LedgerError):
        await ledger.list_executions()
