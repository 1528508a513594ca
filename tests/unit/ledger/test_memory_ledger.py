"""Unit tests for InMemoryExecutionLedger."""

from datetime import datetime, timedelta

import pytest

from schema_migrator.exceptions import LedgerError
from schema_migrator.executor import ExecutionRecord
from schema_migrator.mocks import InMemoryExecutionLedger


def _record(execution_id: str, created_at: datetime) -> ExecutionRecord:
    return ExecutionRecord(
        execution_id=execution_id,
        plan_summary={},
        results=[],
        duration_ms=0,
        status="completed",
        created_at=created_at,
    )


@pytest.mark.asyncio
async def test_most_recent_first():
    ledger = InMemoryExecutionLedger()
    now = datetime.now()
    await ledger.record(_record("mig_1_old", now - timedelta(minutes=5)))
    await ledger.record(_record("mig_2_new", now))

    assert [r.execution_id for r in await ledger.list_executions()] == ["mig_2_new", "mig_1_old"]
    assert [r.execution_id for r in await ledger.list_executions(limit=1)] == ["mig_2_new"]


@pytest.mark.asyncio
async def test_insert_only():
    ledger = InMemoryExecutionLedger()
    await ledger.record(_record("mig_1_abc", datetime.now()))

    with pytest.raises(LedgerError):
        await ledger.record(_record("mig_1_abc", datetime.now()))


@pytest.mark.asyncio
async def test_get_execution():
    ledger = InMemoryExecutionLedger()
    await ledger.record(_record("mig_1_abc", datetime.now()))

    assert (await ledger.get_execution("mig_1_abc")).status == "completed"
    assert await ledger.get_execution("mig_9_zzz") is None
