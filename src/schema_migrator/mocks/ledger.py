"""In-memory execution ledger."""

from schema_migrator.exceptions import LedgerError
from schema_migrator.executor.models import ExecutionRecord
from schema_migrator.ledger.base import ExecutionLedger


class InMemoryExecutionLedger(ExecutionLedger):
    """Keeps execution records in a list."""

    def __init__(self):
        self.records: list[ExecutionRecord] = []
        self.fail_writes = False

    async def record(self, record: ExecutionRecord) -> None:
        if self.fail_writes:
            raise LedgerError(f"Failed to record execution {record.execution_id}")
        if any(r.execution_id == record.execution_id for r in self.records):
            raise LedgerError(f"Execution {record.execution_id} already recorded")
        self.records.append(record)

    async def list_executions(self, limit: int = 50) -> list[ExecutionRecord]:
        ordered = sorted(
            enumerate(self.records),
            key=lambda item: (item[1].created_at, item[0]),
            reverse=True,
        )
        return [record for _, record in ordered[:limit]]

    async def get_execution(self, execution_id: str) -> ExecutionRecord | None:
        for record in self.records:
            if record.execution_id == execution_id:
                return record
        return None
