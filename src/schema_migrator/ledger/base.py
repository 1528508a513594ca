"""Execution ledger interface."""

from abc import ABC, abstractmethod

from schema_migrator.executor.models import ExecutionRecord


class ExecutionLedger(ABC):
    """Repository of execution records.

    Records are insert-only: a new execution, including a re-run of the
    same plan, always produces a new record.
    """

    async def ensure_schema(self) -> None:
        """Create the ledger's storage if it does not exist."""

    @abstractmethod
    async def record(self, record: ExecutionRecord) -> None:
        """Persist one execution record.

        Raises:
            LedgerError: If the record cannot be written
        """

    @abstractmethod
    async def list_executions(self, limit: int = 50) -> list[ExecutionRecord]:
        """Most recent records first."""

    @abstractmethod
    async def get_execution(self, execution_id: str) -> ExecutionRecord | None:
        """Get one record by execution id."""
