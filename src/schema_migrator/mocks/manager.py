"""Mock implementation of SchemaMigrationManager.

Uses the real planner and executor over in-memory doubles. Successful
executions are projected onto the in-memory schema so that a follow-up
plan sees the migrated structure.
"""

from typing import Any

from schema_migrator.catalog.models import SchemaSnapshot
from schema_migrator.config import MigratorConfig
from schema_migrator.exceptions import StepExecutionFailed
from schema_migrator.executor.models import (
    ExecuteOptions,
    ExecutionResult,
    ExecutionStatus,
    StepStatus,
)
from schema_migrator.manager import SchemaMigrationManager
from schema_migrator.mocks.catalog import InMemorySchemaCatalog
from schema_migrator.mocks.connections import MockPostgresConnection
from schema_migrator.mocks.data_store import InMemoryDataStore
from schema_migrator.mocks.ledger import InMemoryExecutionLedger
from schema_migrator.planner.models import MigrationPlan
from schema_migrator.planner.projection import apply_operations

# Steps whose changes remain in the database after an execution.
_APPLIED = frozenset({StepStatus.COMPLETED, StepStatus.ROLLBACK_FAILED})


class MockSchemaMigrationManager(SchemaMigrationManager):
    """SchemaMigrationManager backed by in-memory storage for testing."""

    def __init__(
        self,
        snapshot: SchemaSnapshot | None = None,
        row_counts: dict[str, int] | None = None,
        config: MigratorConfig | None = None,
        connection_config: dict[str, Any] | None = None,
    ):
        """Initialize mock manager.

        Args:
            snapshot: Schema the mock database starts with
            row_counts: Exact row count per table
            config: Migrator configuration
            connection_config: Mock connection settings
        """
        config = config or MigratorConfig()
        self.data_store = InMemoryDataStore(snapshot, row_counts)
        super().__init__(
            config=config,
            connection=MockPostgresConnection(self.data_store, connection_config),
            catalog=InMemorySchemaCatalog(self.data_store, config.all_system_tables),
            ledger=InMemoryExecutionLedger(),
        )

    async def execute(
        self,
        plan: MigrationPlan,
        options: ExecuteOptions | None = None,
    ) -> ExecutionResult:
        try:
            result = await super().execute(plan, options)
        except StepExecutionFailed as e:
            self._apply(plan, e.result)
            raise
        self._apply(plan, result)
        return result

    def _apply(self, plan: MigrationPlan, result: ExecutionResult) -> None:
        if result.dry_run or result.status is ExecutionStatus.VALID:
            return
        applied = [
            op
            for step, migration in zip(result.steps, plan.migrations)
            if step.status in _APPLIED
            for op in migration.operations
        ]
        self.data_store.snapshot = apply_operations(self.data_store.snapshot, applied)
