"""Main manager class for schema_migrator."""

import logging
from datetime import datetime
from pathlib import Path
from typing import Any

from schema_migrator.catalog import (
    PostgresSchemaCatalog,
    SchemaCatalog,
    SchemaSnapshot,
    load_baseline,
    save_baseline,
)
from schema_migrator.config import MigratorConfig
from schema_migrator.connections import PostgresConnection
from schema_migrator.exceptions import (
    CatalogUnavailable,
    LedgerError,
    SchemaMigratorError,
)
from schema_migrator.executor import (
    ExecuteOptions,
    ExecutionRecord,
    ExecutionResult,
    MigrationExecutor,
    ValidationResult,
)
from schema_migrator.ledger import ExecutionLedger, PostgresExecutionLedger
from schema_migrator.models import HealthStatus
from schema_migrator.planner import MigrationPlan, MigrationPlanner

logger = logging.getLogger(__name__)


class SchemaMigrationManager:
    """Entry point wiring the catalog, planner, executor and ledger together."""

    def __init__(
        self,
        config: MigratorConfig | None = None,
        connection: PostgresConnection | None = None,
        catalog: SchemaCatalog | None = None,
        ledger: ExecutionLedger | None = None,
    ):
        """Initialize SchemaMigrationManager.

        Args:
            config: Migrator configuration (uses defaults if None)
            connection: Connection to use instead of a new pooled one
            catalog: Catalog to use instead of the PostgreSQL catalog
            ledger: Ledger to use instead of the PostgreSQL ledger table
        """
        self.config = config or MigratorConfig()
        self.postgres = connection or PostgresConnection(self.config)
        self.catalog = catalog or PostgresSchemaCatalog(
            self.postgres,
            schema_name=self.config.schema_name,
            system_tables=self.config.all_system_tables,
        )
        self.ledger = ledger or PostgresExecutionLedger(
            self.postgres,
            table=self.config.ledger_table,
            schema_name=self.config.schema_name,
        )
        self.planner = MigrationPlanner(self.catalog, self.config)
        self.executor = MigrationExecutor(
            self.postgres, self.catalog, self.ledger, self.config
        )
        self._is_initialized = False

    async def initialize(self) -> None:
        """Connect and make sure the ledger table exists."""
        if self._is_initialized:
            logger.warning("Manager already initialized")
            return

        logger.info("Initializing SchemaMigrationManager")
        await self.postgres.connect_with_retry()
        await self.ledger.ensure_schema()

        self._is_initialized = True
        logger.info("SchemaMigrationManager initialized successfully")

    async def close(self) -> None:
        """Close connections and clean up resources."""
        logger.info("Closing SchemaMigrationManager")
        await self.postgres.disconnect()
        self._is_initialized = False
        logger.info("SchemaMigrationManager closed")

    async def __aenter__(self):
        """Async context manager entry."""
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

    def _ensure_initialized(self) -> None:
        if not self._is_initialized:
            raise SchemaMigratorError("Manager not initialized")

    async def get_schema(self) -> SchemaSnapshot:
        """Get the current schema, system tables excluded."""
        self._ensure_initialized()
        return await self.catalog.get_full_schema()

    async def get_table_schema(self, table: str) -> SchemaSnapshot | None:
        self._ensure_initialized()
        return await self.catalog.get_table_schema(table)

    async def plan(
        self,
        desired: SchemaSnapshot | dict[str, Any],
        include_drops: bool = False,
    ) -> MigrationPlan:
        """Plan the migration from the current schema to ``desired``."""
        self._ensure_initialized()
        return await self.planner.generate_plan(desired, include_drops=include_drops)

    async def plan_from_baseline(
        self,
        path: str | Path,
        include_drops: bool = False,
    ) -> MigrationPlan:
        """Plan the migration towards a recorded baseline file."""
        return await self.plan(load_baseline(path), include_drops=include_drops)

    async def record_baseline(self, path: str | Path, database: str | None = None) -> Path:
        """Save the current schema as a baseline file."""
        return save_baseline(await self.get_schema(), path, database)

    async def validate(
        self,
        plan: MigrationPlan,
        allow_critical_risks: bool = False,
    ) -> ValidationResult:
        self._ensure_initialized()
        return await self.executor.validate(plan, allow_critical_risks)

    async def execute(
        self,
        plan: MigrationPlan,
        options: ExecuteOptions | None = None,
    ) -> ExecutionResult:
        """Validate and apply a plan.

        Raises:
            ValidationFailed: If the plan does not match the live schema
            StepExecutionFailed: If a step fails after exhausting its retries
        """
        self._ensure_initialized()
        return await self.executor.execute(plan, options)

    async def list_executions(self, limit: int = 50) -> list[ExecutionRecord]:
        self._ensure_initialized()
        return await self.executor.list_executions(limit)

    async def get_execution(self, execution_id: str) -> ExecutionRecord | None:
        self._ensure_initialized()
        return await self.executor.get_execution(execution_id)

    async def health_check(self) -> HealthStatus:
        """Check the database connection, the catalog and the ledger.

        Returns:
            HealthStatus object
        """
        connected, latency = await self.postgres.health_check()
        status = HealthStatus(
            postgres_connected=connected,
            postgres_latency_ms=latency,
            timestamp=datetime.now(),
        )
        if not connected:
            status.error = "Connection failed"
            logger.warning("Health check failed - PostgreSQL not reachable")
            return status

        try:
            size = await self.catalog.get_database_size()
            status.catalog_available = True
            status.table_count = size.get("table_count", 0)
            status.recent_executions = len(await self.ledger.list_executions(10))
        except (CatalogUnavailable, LedgerError) as e:
            status.error = str(e)
            logger.warning("Health check failed: %s", e)

        return status

    def get_config_info(self) -> dict[str, Any]:
        """Get configuration information with sensitive data masked."""
        return self.config.mask_sensitive_data()

    def get_connection_status(self) -> dict[str, Any]:
        return {
            "initialized": self._is_initialized,
            "postgres": {
                "state": self.postgres.state.value,
                "connected": self.postgres.is_connected,
                "pool_status": self.postgres.pool_status,
            },
        }
