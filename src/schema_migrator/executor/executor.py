"""Migration executor: validate a plan, then apply it step by step."""

import asyncio
import logging
import time
import uuid
from typing import TYPE_CHECKING

from schema_migrator.catalog.base import SchemaCatalog
from schema_migrator.config import MigratorConfig
from schema_migrator.connections.postgres import PostgresConnection
from schema_migrator.exceptions import (
    CatalogUnavailable,
    ConnectionError,
    ExecutionCancelled,
    LedgerError,
    OperationTimeoutError,
    RetryExhaustedError,
    RollbackFailed,
    StepExecutionFailed,
    ValidationFailed,
)
from schema_migrator.executor.backup import BackupWriter
from schema_migrator.executor.models import (
    ExecuteOptions,
    ExecutionRecord,
    ExecutionResult,
    ExecutionStatus,
    StepResult,
    StepStatus,
    ValidationResult,
)
from schema_migrator.planner.models import Migration, MigrationPlan
from schema_migrator.planner.operations import (
    AddColumn,
    AddForeignKey,
    CreateIndex,
    CreateTable,
    DropColumn,
    DropForeignKey,
    DropIndex,
    DropTable,
    MigrationOperation,
    ModifyColumn,
    ModifyTable,
)

if TYPE_CHECKING:
    from schema_migrator.ledger.base import ExecutionLedger

logger = logging.getLogger(__name__)

# Errors a step may raise that are worth retrying. RetryExhaustedError comes
# from a failed reconnect while opening the step transaction.
_STEP_ERRORS = (ConnectionError, OperationTimeoutError, RetryExhaustedError)


def generate_execution_id() -> str:
    return f"mig_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


class _PlanValidator:
    """Collects every mismatch between a plan and the live catalog."""

    def __init__(self, catalog: SchemaCatalog):
        self.catalog = catalog
        self.errors: list[str] = []
        self.created_tables: set[str] = set()
        self._checks = {
            CreateTable: self._create_table,
            DropTable: self._drop_table,
            ModifyTable: self._modify_table,
            AddColumn: self._add_column,
            ModifyColumn: self._modify_column,
            DropColumn: self._drop_column,
            CreateIndex: self._create_index,
            DropIndex: self._drop_index,
            AddForeignKey: self._add_foreign_key,
            DropForeignKey: self._drop_foreign_key,
        }

    async def check(self, op: MigrationOperation) -> None:
        check = self._checks.get(type(op))
        if check is None:
            raise TypeError(f"Unhandled migration operation: {type(op).__name__}")
        await check(op)

    async def _table_available(self, table: str) -> bool:
        return table in self.created_tables or await self.catalog.table_exists(table)

    async def _require_table(self, table: str, purpose: str) -> bool:
        if await self._table_available(table):
            return True
        self.errors.append(f"Table '{table}' does not exist for {purpose}")
        return False

    async def _create_table(self, op: CreateTable) -> None:
        if await self.catalog.table_exists(op.table.name):
            self.errors.append(f"Table '{op.table.name}' already exists")
        self.created_tables.add(op.table.name)

    async def _drop_table(self, op: DropTable) -> None:
        await self._require_table(op.table.name, "table drop")

    async def _modify_table(self, op: ModifyTable) -> None:
        await self._require_table(op.current.name, "table modification")

    async def _add_column(self, op: AddColumn) -> None:
        column = op.column
        if not await self._require_table(column.table, "column operation"):
            return
        if await self.catalog.column_exists(column.table, column.name):
            self.errors.append(f"Column '{column.qualified_name}' already exists")

    async def _modify_column(self, op: ModifyColumn) -> None:
        column = op.current
        if not await self._require_table(column.table, "column operation"):
            return
        if not await self.catalog.column_exists(column.table, column.name):
            self.errors.append(f"Column '{column.qualified_name}' does not exist")

    async def _drop_column(self, op: DropColumn) -> None:
        column = op.column
        if not await self._require_table(column.table, "column operation"):
            return
        if not await self.catalog.column_exists(column.table, column.name):
            self.errors.append(f"Column '{column.qualified_name}' does not exist")

    async def _create_index(self, op: CreateIndex) -> None:
        index = op.index
        if not await self._require_table(index.table, "index operation"):
            return
        if op.replaces is None and index.table not in self.created_tables:
            if await self.catalog.index_exists(index.table, index.name):
                self.errors.append(f"Index '{index.qualified_name}' already exists")

    async def _drop_index(self, op: DropIndex) -> None:
        index = op.index
        if not await self._require_table(index.table, "index operation"):
            return
        if not await self.catalog.index_exists(index.table, index.name):
            self.errors.append(f"Index '{index.qualified_name}' does not exist")

    async def _add_foreign_key(self, op: AddForeignKey) -> None:
        fk = op.foreign_key
        await self._require_table(fk.table, "foreign key constraint")
        if not await self._table_available(fk.referenced_table):
            self.errors.append(
                f"Referenced table '{fk.referenced_table}' does not exist "
                f"for foreign key constraint {fk.qualified_name}"
            )

    async def _drop_foreign_key(self, op: DropForeignKey) -> None:
        await self._require_table(op.foreign_key.table, "foreign key constraint")


class MigrationExecutor:
    """Applies migration plans.

    Steps run strictly in plan order, one transaction each. A failed step is
    retried with linearly increasing delays; once retries are exhausted the
    steps already committed by this execution are rolled back in reverse
    order. Every call that gets past argument handling writes one record to
    the ledger, except validate-only calls.
    """

    def __init__(
        self,
        connection: PostgresConnection,
        catalog: SchemaCatalog,
        ledger: "ExecutionLedger",
        config: MigratorConfig | None = None,
        backup: BackupWriter | None = None,
    ):
        """Initialize the executor.

        Args:
            connection: Connection the steps run on
            catalog: Catalog of the same database, read fresh for validation
            ledger: Repository receiving execution records
            config: Migrator configuration
            backup: Backup writer; built from the configuration if omitted
        """
        self.connection = connection
        self.catalog = catalog
        self.ledger = ledger
        self.config = config or MigratorConfig()
        self.backup = backup or BackupWriter(
            connection, catalog, self.config.backup_dir, self.config.schema_name
        )

    async def validate(
        self,
        plan: MigrationPlan,
        allow_critical_risks: bool = False,
    ) -> ValidationResult:
        """Check a plan against a fresh read of the catalog.

        Every violation is collected; nothing stops at the first one.

        Raises:
            CatalogUnavailable: If the catalog cannot be read
        """
        logger.info("Validating migration plan")
        warnings = []

        current = await self.catalog.get_full_schema()
        if plan.source_fingerprint and plan.source_fingerprint != current.fingerprint():
            warnings.append(
                "Database schema changed since the plan was generated; "
                "consider generating a new plan"
            )

        validator = _PlanValidator(self.catalog)
        for op in plan.operations:
            await validator.check(op)
        errors = validator.errors

        critical = plan.critical_risks
        if critical and not allow_critical_risks:
            errors.append(
                "Critical risks detected and not acknowledged: "
                + ", ".join(risk.description for risk in critical)
            )

        result = ValidationResult(valid=not errors, errors=errors, warnings=warnings)
        if result.valid:
            logger.info("Migration plan validation passed")
        else:
            logger.warning("Migration plan validation failed with %d errors", len(errors))
        return result

    async def execute(
        self,
        plan: MigrationPlan,
        options: ExecuteOptions | None = None,
    ) -> ExecutionResult:
        """Validate and apply a plan.

        Args:
            plan: Plan to apply
            options: Execution options

        Returns:
            The execution result

        Raises:
            ValidationFailed: If the plan does not match the live catalog
            CatalogUnavailable: If the catalog cannot be read for validation
            StepExecutionFailed: If a step fails after exhausting its retries
            ExecutionCancelled: If the cancel event is set between steps
        """
        options = options or ExecuteOptions()
        result = ExecutionResult(
            execution_id=generate_execution_id(), dry_run=options.dry_run
        )
        start = time.monotonic()
        logger.info(
            "Starting migration execution %s: %d steps",
            result.execution_id, len(plan.migrations)
        )

        result.transition(ExecutionStatus.VALIDATING)
        try:
            result.validation = await self.validate(plan, options.allow_critical_risks)
        except CatalogUnavailable as e:
            result.transition(ExecutionStatus.INVALID)
            result.error = str(e)
            await self._finish(result, plan, start)
            raise

        if not result.validation.valid:
            result.transition(ExecutionStatus.INVALID)
            error = ValidationFailed(result.validation.errors)
            result.error = str(error)
            await self._finish(result, plan, start)
            raise error

        result.transition(ExecutionStatus.VALID)
        if options.validate_only:
            result.duration_ms = _elapsed_ms(start)
            logger.info("Validation of %s completed successfully", result.execution_id)
            return result

        if not options.skip_backup and not options.dry_run:
            result.backup_path = await self.backup.create(result.execution_id)

        result.steps = [
            StepResult.from_migration(index, migration)
            for index, migration in enumerate(plan.migrations)
        ]
        result.transition(ExecutionStatus.EXECUTING)

        try:
            await self._run_steps(plan, result, options)
        except (StepExecutionFailed, ExecutionCancelled) as e:
            result.transition(ExecutionStatus.FAILED)
            result.error = str(e)
            if options.rollback_on_error:
                await self._rollback(plan, result)
            await self._finish(result, plan, start)
            raise

        result.transition(ExecutionStatus.COMPLETED)
        await self._finish(result, plan, start)
        logger.info(
            "Migration %s completed successfully in %dms",
            result.execution_id, result.duration_ms
        )
        return result

    async def _run_steps(
        self,
        plan: MigrationPlan,
        result: ExecutionResult,
        options: ExecuteOptions,
    ) -> None:
        total = len(plan.migrations)
        for step, migration in zip(result.steps, plan.migrations):
            self._check_cancelled(options)
            logger.info(
                "Executing migration %d/%d: %s", step.index + 1, total, migration.type.value
            )

            if options.dry_run:
                step.mark(StepStatus.DRY_RUN)
                logger.info("[DRY RUN] Would execute %d statements", len(migration.sql))
                continue

            await self._run_step(step, migration, result, options)

    async def _run_step(
        self,
        step: StepResult,
        migration: Migration,
        result: ExecutionResult,
        options: ExecuteOptions,
    ) -> None:
        max_retries = (
            options.max_retries
            if options.max_retries is not None
            else self.config.step_max_retries
        )
        attempts = max_retries + 1
        delay = (
            options.retry_delay
            if options.retry_delay is not None
            else self.config.step_retry_delay
        )
        start = time.monotonic()
        last_error: Exception | None = None

        for attempt in range(1, attempts + 1):
            step.attempts = attempt
            try:
                await self._apply(migration.sql)
            except _STEP_ERRORS as e:
                last_error = e
                if attempt < attempts:
                    logger.warning(
                        "Step %d attempt %d/%d failed, retrying: %s",
                        step.index + 1, attempt, attempts, e
                    )
                    try:
                        await self._wait(delay * attempt, options)
                    except ExecutionCancelled:
                        step.mark(StepStatus.FAILED)
                        step.error = f"Cancelled while retrying: {e}"
                        step.duration_ms = _elapsed_ms(start)
                        raise
                continue

            step.mark(StepStatus.COMPLETED)
            step.duration_ms = _elapsed_ms(start)
            logger.info("Migration %s completed successfully", migration.type.value)
            return

        step.mark(StepStatus.FAILED)
        step.error = str(last_error)
        step.duration_ms = _elapsed_ms(start)
        logger.error(
            "Step %d (%s) failed after %d attempts: %s",
            step.index + 1, migration.type.value, attempts, last_error
        )
        raise StepExecutionFailed(
            f"Step {step.index + 1} ({migration.type.value}) failed "
            f"after {attempts} attempts: {last_error}",
            result=result,
            step_index=step.index,
            last_error=last_error,
        ) from last_error

    async def _apply(self, statements: tuple[str, ...]) -> None:
        """Run statements in one transaction, committing only if all succeed."""
        transaction = await self.connection.begin_transaction()
        try:
            for statement in statements:
                await self.connection.execute(statement, transaction=transaction)
        except BaseException:
            await self._abort(transaction)
            raise
        await self.connection.commit_transaction(transaction)

    async def _abort(self, transaction) -> None:
        try:
            await self.connection.rollback_transaction(transaction)
        except _STEP_ERRORS as e:
            logger.warning("Failed to roll back step transaction: %s", e)

    async def _rollback(self, plan: MigrationPlan, result: ExecutionResult) -> None:
        """Undo committed steps, last first. Failures are recorded, never raised."""
        committed = [s for s in result.steps if s.status is StepStatus.COMPLETED]
        if committed:
            logger.info("Rolling back %d executed migrations", len(committed))

        for step in reversed(committed):
            rollback = plan.rollback_plan.for_step(step.index)
            if rollback is None:
                self._rollback_failed(
                    result, step, "step contains irreversible operations"
                )
                continue

            step.rollback_sql = rollback.sql
            try:
                await self._apply(rollback.sql)
            except _STEP_ERRORS as e:
                self._rollback_failed(result, step, str(e), e)
                continue
            step.mark(StepStatus.ROLLED_BACK)
            logger.info("Rolled back migration %d: %s", step.index + 1, step.type)

        if result.rollback_errors:
            result.transition(ExecutionStatus.ROLLBACK_FAILED)
        else:
            result.transition(ExecutionStatus.ROLLED_BACK)

    @staticmethod
    def _rollback_failed(
        result: ExecutionResult,
        step: StepResult,
        reason: str,
        cause: Exception | None = None,
    ) -> None:
        step.mark(StepStatus.ROLLBACK_FAILED)
        step.rollback_error = reason
        error = RollbackFailed(
            f"Rollback failed for step {step.index + 1} ({step.type}): {reason}",
            step_index=step.index,
            cause=cause,
        )
        result.rollback_errors.append(error)
        logger.error("%s", error)

    @staticmethod
    def _check_cancelled(options: ExecuteOptions) -> None:
        if options.cancel_event is not None and options.cancel_event.is_set():
            raise ExecutionCancelled("Execution cancelled between steps")

    @staticmethod
    async def _wait(delay: float, options: ExecuteOptions) -> None:
        """Sleep between retries, waking early if the execution is cancelled."""
        if options.cancel_event is None:
            await asyncio.sleep(delay)
            return
        try:
            async with asyncio.timeout(delay):
                await options.cancel_event.wait()
        except TimeoutError:
            return
        raise ExecutionCancelled("Execution cancelled while waiting to retry")

    async def _finish(
        self,
        result: ExecutionResult,
        plan: MigrationPlan,
        start: float,
    ) -> None:
        result.duration_ms = _elapsed_ms(start)
        record = ExecutionRecord.from_result(result, plan)
        try:
            await self.ledger.record(record)
        except LedgerError as e:
            result.ledger_error = str(e)
            logger.error("Failed to log migration execution %s: %s", result.execution_id, e)

    async def list_executions(self, limit: int = 50) -> list[ExecutionRecord]:
        """Most recent execution records first."""
        return await self.ledger.list_executions(limit)

    async def get_execution(self, execution_id: str) -> ExecutionRecord | None:
        return await self.ledger.get_execution(execution_id)
