"""Example usage of MockSchemaMigrationManager.

This example demonstrates how to plan and run a schema migration
against the in-memory mock without requiring a database connection.
"""

import asyncio

from schema_migrator import ExecuteOptions, StepExecutionFailed
from schema_migrator.catalog import ColumnInfo, IndexInfo, SchemaSnapshot, TableInfo
from schema_migrator.mocks import MockSchemaMigrationManager


def current_schema() -> SchemaSnapshot:
    """Schema of a church attendance database before the migration."""
    return SchemaSnapshot(
        tables=(TableInfo(name="individuals", row_count=120),),
        columns=(
            ColumnInfo("individuals", "id", "integer", is_nullable=False,
                       ordinal_position=1, key="PRI", extra="identity"),
            ColumnInfo("individuals", "first_name", "character varying",
                       is_nullable=False, ordinal_position=2,
                       character_maximum_length=100),
            ColumnInfo("individuals", "legacy_notes", "text", ordinal_position=3),
        ),
        indexes=(
            IndexInfo("individuals", "individuals_pkey", ("id",),
                      is_unique=True, is_primary=True, is_constraint=True),
        ),
    )


def desired_schema() -> dict:
    """Desired schema, in the dictionary form a schema file would use."""
    return {
        "tables": [{"name": "individuals"}],
        "columns": [
            {"table": "individuals", "name": "id", "data_type": "integer",
             "is_nullable": False, "ordinal_position": 1, "key": "PRI"},
            {"table": "individuals", "name": "first_name",
             "data_type": "character varying", "is_nullable": False,
             "ordinal_position": 2, "character_maximum_length": 100},
            {"table": "individuals", "name": "is_visitor", "data_type": "boolean",
             "is_nullable": True, "ordinal_position": 4, "default": "false"},
        ],
        "indexes": [
            {"table": "individuals", "name": "individuals_pkey", "columns": ["id"],
             "is_unique": True, "is_primary": True},
            {"table": "individuals", "name": "idx_is_visitor", "columns": ["is_visitor"]},
        ],
    }


async def example_plan():
    """Inspect a plan without running it."""
    print("=== Plan Example ===")

    async with MockSchemaMigrationManager(current_schema()) as manager:
        plan = await manager.plan(desired_schema())

        for migration in plan.migrations:
            print(f"{migration.type.value}: {migration.description}")
            for statement in migration.sql:
                print(f"  {statement}")

        print(f"Estimated duration: {plan.estimated_duration_ms} ms")
        for risk in plan.risks:
            deferred = " (deferred)" if risk.deferred else ""
            print(f"Risk [{risk.severity.value}] {risk.description}{deferred}")


async def example_execute():
    """Run a plan, then confirm the schema converged."""
    print("\n=== Execute Example ===")

    async with MockSchemaMigrationManager(current_schema()) as manager:
        plan = await manager.plan(desired_schema())
        result = await manager.execute(plan, ExecuteOptions(skip_backup=True))
        print(f"Execution {result.execution_id}: {result.status.value}")

        follow_up = await manager.plan(desired_schema())
        print(f"Follow-up plan is empty: {follow_up.is_empty}")

        for record in await manager.list_executions():
            print(f"Ledger: {record.execution_id} {record.status}")


async def example_failure_and_rollback():
    """Simulate a failing step and observe the automatic rollback."""
    print("\n=== Failure Example ===")

    async with MockSchemaMigrationManager(current_schema()) as manager:
        manager.postgres.fail_on("CREATE INDEX", message="lock timeout")
        plan = await manager.plan(desired_schema())

        try:
            await manager.execute(
                plan, ExecuteOptions(skip_backup=True, retry_delay=0)
            )
        except StepExecutionFailed as e:
            print(f"Migration failed: {e}")
            for step in e.result.steps:
                print(f"  step {step.index + 1}: {step.status.value}")
            print(f"Final status: {e.result.status.value}")


async def main():
    """Run all examples."""
    await example_plan()
    await example_execute()
    await example_failure_and_rollback()


if __name__ == "__main__":
    asyncio.run(main())
