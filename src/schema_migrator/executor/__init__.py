"""Migration execution for schema_migrator."""

from schema_migrator.executor.backup import BackupWriter
from schema_migrator.executor.executor import MigrationExecutor, generate_execution_id
from schema_migrator.executor.models import (
    ExecuteOptions,
    ExecutionRecord,
    ExecutionResult,
    ExecutionStatus,
    StepResult,
    StepStatus,
    ValidationResult,
)

__all__ = [
    "BackupWriter",
    "ExecuteOptions",
    "ExecutionRecord",
    "ExecutionResult",
    "ExecutionStatus",
    "MigrationExecutor",
    "StepResult",
    "StepStatus",
    "ValidationResult",
    "generate_execution_id",
]
