"""Schema migration planning and execution for the church attendance database"""

from schema_migrator.catalog import (
    PostgresSchemaCatalog,
    SchemaCatalog,
    SchemaSnapshot,
    load_baseline,
    save_baseline,
)
from schema_migrator.config import MigratorConfig
from schema_migrator.exceptions import (
    CatalogUnavailable,
    ConfigurationError,
    ConnectionError,
    ExecutionCancelled,
    InvalidStateTransition,
    LedgerError,
    OperationTimeoutError,
    PlanningError,
    PoolExhaustedError,
    PostgresConnectionError,
    RetryExhaustedError,
    RollbackFailed,
    SchemaError,
    SchemaMigratorError,
    StepExecutionFailed,
    ValidationFailed,
)
from schema_migrator.executor import (
    ExecuteOptions,
    ExecutionRecord,
    ExecutionResult,
    ExecutionStatus,
    MigrationExecutor,
    StepStatus,
    ValidationResult,
)
from schema_migrator.ledger import ExecutionLedger, PostgresExecutionLedger
from schema_migrator.manager import SchemaMigrationManager
from schema_migrator.models import ConnectionState, HealthStatus
from schema_migrator.planner import (
    MigrationPlan,
    MigrationPlanner,
    MigrationType,
    Risk,
    RiskSeverity,
    RiskType,
)

__version__ = "0.1.0"

__all__ = [
    "CatalogUnavailable",
    "ConfigurationError",
    "ConnectionError",
    "ConnectionState",
    "ExecuteOptions",
    "ExecutionCancelled",
    "ExecutionLedger",
    "ExecutionRecord",
    "ExecutionResult",
    "ExecutionStatus",
    "HealthStatus",
    "InvalidStateTransition",
    "LedgerError",
    "MigrationExecutor",
    "MigrationPlan",
    "MigrationPlanner",
    "MigrationType",
    "MigratorConfig",
    "OperationTimeoutError",
    "PlanningError",
    "PoolExhaustedError",
    "PostgresConnectionError",
    "PostgresExecutionLedger",
    "PostgresSchemaCatalog",
    "RetryExhaustedError",
    "Risk",
    "RiskSeverity",
    "RiskType",
    "RollbackFailed",
    "SchemaCatalog",
    "SchemaError",
    "SchemaMigrationManager",
    "SchemaMigratorError",
    "SchemaSnapshot",
    "StepExecutionFailed",
    "StepStatus",
    "ValidationFailed",
    "ValidationResult",
    "load_baseline",
    "save_baseline",
]
