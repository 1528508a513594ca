"""Custom exceptions for schema_migrator."""

from typing import Any


class SchemaMigratorError(Exception):
    """Base exception for all schema_migrator exceptions."""


class ConnectionError(SchemaMigratorError):
    """Raised when connection-related errors occur."""


class PostgresConnectionError(ConnectionError):
    """Raised when PostgreSQL connection fails."""


class PoolExhaustedError(ConnectionError):
    """Raised when connection pool is exhausted."""


class ConfigurationError(SchemaMigratorError):
    """Raised when configuration is invalid."""


class OperationTimeoutError(SchemaMigratorError):
    """Raised when operation times out."""


class RetryExhaustedError(SchemaMigratorError):
    """Raised when all retry attempts are exhausted."""

    def __init__(self, message: str, last_error: Exception | None = None):
        super().__init__(message)
        self.last_error = last_error


class CatalogUnavailable(SchemaMigratorError):
    """Raised when the database catalog cannot be introspected."""


class PlanningError(SchemaMigratorError):
    """Raised when a desired schema cannot be planned against."""


class ValidationFailed(SchemaMigratorError):
    """Raised when a migration plan does not match the live catalog.

    Carries every violation found, not just the first one.
    """

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__(
            "Migration validation failed:\n" + "\n".join(f"- {e}" for e in self.errors)
        )


class StepExecutionFailed(SchemaMigratorError):
    """Raised when a migration step fails after exhausting its retries."""

    def __init__(
        self,
        message: str,
        result: Any = None,
        step_index: int | None = None,
        last_error: Exception | None = None,
    ):
        super().__init__(message)
        self.result = result
        self.step_index = step_index
        self.last_error = last_error

    @property
    def rollback_errors(self) -> list["RollbackFailed"]:
        """Rollback failures recorded while undoing committed steps."""
        if self.result is None:
            return []
        return list(getattr(self.result, "rollback_errors", []))


class RollbackFailed(SchemaMigratorError):
    """Recorded when rolling back a committed step does not complete."""

    def __init__(self, message: str, step_index: int | None = None,
                 cause: Exception | None = None):
        super().__init__(message)
        self.step_index = step_index
        self.cause = cause


class ExecutionCancelled(SchemaMigratorError):
    """Raised when a cancellation signal is observed between steps."""


class InvalidStateTransition(SchemaMigratorError):
    """Raised on an illegal execution state change."""


class LedgerError(SchemaMigratorError):
    """Raised when the execution ledger cannot be read or written."""


class SchemaError(SchemaMigratorError):
    """Raised when a requested schema object does not exist."""
