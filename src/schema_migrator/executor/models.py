"""Data models for migration execution."""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from schema_migrator.exceptions import (
    ConfigurationError,
    InvalidStateTransition,
    RollbackFailed,
)
from schema_migrator.planner.models import Migration, MigrationPlan


class ExecutionStatus(str, Enum):
    """Lifecycle of one execution call."""
    PENDING = "pending"
    VALIDATING = "validating"
    VALID = "valid"
    INVALID = "invalid"
    EXECUTING = "executing"
    COMPLETED = "completed"
    FAILED = "failed"
    ROLLED_BACK = "rolled_back"
    ROLLBACK_FAILED = "rollback_failed"

    @property
    def is_terminal(self) -> bool:
        return not EXECUTION_TRANSITIONS[self]


EXECUTION_TRANSITIONS: dict[ExecutionStatus, frozenset[ExecutionStatus]] = {
    ExecutionStatus.PENDING: frozenset({ExecutionStatus.VALIDATING}),
    ExecutionStatus.VALIDATING: frozenset({ExecutionStatus.VALID, ExecutionStatus.INVALID}),
    ExecutionStatus.VALID: frozenset({ExecutionStatus.EXECUTING}),
    ExecutionStatus.INVALID: frozenset(),
    ExecutionStatus.EXECUTING: frozenset({ExecutionStatus.COMPLETED, ExecutionStatus.FAILED}),
    ExecutionStatus.COMPLETED: frozenset(),
    ExecutionStatus.FAILED: frozenset({
        ExecutionStatus.ROLLED_BACK,
        ExecutionStatus.ROLLBACK_FAILED,
    }),
    ExecutionStatus.ROLLED_BACK: frozenset(),
    ExecutionStatus.ROLLBACK_FAILED: frozenset(),
}


class StepStatus(str, Enum):
    """Outcome of one plan step."""
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    DRY_RUN = "dry_run"
    ROLLED_BACK = "rolled_back"
    ROLLBACK_FAILED = "rollback_failed"


STEP_TRANSITIONS: dict[StepStatus, frozenset[StepStatus]] = {
    StepStatus.PENDING: frozenset({
        StepStatus.COMPLETED,
        StepStatus.FAILED,
        StepStatus.DRY_RUN,
    }),
    StepStatus.COMPLETED: frozenset({StepStatus.ROLLED_BACK, StepStatus.ROLLBACK_FAILED}),
    StepStatus.FAILED: frozenset(),
    StepStatus.DRY_RUN: frozenset(),
    StepStatus.ROLLED_BACK: frozenset(),
    StepStatus.ROLLBACK_FAILED: frozenset(),
}


@dataclass
class ExecuteOptions:
    """Options for one execution call."""
    dry_run: bool = False
    validate_only: bool = False
    skip_backup: bool = False
    max_retries: int | None = None
    rollback_on_error: bool = True
    allow_critical_risks: bool = False
    retry_delay: float | None = None
    cancel_event: asyncio.Event | None = None

    def __post_init__(self):
        if self.max_retries is not None and self.max_retries < 0:
            raise ConfigurationError("max_retries must be non-negative")
        if self.retry_delay is not None and self.retry_delay < 0:
            raise ConfigurationError("retry_delay must be non-negative")


@dataclass
class ValidationResult:
    """Outcome of validating a plan against the live catalog."""
    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"valid": self.valid, "errors": self.errors, "warnings": self.warnings}


@dataclass
class StepResult:
    """Progress of one step through an execution."""
    index: int
    type: str
    description: str
    sql: tuple[str, ...]
    status: StepStatus = StepStatus.PENDING
    history: list[StepStatus] = field(default_factory=list)
    attempts: int = 0
    duration_ms: int = 0
    error: str | None = None
    rollback_sql: tuple[str, ...] = ()
    rollback_error: str | None = None

    @classmethod
    def from_migration(cls, index: int, migration: Migration) -> "StepResult":
        return cls(
            index=index,
            type=migration.type.value,
            description=migration.description,
            sql=migration.sql,
        )

    def mark(self, status: StepStatus) -> None:
        """Move the step to ``status``.

        Raises:
            InvalidStateTransition: If the step cannot move to ``status``
        """
        if status not in STEP_TRANSITIONS[self.status]:
            raise InvalidStateTransition(
                f"Step {self.index} cannot move from {self.status.value} to {status.value}"
            )
        self.status = status
        self.history.append(status)

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "type": self.type,
            "description": self.description,
            "sql": list(self.sql),
            "status": self.status.value,
            "history": [status.value for status in self.history],
            "attempts": self.attempts,
            "duration_ms": self.duration_ms,
            "error": self.error,
            "rollback_sql": list(self.rollback_sql),
            "rollback_error": self.rollback_error,
        }


@dataclass
class ExecutionResult:
    """Everything known about one execution call."""
    execution_id: str
    dry_run: bool = False
    status: ExecutionStatus = ExecutionStatus.PENDING
    history: list[ExecutionStatus] = field(
        default_factory=lambda: [ExecutionStatus.PENDING]
    )
    steps: list[StepResult] = field(default_factory=list)
    validation: ValidationResult | None = None
    duration_ms: int = 0
    backup_path: str | None = None
    error: str | None = None
    rollback_errors: list[RollbackFailed] = field(default_factory=list)
    ledger_error: str | None = None
    started_at: datetime = field(default_factory=datetime.now)

    def transition(self, status: ExecutionStatus) -> None:
        """Move the execution to ``status``.

        Raises:
            InvalidStateTransition: If the transition is not allowed
        """
        if status not in EXECUTION_TRANSITIONS[self.status]:
            raise InvalidStateTransition(
                f"Execution {self.execution_id} cannot move from "
                f"{self.status.value} to {status.value}"
            )
        self.status = status
        self.history.append(status)

    @property
    def committed_steps(self) -> list[StepResult]:
        return [
            step for step in self.steps
            if StepStatus.COMPLETED in step.history
        ]

    @property
    def failed_step(self) -> StepResult | None:
        for step in self.steps:
            if step.status is StepStatus.FAILED:
                return step
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "execution_id": self.execution_id,
            "status": self.status.value,
            "history": [status.value for status in self.history],
            "dry_run": self.dry_run,
            "steps": [step.to_dict() for step in self.steps],
            "validation": self.validation.to_dict() if self.validation else None,
            "duration_ms": self.duration_ms,
            "backup_path": self.backup_path,
            "error": self.error,
            "rollback_errors": [str(error) for error in self.rollback_errors],
        }


@dataclass(frozen=True)
class ExecutionRecord:
    """Persisted audit entry of one execution call. Insert-only."""
    execution_id: str
    plan_summary: dict[str, Any]
    results: list[dict[str, Any]]
    duration_ms: int
    status: str
    backup_path: str | None = None
    dry_run: bool = False
    error_message: str | None = None
    created_at: datetime = field(default_factory=datetime.now)

    @classmethod
    def from_result(cls, result: ExecutionResult, plan: MigrationPlan) -> "ExecutionRecord":
        results = [step.to_dict() for step in result.steps]
        # Rollback failures are kept even when no step carries them.
        results.extend(
            {"rollback_error": str(error), "step_index": error.step_index}
            for error in result.rollback_errors
            if error.step_index is None
        )
        return cls(
            execution_id=result.execution_id,
            plan_summary=plan.summary.to_dict(),
            results=results,
            duration_ms=result.duration_ms,
            status=result.status.value,
            backup_path=result.backup_path,
            dry_run=result.dry_run,
            error_message=result.error,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "execution_id": self.execution_id,
            "plan_summary": self.plan_summary,
            "results": self.results,
            "duration_ms": self.duration_ms,
            "status": self.status,
            "backup_path": self.backup_path,
            "dry_run": self.dry_run,
            "error_message": self.error_message,
            "created_at": self.created_at.isoformat(),
        }
