"""Data models for migration plans."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from schema_migrator.catalog.models import SchemaSnapshot
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
    MigrationType,
    ModifyColumn,
    ModifyTable,
    operation_to_dict,
)
from schema_migrator.planner.projection import apply_operations


class RiskType(str, Enum):
    """Risk categories."""
    DATA_LOSS = "data_loss"
    PERFORMANCE = "performance"
    CONSTRAINT_VIOLATION = "constraint_violation"
    DOWNTIME = "downtime"


class RiskSeverity(str, Enum):
    """Risk severities, ordered from least to most severe."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    def __ge__(self, other):
        if not isinstance(other, RiskSeverity):
            return NotImplemented
        return self.rank >= other.rank

    def __gt__(self, other):
        if not isinstance(other, RiskSeverity):
            return NotImplemented
        return self.rank > other.rank

    def __le__(self, other):
        if not isinstance(other, RiskSeverity):
            return NotImplemented
        return self.rank <= other.rank

    def __lt__(self, other):
        if not isinstance(other, RiskSeverity):
            return NotImplemented
        return self.rank < other.rank


_SEVERITY_RANK = {
    RiskSeverity.LOW: 0,
    RiskSeverity.MEDIUM: 1,
    RiskSeverity.HIGH: 2,
    RiskSeverity.CRITICAL: 3,
}


@dataclass(frozen=True)
class Risk:
    """An advisory finding attached to a plan.

    ``deferred`` risks describe drops that were computed but not emitted as
    steps; they never block execution.
    """
    type: RiskType
    severity: RiskSeverity
    description: str
    affected_entities: tuple[str, ...] = ()
    row_count: int | None = None
    deferred: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "severity": self.severity.value,
            "description": self.description,
            "affected_entities": list(self.affected_entities),
            "row_count": self.row_count,
            "deferred": self.deferred,
        }


@dataclass(frozen=True)
class PlanSummary:
    """Every detected change, bucketed by category."""
    tables_to_create: tuple[CreateTable, ...] = ()
    tables_to_drop: tuple[DropTable, ...] = ()
    tables_to_modify: tuple[ModifyTable, ...] = ()
    columns_to_add: tuple[AddColumn, ...] = ()
    columns_to_drop: tuple[DropColumn, ...] = ()
    columns_to_modify: tuple[ModifyColumn, ...] = ()
    indexes_to_create: tuple[CreateIndex, ...] = ()
    indexes_to_drop: tuple[DropIndex, ...] = ()
    foreign_keys_to_add: tuple[AddForeignKey, ...] = ()
    foreign_keys_to_drop: tuple[DropForeignKey, ...] = ()

    BUCKETS = (
        "tables_to_create",
        "tables_to_drop",
        "tables_to_modify",
        "columns_to_add",
        "columns_to_drop",
        "columns_to_modify",
        "indexes_to_create",
        "indexes_to_drop",
        "foreign_keys_to_add",
        "foreign_keys_to_drop",
    )

    @property
    def is_empty(self) -> bool:
        return not any(getattr(self, bucket) for bucket in self.BUCKETS)

    def entities(self, bucket: str) -> list[str]:
        """Qualified names of the entities in one bucket."""
        return [
            entity
            for op in getattr(self, bucket)
            for entity in op.affected_entities
        ]

    def counts(self) -> dict[str, int]:
        return {bucket: len(getattr(self, bucket)) for bucket in self.BUCKETS}

    def to_dict(self) -> dict[str, Any]:
        return {
            bucket: [operation_to_dict(op) for op in getattr(self, bucket)]
            for bucket in self.BUCKETS
        }


@dataclass(frozen=True)
class Migration:
    """One step: a group of same-type operations applied in a single transaction.

    On rollback steps ``reverses`` is the index of the forward step undone.
    """
    type: MigrationType
    description: str
    sql: tuple[str, ...]
    operations: tuple[MigrationOperation, ...] = ()
    affected_entities: tuple[str, ...] = ()
    reverses: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "description": self.description,
            "sql": list(self.sql),
            "affected_entities": list(self.affected_entities),
            "reverses": self.reverses,
        }


@dataclass(frozen=True)
class RollbackPlan:
    """Mirror-image steps, last-applied-first."""
    migrations: tuple[Migration, ...] = ()
    risks: tuple[Risk, ...] = ()
    irreversible: tuple[str, ...] = ()
    description: str = "Rollback plan to reverse all changes"

    def for_step(self, index: int) -> Migration | None:
        """Rollback step undoing forward step ``index``, if one exists."""
        for migration in self.migrations:
            if migration.reverses == index:
                return migration
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "description": self.description,
            "migrations": [m.to_dict() for m in self.migrations],
            "risks": [r.to_dict() for r in self.risks],
            "irreversible": list(self.irreversible),
        }


@dataclass(frozen=True)
class MigrationPlan:
    """Computed difference between two snapshots. Immutable once generated."""
    summary: PlanSummary
    migrations: tuple[Migration, ...]
    risks: tuple[Risk, ...]
    rollback_plan: RollbackPlan
    estimated_duration_ms: int
    source_fingerprint: str | None = None
    include_drops: bool = False
    generated_at: datetime = field(default_factory=datetime.now, compare=False)

    @property
    def is_empty(self) -> bool:
        return not self.migrations

    @property
    def operations(self) -> list[MigrationOperation]:
        """Operations of every emitted step, in execution order."""
        return [op for migration in self.migrations for op in migration.operations]

    @property
    def highest_severity(self) -> RiskSeverity | None:
        if not self.risks:
            return None
        return max((risk.severity for risk in self.risks), key=lambda s: s.rank)

    @property
    def critical_risks(self) -> list[Risk]:
        """Critical risks that apply to emitted steps."""
        return [
            risk for risk in self.risks
            if risk.severity is RiskSeverity.CRITICAL and not risk.deferred
        ]

    def preview(self, snapshot: SchemaSnapshot) -> SchemaSnapshot:
        """Snapshot the database would have after applying every step."""
        return apply_operations(snapshot, self.operations)

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": self.summary.to_dict(),
            "migrations": [m.to_dict() for m in self.migrations],
            "risks": [r.to_dict() for r in self.risks],
            "rollback_plan": self.rollback_plan.to_dict(),
            "estimated_duration_ms": self.estimated_duration_ms,
            "source_fingerprint": self.source_fingerprint,
            "include_drops": self.include_drops,
            "generated_at": self.generated_at.isoformat(),
        }
