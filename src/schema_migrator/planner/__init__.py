"""Migration planning for schema_migrator."""

from schema_migrator.planner.models import (
    Migration,
    MigrationPlan,
    PlanSummary,
    Risk,
    RiskSeverity,
    RiskType,
    RollbackPlan,
)
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
    invert,
)
from schema_migrator.planner.planner import MigrationPlanner
from schema_migrator.planner.projection import apply_operations
from schema_migrator.planner.sql import render_sql

__all__ = [
    "AddColumn",
    "AddForeignKey",
    "CreateIndex",
    "CreateTable",
    "DropColumn",
    "DropForeignKey",
    "DropIndex",
    "DropTable",
    "Migration",
    "MigrationOperation",
    "MigrationPlan",
    "MigrationPlanner",
    "MigrationType",
    "ModifyColumn",
    "ModifyTable",
    "PlanSummary",
    "Risk",
    "RiskSeverity",
    "RiskType",
    "RollbackPlan",
    "apply_operations",
    "invert",
    "render_sql",
]
