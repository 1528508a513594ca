"""Migration planner: diff a desired schema against the live one."""

import logging
from collections.abc import Callable
from dataclasses import replace
from typing import Any

from schema_migrator.catalog.base import SchemaCatalog
from schema_migrator.catalog.models import (
    ColumnInfo,
    ForeignKeyInfo,
    IndexInfo,
    SchemaSnapshot,
)
from schema_migrator.config import MigratorConfig
from schema_migrator.dialect import normalize_default, type_signature
from schema_migrator.exceptions import PlanningError
from schema_migrator.planner.models import (
    Migration,
    MigrationPlan,
    PlanSummary,
    RollbackPlan,
    Risk,
    RiskSeverity,
    RiskType,
)
from schema_migrator.planner.operations import (
    EXECUTION_ORDER,
    ROLLBACK_TYPES,
    AddColumn,
    AddForeignKey,
    CreateIndex,
    CreateTable,
    DropColumn,
    DropForeignKey,
    DropIndex,
    DropTable,
    MigrationType,
    ModifyColumn,
    ModifyTable,
    invert,
    operation_cost,
)
from schema_migrator.planner.sql import render_sql

logger = logging.getLogger(__name__)

RowCounter = Callable[[str], int | None]

_SUMMARY_BUCKETS = {
    MigrationType.CREATE_TABLES: "tables_to_create",
    MigrationType.ADD_COLUMNS: "columns_to_add",
    MigrationType.MODIFY_COLUMNS: "columns_to_modify",
    MigrationType.CREATE_INDEXES: "indexes_to_create",
    MigrationType.ADD_FOREIGN_KEYS: "foreign_keys_to_add",
    MigrationType.DROP_FOREIGN_KEYS: "foreign_keys_to_drop",
    MigrationType.DROP_INDEXES: "indexes_to_drop",
    MigrationType.DROP_COLUMNS: "columns_to_drop",
    MigrationType.DROP_TABLES: "tables_to_drop",
}

_STEP_DESCRIPTIONS = {
    MigrationType.CREATE_TABLES: ("Create", "new table", "new tables"),
    MigrationType.ADD_COLUMNS: ("Add", "new column", "new columns"),
    MigrationType.MODIFY_COLUMNS: ("Modify", "existing column", "existing columns"),
    MigrationType.CREATE_INDEXES: ("Create", "index", "indexes"),
    MigrationType.ADD_FOREIGN_KEYS: ("Add", "foreign key constraint", "foreign key constraints"),
    MigrationType.DROP_FOREIGN_KEYS: ("Drop", "foreign key constraint", "foreign key constraints"),
    MigrationType.DROP_INDEXES: ("Drop", "index", "indexes"),
    MigrationType.DROP_COLUMNS: ("Drop", "column", "columns"),
    MigrationType.DROP_TABLES: ("Drop", "table", "tables"),
}

_TABLE_ATTRIBUTES = ("engine", "collation", "comment")


def describe_step(migration_type: MigrationType, count: int) -> str:
    verb, singular, plural = _STEP_DESCRIPTIONS[migration_type]
    return f"{verb} {count} {singular if count == 1 else plural}"


class MigrationPlanner:
    """Computes migration plans from a desired schema.

    Planning itself never touches the database apart from reads through the
    catalog. ``plan`` is a pure function of two snapshots; ``generate_plan``
    reads the current snapshot and exact row counts first.
    """

    def __init__(self, catalog: SchemaCatalog, config: MigratorConfig | None = None):
        """Initialize the planner.

        Args:
            catalog: Catalog of the database being migrated
            config: Migrator configuration
        """
        self.catalog = catalog
        self.config = config or MigratorConfig()

    async def generate_plan(
        self,
        desired: SchemaSnapshot | dict[str, Any],
        include_drops: bool = False,
    ) -> MigrationPlan:
        """Plan the migration from the live schema to ``desired``.

        Args:
            desired: Desired schema, as a snapshot or a dictionary
            include_drops: Emit steps for drops (otherwise they are reported only)

        Returns:
            The migration plan

        Raises:
            CatalogUnavailable: If the live schema cannot be read
            PlanningError: If the desired schema is malformed
        """
        if isinstance(desired, dict):
            desired = SchemaSnapshot.from_dict(desired)

        logger.info("Analyzing current database schema")
        current = await self.catalog.get_full_schema()

        summary = self.diff(current, desired)
        row_counts = {}
        for table in self._tables_needing_row_counts(summary):
            row_counts[table] = await self.catalog.get_table_row_count(table)

        return self.plan(current, desired, include_drops=include_drops, row_counts=row_counts)

    def plan(
        self,
        current: SchemaSnapshot,
        desired: SchemaSnapshot,
        include_drops: bool = False,
        row_counts: dict[str, int] | None = None,
    ) -> MigrationPlan:
        """Build a migration plan from two snapshots.

        Row counts not given in ``row_counts`` fall back to the estimates
        stored in ``current``; a missing estimate counts as unknown.
        """
        current = self._without_system_tables(current)
        desired = self._without_system_tables(desired)
        row_counts = row_counts or {}

        def rows(table: str) -> int | None:
            if table in row_counts:
                return row_counts[table]
            return current.row_count(table)

        summary = self._attach_row_counts(self.diff(current, desired), rows)
        risks = self.assess_risks(summary, current, desired, rows, include_drops)
        migrations = self._build_steps(summary, include_drops)
        rollback_plan = self._build_rollback(migrations)
        estimated = sum(
            operation_cost(op) for migration in migrations for op in migration.operations
        )

        plan = MigrationPlan(
            summary=summary,
            migrations=tuple(migrations),
            risks=tuple(risks),
            rollback_plan=rollback_plan,
            estimated_duration_ms=estimated,
            source_fingerprint=current.fingerprint(),
            include_drops=include_drops,
        )
        logger.info(
            "Generated migration plan: %d steps, %d risks, estimated %d ms",
            len(plan.migrations), len(plan.risks), plan.estimated_duration_ms
        )
        return plan

    def _without_system_tables(self, snapshot: SchemaSnapshot) -> SchemaSnapshot:
        hidden = {name for name in snapshot.table_names if self.catalog.is_system_table(name)}
        return snapshot.without_tables(hidden) if hidden else snapshot

    # Diffing

    def diff(self, current: SchemaSnapshot, desired: SchemaSnapshot) -> PlanSummary:
        """Compute every structural difference between two snapshots.

        Raises:
            PlanningError: If desired entities reference undeclared tables
        """
        current = self._without_system_tables(current)
        desired = self._without_system_tables(desired)
        self._check_desired(desired)

        tables_to_create = []
        tables_to_modify = []
        for table in desired.tables:
            existing = current.get_table(table.name)
            if existing is None:
                tables_to_create.append(
                    CreateTable(table=table, columns=tuple(desired.columns_for(table.name)))
                )
                continue
            changes = tuple(
                attr for attr in _TABLE_ATTRIBUTES
                if getattr(table, attr) is not None
                and getattr(table, attr) != getattr(existing, attr)
            )
            if changes:
                tables_to_modify.append(
                    ModifyTable(current=existing, desired=table, changes=changes)
                )

        tables_to_drop = [
            DropTable(table=table)
            for table in current.tables
            if not desired.has_table(table.name)
        ]

        columns_to_add, columns_to_modify, columns_to_drop = [], [], []
        indexes_to_create, indexes_to_drop = [], []
        foreign_keys_to_add, foreign_keys_to_drop = [], []

        for table in desired.table_names:
            is_new = not current.has_table(table)

            if not is_new:
                added, modified, dropped = self._diff_columns(
                    current.columns_for(table), desired.columns_for(table)
                )
                columns_to_add.extend(added)
                columns_to_modify.extend(modified)
                columns_to_drop.extend(dropped)

            created, removed = self._diff_indexes(
                current.indexes_for(table), desired.indexes_for(table)
            )
            indexes_to_create.extend(created)
            indexes_to_drop.extend(removed)

            added_fks, dropped_fks = self._diff_foreign_keys(
                current.foreign_keys_for(table), desired.foreign_keys_for(table)
            )
            foreign_keys_to_add.extend(added_fks)
            foreign_keys_to_drop.extend(dropped_fks)

        return PlanSummary(
            tables_to_create=tuple(tables_to_create),
            tables_to_drop=tuple(tables_to_drop),
            tables_to_modify=tuple(tables_to_modify),
            columns_to_add=tuple(columns_to_add),
            columns_to_drop=tuple(columns_to_drop),
            columns_to_modify=tuple(columns_to_modify),
            indexes_to_create=tuple(indexes_to_create),
            indexes_to_drop=tuple(indexes_to_drop),
            foreign_keys_to_add=tuple(foreign_keys_to_add),
            foreign_keys_to_drop=tuple(foreign_keys_to_drop),
        )

    @staticmethod
    def _check_desired(desired: SchemaSnapshot) -> None:
        declared = set(desired.table_names)
        errors = []
        for column in desired.columns:
            if column.table not in declared:
                errors.append(f"column {column.qualified_name} belongs to undeclared table")
        for index in desired.indexes:
            if index.table not in declared:
                errors.append(f"index {index.qualified_name} belongs to undeclared table")
        for fk in desired.foreign_keys:
            if fk.table not in declared:
                errors.append(f"foreign key {fk.qualified_name} belongs to undeclared table")
        if errors:
            raise PlanningError("Invalid desired schema: " + "; ".join(errors))

    def _diff_columns(
        self,
        current: list[ColumnInfo],
        desired: list[ColumnInfo],
    ) -> tuple[list[AddColumn], list[ModifyColumn], list[DropColumn]]:
        # A declared table without any declared column leaves its columns as they are.
        if not desired:
            return [], [], []

        current_by_name = {column.name: column for column in current}
        desired_names = {column.name for column in desired}

        added, modified = [], []
        for column in desired:
            existing = current_by_name.get(column.name)
            if existing is None:
                added.append(AddColumn(column=column))
                continue
            changes = self._column_changes(existing, column)
            if changes:
                modified.append(ModifyColumn(current=existing, desired=column, changes=changes))

        dropped = [
            DropColumn(column=column)
            for column in current
            if column.name not in desired_names
            and column.name not in self.config.protected_columns
        ]
        return added, modified, dropped

    @staticmethod
    def _column_changes(current: ColumnInfo, desired: ColumnInfo) -> tuple[str, ...]:
        changes = []

        current_type, *current_params = type_signature(current)
        desired_type, *desired_params = type_signature(desired)
        # Parameters the desired column leaves unspecified are not compared.
        if current_type != desired_type or any(
            wanted is not None and wanted != actual
            for actual, wanted in zip(current_params, desired_params)
        ):
            changes.append("type")

        if current.is_nullable != desired.is_nullable and not current.is_primary_key:
            changes.append("nullable")

        current_default = normalize_default(current.default)
        generated = "identity" in current.extra.lower() or (
            current_default is not None and current_default.startswith("nextval(")
        )
        if not (generated and desired.default is None):
            if current_default != normalize_default(desired.default):
                changes.append("default")

        return tuple(changes)

    @staticmethod
    def _diff_indexes(
        current: list[IndexInfo],
        desired: list[IndexInfo],
    ) -> tuple[list[CreateIndex], list[DropIndex]]:
        current_by_name = {index.name: index for index in current}
        desired_names = {index.name for index in desired}

        created = []
        for index in desired:
            # Primary keys are declared with the table, never as standalone indexes.
            if index.is_primary:
                continue
            existing = current_by_name.get(index.name)
            if existing is None:
                created.append(CreateIndex(index=index))
            elif not (existing.is_primary or existing.is_constraint) and (
                existing.columns != index.columns
                or existing.is_unique != index.is_unique
                or existing.method != index.method
            ):
                created.append(CreateIndex(index=index, replaces=existing))

        dropped = [
            DropIndex(index=index)
            for index in current
            if index.name not in desired_names
            and not index.is_primary
            and not index.is_constraint
        ]
        return created, dropped

    @staticmethod
    def _diff_foreign_keys(
        current: list[ForeignKeyInfo],
        desired: list[ForeignKeyInfo],
    ) -> tuple[list[AddForeignKey], list[DropForeignKey]]:
        current_by_name = {fk.name: fk for fk in current}
        desired_names = {fk.name for fk in desired}

        added = []
        for fk in desired:
            existing = current_by_name.get(fk.name)
            if existing is None:
                added.append(AddForeignKey(foreign_key=fk))
            elif (
                existing.columns != fk.columns
                or existing.referenced_table != fk.referenced_table
                or existing.referenced_columns != fk.referenced_columns
                or existing.on_delete.upper() != fk.on_delete.upper()
                or existing.on_update.upper() != fk.on_update.upper()
            ):
                added.append(AddForeignKey(foreign_key=fk, replaces=existing))

        dropped = [
            DropForeignKey(foreign_key=fk) for fk in current if fk.name not in desired_names
        ]
        return added, dropped

    @staticmethod
    def _tables_needing_row_counts(summary: PlanSummary) -> list[str]:
        tables = [op.table.name for op in summary.tables_to_drop]
        tables.extend(op.column.table for op in summary.columns_to_drop)
        tables.extend(op.current.table for op in summary.columns_to_modify)
        tables.extend(
            op.column.table for op in summary.columns_to_add
            if not op.column.is_nullable and op.column.default is None
        )
        return list(dict.fromkeys(tables))

    @staticmethod
    def _attach_row_counts(summary: PlanSummary, rows: RowCounter) -> PlanSummary:
        return replace(
            summary,
            tables_to_drop=tuple(
                replace(op, row_count=rows(op.table.name)) for op in summary.tables_to_drop
            ),
            columns_to_drop=tuple(
                replace(op, row_count=rows(op.column.table)) for op in summary.columns_to_drop
            ),
        )

    # Risk assessment

    def assess_risks(
        self,
        summary: PlanSummary,
        current: SchemaSnapshot,
        desired: SchemaSnapshot,
        rows: RowCounter,
        include_drops: bool = False,
    ) -> list[Risk]:
        """Classify the risks of a set of changes.

        Risks of drops that will not be emitted as steps are marked deferred.
        """
        risks = []
        deferred = not include_drops
        threshold = self.config.large_table_threshold

        for op in summary.tables_to_drop:
            count = op.row_count
            if count is None:
                severity, detail = RiskSeverity.MEDIUM, "row count unknown"
            elif count > 0:
                severity, detail = RiskSeverity.CRITICAL, f"{count} rows"
            else:
                severity, detail = RiskSeverity.LOW, "table is empty"
            risks.append(Risk(
                type=RiskType.DATA_LOSS,
                severity=severity,
                description=(
                    f"Table {op.table.name} will be dropped - all data will be lost ({detail})"
                ),
                affected_entities=op.affected_entities,
                row_count=count,
                deferred=deferred,
            ))

        for op in summary.columns_to_drop:
            count = op.row_count
            if count is None:
                severity, detail = RiskSeverity.MEDIUM, "row count unknown"
            elif count >= threshold:
                severity, detail = RiskSeverity.CRITICAL, f"{count} rows"
            elif count > 0:
                severity, detail = RiskSeverity.HIGH, f"{count} rows"
            else:
                severity, detail = RiskSeverity.LOW, "table is empty"
            risks.append(Risk(
                type=RiskType.DATA_LOSS,
                severity=severity,
                description=(
                    f"Column {op.column.qualified_name} will be dropped "
                    f"and may contain data ({detail})"
                ),
                affected_entities=op.affected_entities,
                row_count=count,
                deferred=deferred,
            ))

        for op in summary.indexes_to_drop:
            risks.append(Risk(
                type=RiskType.PERFORMANCE,
                severity=RiskSeverity.MEDIUM,
                description=(
                    f"Index {op.index.qualified_name} will be dropped "
                    "- may impact query performance"
                ),
                affected_entities=op.affected_entities,
                deferred=deferred,
            ))

        for op in summary.foreign_keys_to_drop:
            risks.append(Risk(
                type=RiskType.CONSTRAINT_VIOLATION,
                severity=RiskSeverity.LOW,
                description=(
                    f"Foreign key {op.foreign_key.qualified_name} will be dropped "
                    "- referential integrity will no longer be enforced"
                ),
                affected_entities=op.affected_entities,
                deferred=deferred,
            ))

        for op in summary.columns_to_add:
            column = op.column
            if column.is_nullable or column.default is not None or "identity" in column.extra:
                continue
            count = rows(column.table)
            if count == 0:
                continue
            risks.append(Risk(
                type=RiskType.CONSTRAINT_VIOLATION,
                severity=RiskSeverity.HIGH if count else RiskSeverity.MEDIUM,
                description=(
                    f"Column {column.qualified_name} is NOT NULL without a default "
                    "- adding it fails if the table has rows"
                ),
                affected_entities=op.affected_entities,
                row_count=count,
            ))

        for op in summary.columns_to_modify:
            count = rows(op.current.table)
            if count == 0:
                continue
            if "type" in op.changes and self._is_narrowing(op.current, op.desired):
                risks.append(Risk(
                    type=RiskType.DATA_LOSS,
                    severity=RiskSeverity.MEDIUM,
                    description=(
                        f"Column {op.current.qualified_name} changes type from "
                        f"{op.current.data_type} to {op.desired.data_type} "
                        "- existing values may be truncated or fail to convert"
                    ),
                    affected_entities=op.affected_entities,
                    row_count=count,
                ))
            if "nullable" in op.changes and not op.desired.is_nullable:
                risks.append(Risk(
                    type=RiskType.CONSTRAINT_VIOLATION,
                    severity=RiskSeverity.MEDIUM,
                    description=(
                        f"Column {op.current.qualified_name} becomes NOT NULL "
                        "- fails if existing rows contain NULL"
                    ),
                    affected_entities=op.affected_entities,
                    row_count=count,
                ))

        for op in summary.foreign_keys_to_add:
            fk = op.foreign_key
            referenced = fk.referenced_table
            if not (current.has_table(referenced) or desired.has_table(referenced)):
                risks.append(Risk(
                    type=RiskType.CONSTRAINT_VIOLATION,
                    severity=RiskSeverity.HIGH,
                    description=(
                        f"Foreign key {fk.qualified_name} references table {referenced} "
                        "which exists in neither the current nor the desired schema"
                    ),
                    affected_entities=op.affected_entities,
                ))
            else:
                risks.append(Risk(
                    type=RiskType.CONSTRAINT_VIOLATION,
                    severity=RiskSeverity.MEDIUM,
                    description=(
                        f"Foreign key {fk.qualified_name} will be added "
                        "- may fail if data violates the constraint"
                    ),
                    affected_entities=op.affected_entities,
                ))

        for op in summary.indexes_to_create:
            count = rows(op.index.table)
            if count is not None and count >= threshold:
                risks.append(Risk(
                    type=RiskType.PERFORMANCE,
                    severity=RiskSeverity.LOW,
                    description=(
                        f"Index {op.index.qualified_name} is built on a table "
                        f"with {count} rows - writes block while it builds"
                    ),
                    affected_entities=op.affected_entities,
                    row_count=count,
                ))

        for op in summary.tables_to_modify:
            if {"engine", "collation"} & set(op.changes):
                risks.append(Risk(
                    type=RiskType.DOWNTIME,
                    severity=RiskSeverity.MEDIUM,
                    description=(
                        f"Table {op.current.name} differs in {', '.join(op.changes)} "
                        "- a table rewrite is required and is not generated automatically"
                    ),
                    affected_entities=op.affected_entities,
                ))

        total = (
            len(summary.tables_to_create)
            + len(summary.columns_to_add)
            + len(summary.indexes_to_create)
        )
        if total > self.config.downtime_operation_threshold:
            risks.append(Risk(
                type=RiskType.DOWNTIME,
                severity=RiskSeverity.MEDIUM,
                description=(
                    f"Large migration with {total} operations "
                    "- may cause temporary downtime"
                ),
            ))

        return risks

    @staticmethod
    def _is_narrowing(current: ColumnInfo, desired: ColumnInfo) -> bool:
        current_type, length, precision, scale = type_signature(current)
        desired_type, new_length, new_precision, new_scale = type_signature(desired)
        if current_type != desired_type:
            return True
        return any(
            new is not None and old is not None and new < old
            for old, new in ((length, new_length), (precision, new_precision), (scale, new_scale))
        )

    # Step synthesis

    def _build_steps(self, summary: PlanSummary, include_drops: bool) -> list[Migration]:
        schema = self.config.schema_name
        migrations = []
        for migration_type in EXECUTION_ORDER:
            if migration_type.is_destructive and not include_drops:
                continue
            operations = getattr(summary, _SUMMARY_BUCKETS[migration_type])
            if not operations:
                continue
            migrations.append(Migration(
                type=migration_type,
                description=describe_step(migration_type, len(operations)),
                sql=tuple(stmt for op in operations for stmt in render_sql(op, schema)),
                operations=tuple(operations),
                affected_entities=tuple(
                    entity for op in operations for entity in op.affected_entities
                ),
            ))
        return migrations

    def _build_rollback(self, migrations: list[Migration]) -> RollbackPlan:
        schema = self.config.schema_name
        rollback = []
        irreversible = []

        for index in reversed(range(len(migrations))):
            migration = migrations[index]
            inverses = []
            for op in reversed(migration.operations):
                inverse = invert(op)
                if inverse is None:
                    irreversible.extend(op.affected_entities)
                else:
                    inverses.append(inverse)
            if not inverses:
                continue
            rollback.append(Migration(
                type=ROLLBACK_TYPES[migration.type],
                description=f"Undo: {migration.description}",
                sql=tuple(stmt for op in inverses for stmt in render_sql(op, schema)),
                operations=tuple(inverses),
                affected_entities=tuple(
                    entity for op in inverses for entity in op.affected_entities
                ),
                reverses=index,
            ))

        risks = []
        if irreversible:
            risks.append(Risk(
                type=RiskType.DATA_LOSS,
                severity=RiskSeverity.HIGH,
                description=(
                    f"{len(irreversible)} dropped tables/columns cannot be restored "
                    "by rolling back"
                ),
                affected_entities=tuple(irreversible),
            ))
        destroys = [
            entity
            for migration in rollback
            if migration.type in (MigrationType.DROP_TABLES, MigrationType.DROP_COLUMNS)
            for entity in migration.affected_entities
        ]
        if destroys:
            risks.append(Risk(
                type=RiskType.DATA_LOSS,
                severity=RiskSeverity.MEDIUM,
                description="Rollback will permanently delete any data added during migration",
                affected_entities=tuple(destroys),
            ))

        return RollbackPlan(
            migrations=tuple(rollback),
            risks=tuple(risks),
            irreversible=tuple(irreversible),
        )
