"""Convergence properties of generated plans."""

from dataclasses import replace

import pytest

from schema_migrator.catalog import ColumnInfo
from schema_migrator.planner import apply_operations


@pytest.fixture
def desired(church_schema, three_step_schema):
    """Desired schema touching every kind of change the planner emits."""
    columns = tuple(
        replace(c, data_type="varchar(150)", character_maximum_length=None)
        if c.qualified_name == "individuals.first_name" else c
        for c in three_step_schema.columns
        if c.qualified_name != "individuals.legacy_notes"
    )
    return replace(
        three_step_schema,
        columns=columns,
        indexes=tuple(
            i for i in three_step_schema.indexes if i.name != "idx_attendance_event"
        ),
        foreign_keys=tuple(
            replace(fk, on_delete="SET NULL") if fk.name == "fk_attendance_event" else fk
            for fk in three_step_schema.foreign_keys
        ),
    )


@pytest.fixture
def additive(three_step_schema):
    """Desired schema reachable without dropping anything."""
    first_name = ColumnInfo(
        "individuals", "first_name", "character varying", is_nullable=False,
        ordinal_position=2, character_maximum_length=150,
    )
    return replace(
        three_step_schema,
        columns=tuple(
            first_name if c.qualified_name == "individuals.first_name" else c
            for c in three_step_schema.columns
        ),
        foreign_keys=tuple(
            replace(fk, on_update="CASCADE") if fk.name == "fk_attendance_individual" else fk
            for fk in three_step_schema.foreign_keys
        ),
    )


def test_applying_plan_reaches_desired(planner, church_schema, desired):
    plan = planner.plan(church_schema, desired, include_drops=True)

    assert plan.preview(church_schema).structure() == desired.structure()


def test_replanning_after_apply_is_empty(planner, church_schema, desired):
    plan = planner.plan(church_schema, desired, include_drops=True)
    migrated = plan.preview(church_schema)

    follow_up = planner.plan(migrated, desired, include_drops=True)

    assert follow_up.summary.is_empty
    assert follow_up.is_empty


def test_rollback_restores_original(planner, church_schema, additive):
    plan = planner.plan(church_schema, additive)
    assert plan.rollback_plan.irreversible == ()

    migrated = plan.preview(church_schema)
    undo = [op for m in plan.rollback_plan.migrations for op in m.operations]
    restored = apply_operations(migrated, undo)

    assert migrated.structure() != church_schema.structure()
    assert restored.structure() == church_schema.structure()
    assert planner.plan(restored, church_schema, include_drops=True).summary.is_empty


def test_every_reversible_step_has_rollback(planner, church_schema, additive):
    plan = planner.plan(church_schema, additive)

    for index in range(len(plan.migrations)):
        rollback = plan.rollback_plan.for_step(index)
        assert rollback is not None
        assert rollback.reverses == index
