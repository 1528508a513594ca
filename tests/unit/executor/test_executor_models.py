"""Unit tests for execution state models."""

import pytest

from schema_migrator.exceptions import ConfigurationError, InvalidStateTransition, RollbackFailed
from schema_migrator.executor import (
    ExecuteOptions,
    ExecutionRecord,
    ExecutionResult,
    ExecutionStatus,
    StepResult,
    StepStatus,
)


class TestExecutionStatus:
    """Tests for the execution state machine."""

    def test_happy_path(self):
        result = ExecutionResult(execution_id="mig_1_abc")

        for status in (
            ExecutionStatus.VALIDATING,
            ExecutionStatus.VALID,
            ExecutionStatus.EXECUTING,
            ExecutionStatus.COMPLETED,
        ):
            result.transition(status)

        assert result.status.is_terminal
        assert result.history[0] is ExecutionStatus.PENDING

    def test_cannot_skip_validation(self):
        result = ExecutionResult(execution_id="mig_1_abc")

        with pytest.raises(InvalidStateTransition, match="pending to executing"):
            result.transition(ExecutionStatus.EXECUTING)

    def test_invalid_is_terminal(self):
        result = ExecutionResult(execution_id="mig_1_abc")
        result.transition(ExecutionStatus.VALIDATING)
        result.transition(ExecutionStatus.INVALID)

        with pytest.raises(InvalidStateTransition):
            result.transition(ExecutionStatus.EXECUTING)

    def test_only_failed_executions_roll_back(self):
        result = ExecutionResult(execution_id="mig_1_abc")
        for status in (
            ExecutionStatus.VALIDATING,
            ExecutionStatus.VALID,
            ExecutionStatus.EXECUTING,
            ExecutionStatus.COMPLETED,
        ):
            result.transition(status)

        with pytest.raises(InvalidStateTransition):
            result.transition(ExecutionStatus.ROLLED_BACK)

    def test_terminal_states(self):
        assert ExecutionStatus.ROLLBACK_FAILED.is_terminal
        assert not ExecutionStatus.FAILED.is_terminal


class TestStepResult:
    """Tests for per-step state."""

    def test_mark(self):
        step = StepResult(index=0, type="add_columns", description="Add 1 new column", sql=())

        step.mark(StepStatus.COMPLETED)
        step.mark(StepStatus.ROLLED_BACK)

        assert step.history == [StepStatus.COMPLETED, StepStatus.ROLLED_BACK]

    def test_failed_step_never_rolls_back(self):
        step = StepResult(index=1, type="add_columns", description="", sql=())
        step.mark(StepStatus.FAILED)

        with pytest.raises(InvalidStateTransition, match="Step 1"):
            step.mark(StepStatus.ROLLED_BACK)

    def test_to_dict(self):
        step = StepResult(index=2, type="create_indexes", description="Create 1 index",
                          sql=("CREATE INDEX x ON y (z)",))
        step.mark(StepStatus.DRY_RUN)

        data = step.to_dict()

        assert data["status"] == "dry_run"
        assert data["sql"] == ["CREATE INDEX x ON y (z)"]
        assert data["history"] == ["dry_run"]


class TestExecuteOptions:
    """Tests for option defaults and validation."""

    def test_defaults(self):
        options = ExecuteOptions()

        assert not options.dry_run
        assert not options.validate_only
        assert not options.skip_backup
        assert options.max_retries is None
        assert options.rollback_on_error
        assert not options.allow_critical_risks

    def test_negative_retries(self):
        with pytest.raises(ConfigurationError):
            ExecuteOptions(max_retries=-1)

    def test_negative_delay(self):
        with pytest.raises(ConfigurationError):
            ExecuteOptions(retry_delay=-0.5)


def test_record_keeps_unattached_rollback_errors(planner, church_schema, visitor_schema):
    plan = planner.plan(church_schema, visitor_schema)
    result = ExecutionResult(execution_id="mig_1_abc", error="boom")
    result.rollback_errors.append(RollbackFailed("lost connection"))

    record = ExecutionRecord.from_result(result, plan)

    assert record.error_message == "boom"
    assert record.results == [{"rollback_error": "lost connection", "step_index": None}]
    assert record.to_dict()["plan_summary"]["columns_to_add"][0]["entities"] == [
        "individuals.is_visitor"
    ]
