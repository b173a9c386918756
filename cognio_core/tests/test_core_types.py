"""Tests for errors and the data model."""

import dataclasses
import threading

import pytest
from pydantic import ValidationError

from cognio_core.errors import AgentError, ErrorCode, normalize_error
from cognio_core.types import (
    AgentConfig,
    AgentResult,
    BackoffStrategy,
    ErrorStrategy,
    ExecutionContext,
    RetryConfig,
    StepResult,
    WorkflowConfig,
    WorkflowResult,
    copy_payload,
)


class TestAgentError:
    """Test cases for AgentError and normalize_error."""

    def test_defaults(self):
        """Test that code and details have defaults."""
        error = AgentError("boom")
        assert error.message == "boom"
        assert error.code == ErrorCode.UNKNOWN_ERROR
        assert error.details == {}
        assert str(error) == "boom"

    def test_normalize_passes_agent_errors_through(self):
        """Test that AgentError instances are returned untouched."""
        error = AgentError("bad", "CUSTOM_CODE", {"field": "email"})
        assert normalize_error(error) is error

    def test_normalize_wraps_other_exceptions(self):
        """Test that foreign exceptions are wrapped and preserved."""
        original = ValueError("invalid literal")
        error = normalize_error(original)

        assert isinstance(error, AgentError)
        assert error.code == ErrorCode.UNKNOWN_ERROR
        assert error.message == "invalid literal"
        assert error.details["original_error"] is original

    def test_normalize_uses_class_name_for_empty_message(self):
        """Test that an exception without a message still gets one."""
        error = normalize_error(KeyError())
        assert error.message == "KeyError"

    def test_normalize_non_exception_value(self):
        """Test that arbitrary raised values are stringified."""
        error = normalize_error(42)
        assert error.message == "42"
        assert error.details["original_error"] == 42

    def test_to_dict(self):
        """Test conversion to a JSON friendly dictionary."""
        error = normalize_error(RuntimeError("down"))
        data = error.to_dict()

        assert data["message"] == "down"
        assert data["code"] == ErrorCode.UNKNOWN_ERROR
        assert data["details"]["original_error"] == repr(RuntimeError("down"))


class TestConfigModels:
    """Test cases for the pydantic configuration models."""

    def test_retry_defaults(self):
        """Test RetryConfig defaults."""
        retry = RetryConfig()
        assert retry.max_attempts == 3
        assert retry.delay == 1.0
        assert retry.backoff == BackoffStrategy.EXPONENTIAL
        assert retry.max_delay is None

    def test_retry_accepts_string_backoff(self):
        """Test that backoff strategies can be given by name."""
        assert RetryConfig(backoff="linear").backoff == BackoffStrategy.LINEAR

    @pytest.mark.parametrize(
        "kwargs",
        [{"max_attempts": 0}, {"delay": -0.1}, {"max_delay": -1}, {"backoff": "random"}],
    )
    def test_retry_rejects_invalid_values(self, kwargs):
        """Test that invalid retry settings are rejected at construction."""
        with pytest.raises(ValidationError):
            RetryConfig(**kwargs)

    def test_agent_config_rejects_non_positive_timeout(self):
        """Test that a zero timeout is invalid."""
        with pytest.raises(ValidationError):
            AgentConfig(name="agent", timeout=0)

    def test_workflow_config_error_strategy(self):
        """Test that the error strategy is parsed from its name."""
        config = WorkflowConfig(name="wf", on_error="continue")
        assert config.on_error == ErrorStrategy.CONTINUE


class TestCopyPayload:
    """Test cases for copy_payload."""

    def test_plain_data_is_deep_copied(self):
        """Test that nested containers are not shared."""
        payload = {"items": [1, 2]}

        copied = copy_payload(payload)

        assert copied == payload
        assert copied["items"] is not payload["items"]

    def test_lock_in_container_is_shared(self):
        """Test that a container holding a lock is copied shallowly."""
        lock = threading.Lock()
        payload = {"lock": lock}

        copied = copy_payload(payload)

        assert copied is not payload
        assert copied["lock"] is lock

    def test_bare_lock_is_returned_as_is(self):
        """Test that a value which cannot be copied at all is reused."""
        lock = threading.Lock()

        assert copy_payload(lock) is lock

    def test_snapshot_with_lock(self):
        """Test that snapshots of contexts holding locks succeed."""
        lock = threading.Lock()
        context = ExecutionContext(id="ctx-1", data={"lock": lock}, metadata={"lock": lock})

        snapshot = context.snapshot()

        assert snapshot.data["lock"] is lock
        assert context.to_dict()["metadata"]["lock"] is lock


class TestRuntimeRecords:
    """Test cases for context and result records."""

    def test_snapshot_is_independent(self):
        """Test that a snapshot shares no mutable state with the context."""
        step = StepResult(step="a", success=True)
        context = ExecutionContext(
            id="run-1", data={"items": [1]}, metadata={"user": {"id": 1}}, history=[step]
        )

        snapshot = context.snapshot()
        snapshot.data["items"].append(2)
        snapshot.metadata["user"]["id"] = 2
        snapshot.history.append(StepResult(step="b", success=True))

        assert context.data == {"items": [1]}
        assert context.metadata == {"user": {"id": 1}}
        assert context.history == [step]
        assert snapshot.id == context.id
        assert snapshot.timestamp == context.timestamp

    def test_step_result_is_frozen(self):
        """Test that step results cannot be modified after creation."""
        result = StepResult(step="a", success=True)
        with pytest.raises(dataclasses.FrozenInstanceError):
            result.success = False

    def test_step_result_to_dict(self):
        """Test serialization of a failed step."""
        result = StepResult(step="a", success=False, error=AgentError("bad", "X"))
        data = result.to_dict()

        assert data["step"] == "a"
        assert data["success"] is False
        assert data["error"]["code"] == "X"
        assert data["skipped"] is False
        assert data["started_at"] is None

    def test_workflow_result_failed_steps(self):
        """Test that failed step names are derived from the step list."""
        result = WorkflowResult(
            success=True,
            steps=[
                StepResult(step="a", success=True),
                StepResult(step="b", success=False, error=AgentError("x")),
                StepResult(step="c", success=True, skipped=True),
            ],
        )
        assert result.failed_steps == ["b"]
        assert len(result.to_dict()["steps"]) == 3

    def test_agent_result_to_dict(self):
        """Test serialization of an agent result."""
        result = AgentResult(success=True, data={"id": 1}, execution_time=0.5, metadata={"k": "v"})
        assert result.to_dict() == {
            "success": True,
            "data": {"id": 1},
            "error": None,
            "execution_time": 0.5,
            "metadata": {"k": "v"},
        }
