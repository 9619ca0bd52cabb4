"""Tests for configuration, models, errors and logging setup."""

import pytest
import structlog

from taktak.config import Settings, get_settings
from taktak.executor.context import Credentials, ExecutionContext
from taktak.executor.errors import (
    CircularDependencyError,
    DataValidationError,
    ExternalServiceError,
    WorkflowExecutionError,
)
from taktak.exceptions import TaktakException, ValidationError
from taktak.logging import setup_logging
from taktak.workflows.models import (
    ExecutionStatus,
    NodeType,
    Workflow,
    WorkflowExecution,
    WorkflowNode,
)


@pytest.mark.unit
class TestSettings:
    """Settings."""

    def test_defaults(self):
        settings = Settings()
        assert settings.max_loop_iterations == 1000
        assert settings.default_batch_size == 1
        assert settings.http_timeout == 30.0

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("TAKTAK_MAX_LOOP_ITERATIONS", "50")
        monkeypatch.setenv("TAKTAK_ENVIRONMENT", "production")
        settings = Settings()
        assert settings.max_loop_iterations == 50
        assert settings.is_production

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()


@pytest.mark.unit
class TestModels:
    """Workflow models."""

    def test_node_type_accepts_upper_case(self):
        assert NodeType("HTTP_REQUEST") is NodeType.HTTP_REQUEST
        with pytest.raises(ValueError):
            NodeType("teleport")

    def test_node_defaults(self):
        node = WorkflowNode(id="n1", type="delay")
        assert node.config == {}
        assert node.execution_config.retries == 0
        assert node.execution_config.retry_delay == 1000
        assert node.execution_config.continue_on_error is False

    def test_workflow_aliases(self):
        workflow = Workflow.model_validate({
            "_id": "wf",
            "nodes": [
                {"id": "hook", "type": "webhook"},
                {"id": "next", "type": "delay", "executionConfig": {"retries": 2, "retryDelay": 5}},
                {"id": "oops", "type": "error_trigger"},
            ],
            "connections": [
                {"from": "hook", "to": "next"},
                {"from": "next", "to": "hook", "output": "loop"},
            ],
        })
        assert workflow.get_trigger_node().id == "hook"
        assert workflow.get_node("next").execution_config.retry_delay == 5
        assert [c.target for c in workflow.outgoing("hook")] == ["next"]
        assert workflow.outgoing("next") == []
        assert [n.id for n in workflow.error_trigger_nodes()] == ["oops"]

    def test_inline_trigger(self):
        workflow = Workflow.model_validate({
            "_id": "wf",
            "trigger": {"id": "t", "type": "schedule", "config": {"schedule": "* * * * *"}},
        })
        assert workflow.get_trigger_node().type == NodeType.SCHEDULE
        assert workflow.get_node("t") is not None

    def test_execution_finish(self):
        execution = WorkflowExecution(id="e", workflow_id="wf")
        execution.add_log("info", "started")
        execution.finish(ExecutionStatus.SUCCESS)
        assert execution.status == ExecutionStatus.SUCCESS
        assert execution.duration_ms >= 0
        assert execution.logs[0].message == "started"


@pytest.mark.unit
class TestContext:
    """Execution context and credentials."""

    def test_with_variables_copies(self):
        ctx = ExecutionContext(input={"a": 1}, variables={"x": 1})
        child = ctx.with_variables(y=2)
        assert child.variables == {"x": 1, "y": 2}
        assert ctx.variables == {"x": 1}
        assert child.input is ctx.input

    def test_credentials(self):
        credentials = Credentials({"slack": {"token": "secret"}})
        assert credentials.get_secret("slack", "token") == "secret"
        assert credentials.get_secret("github", "token", "none") == "none"
        assert credentials.resolve("inline", "slack", "token") == "inline"
        assert credentials.resolve("", "slack", "token") == "secret"
        assert "secret" not in repr(credentials)
        assert list(credentials) == ["slack"]


@pytest.mark.unit
class TestErrors:
    """Error taxonomy."""

    def test_workflow_execution_error(self):
        error = WorkflowExecutionError("failed", node_id="n1", workflow_id="wf")
        assert error.to_dict()["details"]["node_id"] == "n1"
        assert error.error_code == "WORKFLOW_EXECUTION_ERROR"
        assert isinstance(error, TaktakException)

    def test_data_validation_error_is_validation_error(self):
        error = DataValidationError("bad", field="url", actual_value=3)
        assert isinstance(error, ValidationError)
        assert error.details == {"field": "url", "actual_value": "3"}

    def test_external_service_error(self):
        error = ExternalServiceError("HTTP request failed: 503 Service Unavailable", "api", status_code=503)
        assert error.details["status_code"] == 503

    def test_circular_dependency_error(self):
        error = CircularDependencyError("cycle", cycle_path=["a", "b", "a"])
        assert error.cycle_path == ["a", "b", "a"]


@pytest.mark.unit
class TestLogging:
    """Logging setup."""

    @pytest.mark.parametrize("fmt", ["json", "console"])
    def test_setup_logging(self, fmt):
        setup_logging(level="debug", fmt=fmt)
        assert structlog.is_configured()
        structlog.reset_defaults()
