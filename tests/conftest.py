"""Pytest configuration and fixtures."""

import os

import pytest

os.environ.setdefault("TAKTAK_ENVIRONMENT", "testing")

from taktak.config import Settings
from taktak.executor.context import Credentials, ExecutionContext
from taktak.metrics import metrics
from taktak.workflows.models import NodeType, WorkflowNode


@pytest.fixture
def test_settings():
    """Settings for tests."""
    return Settings(
        environment="testing",
        max_loop_iterations=1000,
    )


@pytest.fixture
def context():
    """Empty execution context."""
    return ExecutionContext()


@pytest.fixture
def make_context():
    """Build an execution context from plain dicts."""
    def _make(input=None, variables=None, credentials=None):
        return ExecutionContext(
            input=input or {},
            variables=variables or {},
            credentials=Credentials(credentials) if credentials else None,
        )
    return _make


@pytest.fixture
def make_node():
    """Build a workflow node."""
    def _make(node_type, config=None, node_id="node-1", name=None, **kwargs):
        return WorkflowNode(
            id=node_id,
            type=NodeType(node_type),
            name=name or node_id,
            config=config or {},
            **kwargs
        )
    return _make


@pytest.fixture(autouse=True)
def reset_metrics():
    """Reset the global metrics collector between tests."""
    metrics.reset()
    yield
    metrics.reset()
