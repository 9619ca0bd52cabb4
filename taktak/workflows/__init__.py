"""Workflow module."""

from .models import (
    ExecutionLog,
    ExecutionStatus,
    NodeExecutionConfig,
    NodeType,
    Position,
    TRIGGER_TYPES,
    Workflow,
    WorkflowConnection,
    WorkflowExecution,
    WorkflowNode,
)

__all__ = [
    "Workflow",
    "WorkflowNode",
    "WorkflowConnection",
    "WorkflowExecution",
    "ExecutionLog",
    "ExecutionStatus",
    "NodeExecutionConfig",
    "NodeType",
    "Position",
    "TRIGGER_TYPES",
]
