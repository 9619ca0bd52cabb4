"""Workflow execution module.

``NodeExecutor`` lives in ``taktak.executor.engine`` and ``WorkflowRunner``
in ``taktak.executor.runner``; both depend on ``taktak.nodes``, which in
turn imports this package, so they are not re-exported here.
"""

from .context import Credentials, ExecutionContext
from .errors import (
    CircularDependencyError,
    DataValidationError,
    ExecutionError,
    ExecutionTimeoutError,
    ExternalServiceError,
    WorkflowExecutionError,
)

__all__ = [
    "Credentials",
    "ExecutionContext",
    "ExecutionError",
    "WorkflowExecutionError",
    "DataValidationError",
    "ExternalServiceError",
    "ExecutionTimeoutError",
    "CircularDependencyError",
]
