"""Execution engine error classes."""

from typing import Any, Dict, List, Optional

from taktak.exceptions import TaktakException, ValidationError


class ExecutionError(TaktakException):
    """Base class for all execution errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "details": self.details,
        }


class WorkflowExecutionError(ExecutionError):
    """Raised when a node or a workflow run fails."""

    def __init__(
        self,
        message: str,
        node_id: Optional[str] = None,
        workflow_id: Optional[str] = None,
        execution_id: Optional[str] = None,
        error_code: str = "WORKFLOW_EXECUTION_ERROR",
        **kwargs
    ):
        super().__init__(message, error_code=error_code, **kwargs)
        self.node_id = node_id
        self.workflow_id = workflow_id
        self.execution_id = execution_id
        self.details.update({
            "node_id": node_id,
            "workflow_id": workflow_id,
            "execution_id": execution_id,
        })


class DataValidationError(ExecutionError, ValidationError):
    """Raised when node configuration or input data is invalid."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        actual_value: Any = None,
        **kwargs
    ):
        super().__init__(message, error_code="VALIDATION_ERROR", **kwargs)
        self.field = field
        self.actual_value = actual_value
        if field is not None:
            self.details["field"] = field
        if actual_value is not None:
            self.details["actual_value"] = str(actual_value)


class ExternalServiceError(ExecutionError):
    """Raised when an external service answers with an error."""

    def __init__(
        self,
        message: str,
        service: str,
        status_code: Optional[int] = None,
        **kwargs
    ):
        super().__init__(message, error_code="EXTERNAL_SERVICE_ERROR", **kwargs)
        self.service = service
        self.status_code = status_code
        self.details.update({"service": service, "status_code": status_code})


class ExecutionTimeoutError(ExecutionError):
    """Raised when a node execution times out."""

    def __init__(self, message: str, timeout_ms: int, **kwargs):
        super().__init__(message, error_code="TIMEOUT", **kwargs)
        self.timeout_ms = timeout_ms
        self.details["timeout_ms"] = timeout_ms


class CircularDependencyError(ExecutionError):
    """Raised when a run walks back into a node already on its path."""

    def __init__(self, message: str, cycle_path: List[str], **kwargs):
        super().__init__(message, error_code="CIRCULAR_DEPENDENCY", **kwargs)
        self.cycle_path = cycle_path
        self.details["cycle_path"] = cycle_path
