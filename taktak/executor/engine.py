"""Node executor: dispatch a node to the handler registered for its type."""

import time
from typing import Any, List, Optional

import structlog

from taktak.config import Settings
from taktak.metrics import metrics
from taktak.nodes.control import LoopBody
from taktak.nodes.registry import HandlerRegistry, create_default_registry
from taktak.workflows.models import NodeType, WorkflowNode
from .context import ExecutionContext
from .errors import WorkflowExecutionError

logger = structlog.get_logger()


class NodeExecutor:
    """Execute single nodes against an execution context."""

    def __init__(
        self,
        registry: Optional[HandlerRegistry] = None,
        loop_body: Optional[LoopBody] = None,
        settings: Optional[Settings] = None,
    ):
        self.registry = registry or create_default_registry(loop_body=loop_body, settings=settings)
        self.logger = logger.bind(component="node_executor")

    def has_handler(self, node_type: NodeType) -> bool:
        """Check whether a node type can be executed."""
        return self.registry.has(node_type)

    def registered_types(self) -> List[NodeType]:
        """Node types this executor can run."""
        return self.registry.node_types()

    async def execute(self, node: WorkflowNode, context: ExecutionContext) -> Any:
        """Execute a node and return the handler's result unchanged.

        Raises:
            WorkflowExecutionError: no handler is registered for the node type,
                or the handler raised. The handler's exception is chained as
                ``__cause__``.
        """
        handler = self.registry.get(node.type)
        if handler is None:
            raise WorkflowExecutionError(
                f"No handler for node type: {node.type.value}",
                node_id=node.id,
                error_code="NO_HANDLER",
            )

        tags = {"node_type": node.type.value}
        self.logger.info("Executing node", node_id=node.id, node_type=node.type.value, node_name=node.name)
        started = time.perf_counter()

        try:
            result = await handler.execute(node, context)
        except Exception as e:
            duration_ms = (time.perf_counter() - started) * 1000
            self.logger.error(
                "Node execution failed",
                node_id=node.id,
                node_type=node.type.value,
                error=str(e),
                error_type=type(e).__name__,
                duration_ms=round(duration_ms, 2),
                exc_info=True,
            )
            metrics.increment("node_executions_total", tags={**tags, "status": "failed"})
            metrics.histogram("node_execution_duration_ms", duration_ms, tags=tags)
            raise WorkflowExecutionError(f"Node execution failed: {e}", node_id=node.id) from e

        duration_ms = (time.perf_counter() - started) * 1000
        self.logger.info(
            "Node execution completed",
            node_id=node.id,
            node_type=node.type.value,
            duration_ms=round(duration_ms, 2),
        )
        metrics.increment("node_executions_total", tags={**tags, "status": "success"})
        metrics.histogram("node_execution_duration_ms", duration_ms, tags=tags)
        return result
