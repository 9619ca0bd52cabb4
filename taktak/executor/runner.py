"""Workflow runner: walk a workflow graph from its trigger."""

import asyncio
import json
import re
import uuid
from typing import Any, Dict, Mapping, Optional, Tuple, Union

import structlog

from taktak.config import Settings, settings as default_settings
from taktak.exceptions import TaktakException
from taktak.nodes.control import LoopHandler, passthrough_loop_body
from taktak.nodes.expression import get_path
from taktak.nodes.operators import compare
from taktak.nodes.registry import HandlerRegistry, create_default_registry
from taktak.nodes.triggers import describe_error
from taktak.workflows.models import (
    ExecutionStatus,
    NodeType,
    Workflow,
    WorkflowExecution,
    WorkflowNode,
)
from .context import Credentials, ExecutionContext
from .engine import NodeExecutor
from .errors import CircularDependencyError, ExecutionTimeoutError, WorkflowExecutionError

logger = structlog.get_logger()

# "field op value", e.g. "input.status == 'active'" or "count gte 3"
SYMBOLIC_CONDITION = re.compile(r"^\s*([\w.$]+)\s*(===|!==|==|!=|>=|<=|>|<)\s*(.+?)\s*$")
WORD_CONDITION = re.compile(
    r"^\s*([\w.$]+)\s+(eq|ne|gt|gte|lt|lte|contains|regex)\s+(.+?)\s*$"
)

# Connection conditions compare loosely, unlike the condition node's eq/ne
CONNECTION_OPERATORS = {"eq": "==", "ne": "!="}


def resolve_field(field: str, context: ExecutionContext) -> Any:
    """Dot path rooted at ``input``/``variables``, else a variable or input key."""
    head, _, rest = field.partition(".")
    if head in ("input", "variables") and rest:
        return get_path(getattr(context, head), rest)

    value = context.variables.get(head)
    if value is None:
        value = context.input.get(head)
    return get_path(value, rest) if rest else value


def _strip_quotes(text: str) -> str:
    if len(text) >= 2 and text[0] == text[-1] and text[0] in ("'", '"'):
        return text[1:-1]
    return text


def evaluate_condition(condition: Union[str, Mapping[str, Any]], context: ExecutionContext) -> bool:
    """Evaluate a connection condition.

    Accepts a ``{field, operator, value}`` mapping, a ``{conditions, logic}``
    mapping, either of those as a JSON string, or a ``field op value``
    expression. Malformed conditions evaluate to False.
    """
    if isinstance(condition, str):
        try:
            parsed = json.loads(condition)
        except ValueError:
            return _evaluate_expression(condition, context)
        if not isinstance(parsed, dict):
            logger.warning("Invalid condition format", condition=condition)
            return False
        condition = parsed

    try:
        if condition.get("field") and condition.get("operator") and "value" in condition:
            return _compare_field(condition["field"], condition["operator"], condition["value"], context)

        clauses = condition.get("conditions")
        if isinstance(clauses, list):
            results = [
                _compare_field(clause.get("field", ""), clause.get("operator", ""), clause.get("value"), context)
                for clause in clauses
            ]
            if condition.get("logic", "and") == "or":
                return any(results)
            return all(results)
    except TaktakException as e:
        logger.warning("Condition evaluation failed", condition=condition, error=str(e))
        return False

    logger.warning("Invalid condition format", condition=condition)
    return False


def _evaluate_expression(expression: str, context: ExecutionContext) -> bool:
    match = SYMBOLIC_CONDITION.match(expression) or WORD_CONDITION.match(expression)
    if not match:
        logger.warning("Could not parse condition expression", expression=expression)
        return False

    field, operator, raw_value = match.groups()
    try:
        return _compare_field(field, operator, _strip_quotes(raw_value), context)
    except TaktakException as e:
        logger.warning("Condition evaluation failed", condition=expression, error=str(e))
        return False


def _compare_field(field: str, operator: str, expected: Any, context: ExecutionContext) -> bool:
    operator = CONNECTION_OPERATORS.get(operator, operator)
    return compare(operator, resolve_field(field, context), expected)


class WorkflowRun:
    """State of one workflow execution."""

    def __init__(
        self,
        runner: "WorkflowRunner",
        workflow: Workflow,
        execution: WorkflowExecution,
    ):
        self.workflow = workflow
        self.execution = execution
        self.settings = runner.settings
        self.logger = logger.bind(
            component="workflow_run",
            workflow_id=workflow.id,
            execution_id=execution.id,
        )

        registry = runner.registry
        if registry.has(NodeType.LOOP):
            # Loop bodies of this run execute the workflow's loop sub-graph
            registry = registry.copy()
            registry.replace(LoopHandler(loop_body=self.run_loop_body, settings=self.settings))
        self.executor = NodeExecutor(registry=registry)

    async def walk(self, node: WorkflowNode, context: ExecutionContext, path: Tuple[str, ...] = ()) -> Any:
        """Run a node, then every successor whose connection condition holds."""
        if node.id in path:
            cycle = list(path) + [node.id]
            raise CircularDependencyError(
                f"Circular dependency detected: {' -> '.join(cycle)}",
                cycle_path=cycle,
            )
        path = path + (node.id,)

        result = await self.run_node(node, context)
        context.variables[node.id] = result

        for connection in self.workflow.outgoing(node.id):
            if connection.condition and not evaluate_condition(connection.condition, context):
                self.execution.add_log(
                    "info",
                    f"Skipping connection {connection.source} -> {connection.target}: condition not met",
                    node.id,
                )
                continue

            next_node = self.workflow.get_node(connection.target)
            if next_node is None:
                self.logger.warning("Connection target not found", source=node.id, target=connection.target)
                continue
            await self.walk(next_node, context, path)

        return result

    async def run_node(self, node: WorkflowNode, context: ExecutionContext) -> Any:
        """Execute one node under its execution policy."""
        policy = node.execution_config
        attempts = policy.retries + 1

        self.execution.add_log("info", f"Executing node: {node.name or node.id}", node.id)

        for attempt in range(1, attempts + 1):
            try:
                result = await self._execute_with_timeout(node, context)
            except (WorkflowExecutionError, ExecutionTimeoutError) as e:
                if attempt < attempts:
                    self.logger.warning(
                        "Will retry node execution",
                        node_id=node.id,
                        attempt=attempt,
                        max_attempts=attempts,
                        error=str(e),
                    )
                    self.execution.add_log(
                        "warn", f"Retrying node {node.name or node.id} ({attempt}/{policy.retries})", node.id
                    )
                    await asyncio.sleep(policy.retry_delay / 1000)
                    continue

                self.execution.add_log("error", f"Node failed: {e}", node.id)
                if policy.continue_on_error:
                    self.logger.warning("Continuing after node failure", node_id=node.id, error=str(e))
                    result = {"error": describe_error(_root_error(e)), "continuedOnError": True}
                    self.execution.results[node.id] = result
                    return result
                raise NodeFailure(node, e) from e

            self.execution.results[node.id] = result
            self.execution.add_log("info", f"Node completed: {node.name or node.id}", node.id)
            return result

    async def _execute_with_timeout(self, node: WorkflowNode, context: ExecutionContext) -> Any:
        timeout_ms = node.execution_config.timeout
        if not timeout_ms:
            return await self.executor.execute(node, context)

        try:
            return await asyncio.wait_for(self.executor.execute(node, context), timeout=timeout_ms / 1000)
        except asyncio.TimeoutError as e:
            raise ExecutionTimeoutError(
                f"Node execution timed out after {timeout_ms} ms",
                timeout_ms=timeout_ms,
                details={"node_id": node.id},
            ) from e

    async def run_loop_body(self, node: WorkflowNode, item: Any, scope: ExecutionContext) -> Any:
        """Execute the nodes on a loop node's ``loop`` output for one item.

        Returns the result of the last body node executed. A loop without body
        nodes echoes each item.
        """
        body_edges = self.workflow.outgoing(node.id, output="loop")
        if not body_edges:
            return await passthrough_loop_body(node, item, scope)

        before = set(scope.variables)
        for connection in body_edges:
            if connection.condition and not evaluate_condition(connection.condition, scope):
                continue
            body_node = self.workflow.get_node(connection.target)
            if body_node is None:
                continue
            try:
                await self.walk(body_node, scope, (node.id,))
            except NodeFailure as failure:
                # The loop's per-item policy decides what a body failure means
                raise failure.error

        executed = [key for key in scope.variables if key not in before]
        return scope.variables[executed[-1]] if executed else None

    async def run_error_triggers(self, error: BaseException, failed_node: Optional[WorkflowNode],
                                 context: ExecutionContext) -> None:
        """Run error trigger nodes with the failure bound into the context."""
        triggers = self.workflow.error_trigger_nodes()
        if not triggers:
            return

        error_context = context.with_bindings({"$error": error, "$failedNode": failed_node})
        for trigger in triggers:
            try:
                result = await self.executor.execute(trigger, error_context)
            except WorkflowExecutionError as e:
                self.logger.error("Error trigger failed", node_id=trigger.id, error=str(e))
                self.execution.add_log("error", f"Error trigger failed: {e}", trigger.id)
                continue

            self.execution.results[trigger.id] = result
            error_context.variables[trigger.id] = result
            if not (isinstance(result, dict) and result.get("triggered")):
                continue

            self.execution.add_log("info", f"Error trigger fired: {trigger.name or trigger.id}", trigger.id)
            for connection in self.workflow.outgoing(trigger.id):
                next_node = self.workflow.get_node(connection.target)
                if next_node is None:
                    continue
                try:
                    await self.walk(next_node, error_context, (trigger.id,))
                except (NodeFailure, CircularDependencyError) as e:
                    self.logger.error("Error handler branch failed", node_id=next_node.id, error=str(e))
                    self.execution.add_log("error", f"Error handler branch failed: {e}", next_node.id)


class NodeFailure(Exception):
    """A node failed after its retries were exhausted."""

    def __init__(self, node: WorkflowNode, error: Exception):
        super().__init__(str(error))
        self.node = node
        self.error = error


def _root_error(error: BaseException) -> BaseException:
    """The handler's exception behind the executor's wrapper."""
    if isinstance(error, WorkflowExecutionError) and error.__cause__ is not None:
        return error.__cause__
    return error


class WorkflowRunner:
    """Execute whole workflows and produce execution records.

    Node failures never propagate out of ``run``; they are recorded on the
    returned ``WorkflowExecution``.
    """

    def __init__(self, registry: Optional[HandlerRegistry] = None, settings: Optional[Settings] = None):
        self.settings = settings or default_settings
        self.registry = registry or create_default_registry(settings=self.settings)
        self.logger = logger.bind(component="workflow_runner")

    async def run(
        self,
        workflow: Workflow,
        input_data: Optional[Dict[str, Any]] = None,
        credentials: Optional[Credentials] = None,
        execution_id: Optional[str] = None,
    ) -> WorkflowExecution:
        """Execute a workflow from its trigger node."""
        execution = WorkflowExecution(
            id=execution_id or f"execution:{uuid.uuid4().hex}",
            workflow_id=workflow.id,
            workflow_name=workflow.name,
            status=ExecutionStatus.RUNNING,
        )
        run = WorkflowRun(self, workflow, execution)
        context = ExecutionContext(
            input=dict(input_data or {}),
            variables={"$workflowId": workflow.id, "$executionId": execution.id},
            credentials=credentials,
        )

        self.logger.info("Starting workflow execution", workflow_id=workflow.id, execution_id=execution.id)
        execution.add_log("info", "Workflow execution started")

        trigger = workflow.get_trigger_node()
        if trigger is None:
            execution.error = {"message": "Workflow has no trigger node", "type": "ValidationError"}
            execution.add_log("error", "Workflow execution failed: Workflow has no trigger node")
            execution.finish(ExecutionStatus.FAILED)
            return execution

        try:
            await run.walk(trigger, context)
        except NodeFailure as failure:
            self._fail(execution, failure.error, failure.node)
            await run.run_error_triggers(_root_error(failure.error), failure.node, context)
        except CircularDependencyError as e:
            self._fail(execution, e, None)
            await run.run_error_triggers(e, None, context)
        else:
            execution.add_log("info", "Workflow execution completed successfully")
            execution.finish(ExecutionStatus.SUCCESS)
            self.logger.info(
                "Workflow execution completed",
                workflow_id=workflow.id,
                execution_id=execution.id,
                duration_ms=execution.duration_ms,
            )

        return execution

    def _fail(self, execution: WorkflowExecution, error: BaseException, node: Optional[WorkflowNode]) -> None:
        execution.error = {**describe_error(error), "nodeId": node.id if node else None}
        execution.add_log("error", f"Workflow execution failed: {error}", node.id if node else None)
        execution.finish(ExecutionStatus.FAILED)
        self.logger.error(
            "Workflow execution failed",
            workflow_id=execution.workflow_id,
            execution_id=execution.id,
            node_id=node.id if node else None,
            error=str(error),
            duration_ms=execution.duration_ms,
        )
