"""Control flow handlers: condition, loop and delay."""

import asyncio
import math
from typing import Any, Awaitable, Callable, Dict, List, Optional

from taktak.config import Settings, settings as default_settings
from taktak.executor.context import ExecutionContext
from taktak.executor.errors import DataValidationError, WorkflowExecutionError
from taktak.workflows.models import NodeType, WorkflowNode
from .base import NodeCategory, NodeDefinition, NodeHandler, NodeParameter, ParameterType
from .expression import ExpressionEvaluator, get_path
from .operators import OPERATORS, ORDERING_OPERATORS, compare, to_number
from .schemas import ConditionClause, ConditionConfig, DelayConfig, LoopConfig


class ConditionHandler(NodeHandler[ConditionConfig]):
    """Evaluate a comparison, or several combined with and/or."""

    node_type = NodeType.CONDITION
    config_model = ConditionConfig

    async def execute(self, node: WorkflowNode, context: ExecutionContext) -> Dict[str, Any]:
        """Execute condition."""
        config = self.parse_config(node)

        if config.conditions is not None:
            return self._evaluate_conditions(node, config, context)

        if not config.operator:
            raise DataValidationError("Operator is required for condition", field="operator")

        left = self.resolve(config.left_value, context)
        right = self.resolve(config.right_value, context)
        result = compare(config.operator, left, right)

        self.logger.debug(
            "Condition evaluated",
            node_id=node.id,
            operator=config.operator,
            result=result,
        )
        return {
            "result": result,
            "leftValue": left,
            "rightValue": right,
            "operator": config.operator,
        }

    def _evaluate_conditions(
        self,
        node: WorkflowNode,
        config: ConditionConfig,
        context: ExecutionContext,
    ) -> Dict[str, Any]:
        self.logger.info(
            "Evaluating conditions",
            node_id=node.id,
            condition_count=len(config.conditions),
            logic=config.logic,
        )

        results = [self._evaluate_clause(clause, context) for clause in config.conditions]
        condition_met = all(results) if config.logic == "and" else any(results)

        self.logger.info("Condition evaluation completed", node_id=node.id, result=condition_met)
        return {"conditionMet": condition_met, "results": results}

    def _evaluate_clause(self, clause: ConditionClause, context: ExecutionContext) -> bool:
        left = self.get_field_value(clause.field, context)
        right = self.resolve(clause.value, context)
        # An absent field is not a number, so it never orders against a value
        if left is None and clause.operator in ORDERING_OPERATORS:
            return False
        return compare(clause.operator, left, right)

    @staticmethod
    def get_field_value(field: str, context: ExecutionContext) -> Any:
        """Dot-path lookup; the first segment reads variables, then input."""
        head, _, rest = field.partition(".")
        value = context.variables.get(head)
        if value is None:
            value = context.input.get(head)
        return get_path(value, rest) if rest else value

    @classmethod
    def get_definition(cls) -> NodeDefinition:
        """Get node definition."""
        return NodeDefinition(
            name="Condition",
            type=NodeType.CONDITION,
            category=NodeCategory.FLOW,
            description="Compare two values, or combine several conditions with and/or",
            parameters=[
                NodeParameter(name="leftValue", type=ParameterType.EXPRESSION),
                NodeParameter(
                    name="operator",
                    type=ParameterType.OPTIONS,
                    required=True,
                    options=sorted(OPERATORS),
                ),
                NodeParameter(name="rightValue", type=ParameterType.EXPRESSION),
                NodeParameter(name="conditions", type=ParameterType.ARRAY),
                NodeParameter(
                    name="logic",
                    type=ParameterType.OPTIONS,
                    default="and",
                    options=["and", "or"],
                ),
            ],
        )


LoopBody = Callable[[WorkflowNode, Any, ExecutionContext], Awaitable[Any]]


async def passthrough_loop_body(node: WorkflowNode, item: Any, scope: ExecutionContext) -> Dict[str, Any]:
    """Default loop body: echo the item with its position."""
    return {
        "item": item,
        "processed": True,
        "context": {
            "index": scope.variables["$index"],
            "iteration": scope.variables["$iteration"],
        },
    }


def _plain_number(value: float) -> Any:
    return int(value) if value.is_integer() else value


class LoopHandler(NodeHandler[LoopConfig]):
    """Iterate over a list, running the loop body once per item."""

    node_type = NodeType.LOOP
    config_model = LoopConfig

    def __init__(
        self,
        loop_body: Optional[LoopBody] = None,
        settings: Optional[Settings] = None,
        expression_evaluator: Optional[ExpressionEvaluator] = None,
    ):
        super().__init__(expression_evaluator)
        self.loop_body = loop_body or passthrough_loop_body
        self.settings = settings or default_settings

    async def execute(self, node: WorkflowNode, context: ExecutionContext) -> Dict[str, Any]:
        """Execute loop."""
        config = self.parse_config(node)

        self.logger.info("Starting loop execution", node_id=node.id, node_name=node.name)

        try:
            return await self._run(node, config, context)
        except Exception as e:
            self.logger.error("Loop execution failed", node_id=node.id, error=str(e))
            raise

    async def _run(self, node: WorkflowNode, config: LoopConfig, context: ExecutionContext) -> Dict[str, Any]:
        items = self.resolve_items(config, context)

        if not items:
            self.logger.info("Loop has no items to process", node_id=node.id)
            return {"items": [], "count": 0}

        max_iterations = config.max_iterations or self.settings.max_loop_iterations
        if len(items) > max_iterations:
            raise DataValidationError(
                f"Loop exceeds maximum iterations limit: {len(items)} > {max_iterations}",
                field="maxIterations",
            )

        batch_size = config.batch_size or self.settings.default_batch_size
        results: List[Any] = []
        errors: List[Dict[str, Any]] = []

        for start in range(0, len(items), batch_size):
            batch = items[start:start + batch_size]

            for offset, item in enumerate(batch):
                index = start + offset
                scope = context.loop_scope(item, index, len(items))

                try:
                    result = await self.loop_body(node, item, scope)
                except Exception as e:
                    message = str(e)
                    self.logger.warning("Loop item failed", node_id=node.id, index=index, error=message)
                    errors.append({"index": index, "error": message})

                    if not config.continue_on_item_error:
                        raise WorkflowExecutionError(
                            f"Loop failed at item {index}: {message}",
                            node_id=node.id,
                            details={"partial_results": results, "errors": errors},
                        ) from e

                    results.append(None)
                    continue

                results.append(result)
                self.logger.debug("Loop item processed", node_id=node.id, index=index, iteration=index + 1)

        success_count = sum(1 for result in results if result is not None)
        self.logger.info(
            "Loop execution completed",
            node_id=node.id,
            total_items=len(items),
            success_count=success_count,
            error_count=len(errors),
        )

        output = {
            "items": results,
            "count": len(results),
            "successCount": success_count,
            "errorCount": len(errors),
        }
        if errors:
            output["errors"] = errors
        return output

    def resolve_items(self, config: LoopConfig, context: ExecutionContext) -> List[Any]:
        """Resolve the list the loop iterates over."""
        if config.loop_type == "range":
            return self._range_items(config, context)
        if config.loop_type != "forEach":
            raise DataValidationError(f"Unknown loop type: {config.loop_type}", field="loopType")

        items = config.items
        if isinstance(items, list):
            return items
        if isinstance(items, str):
            resolved = self.expressions.evaluate_reference(items, context)
            if not isinstance(resolved, list):
                raise DataValidationError("Loop items must be an array", field="items", actual_value=resolved)
            return resolved

        raise DataValidationError("Loop items must be an array or expression", field="items")

    def _range_items(self, config: LoopConfig, context: ExecutionContext) -> List[Any]:
        bounds = {}
        for name, default in (("start", 0), ("end", 10), ("step", 1)):
            raw = self.resolve(getattr(config, name), context)
            value = to_number(raw) if raw not in (None, "") else float(default)
            if math.isnan(value):
                raise DataValidationError(f"Range {name} must be a number", field=name, actual_value=raw)
            bounds[name] = value

        if bounds["step"] <= 0:
            raise DataValidationError("Range step must be positive", field="step", actual_value=bounds["step"])

        items = []
        current = bounds["start"]
        while current < bounds["end"]:
            items.append(_plain_number(current))
            current += bounds["step"]
        return items

    @classmethod
    def get_definition(cls) -> NodeDefinition:
        """Get node definition."""
        return NodeDefinition(
            name="Loop",
            type=NodeType.LOOP,
            category=NodeCategory.FLOW,
            description="Run the loop body once per item",
            parameters=[
                NodeParameter(
                    name="loopType",
                    type=ParameterType.OPTIONS,
                    default="forEach",
                    options=["forEach", "range"],
                ),
                NodeParameter(
                    name="items",
                    type=ParameterType.EXPRESSION,
                    description="Array, or $json./$input./$node. reference, or variable name",
                ),
                NodeParameter(name="start", type=ParameterType.NUMBER, default=0),
                NodeParameter(name="end", type=ParameterType.NUMBER, default=10),
                NodeParameter(name="step", type=ParameterType.NUMBER, default=1, min_value=1),
                NodeParameter(name="batchSize", type=ParameterType.NUMBER, default=1, min_value=1),
                NodeParameter(name="maxIterations", type=ParameterType.NUMBER, default=1000, min_value=1),
                NodeParameter(name="continueOnItemError", type=ParameterType.BOOLEAN, default=False),
            ],
        )


TIME_UNITS_MS = {
    "milliseconds": 1,
    "ms": 1,
    "seconds": 1000,
    "s": 1000,
    "minutes": 60 * 1000,
    "m": 60 * 1000,
    "hours": 60 * 60 * 1000,
    "h": 60 * 60 * 1000,
}


class DelayHandler(NodeHandler[DelayConfig]):
    """Suspend the run for a fixed duration."""

    node_type = NodeType.DELAY
    config_model = DelayConfig

    async def execute(self, node: WorkflowNode, context: ExecutionContext) -> Dict[str, Any]:
        """Execute delay."""
        config = self.parse_config(node)

        raw_duration = self.resolve(config.duration, context)
        duration = to_number(raw_duration) if raw_duration is not None else math.nan
        if math.isnan(duration) or duration < 0:
            raise DataValidationError(
                f"Invalid delay duration: {raw_duration}",
                field="duration",
                actual_value=raw_duration,
            )

        unit = config.unit or "seconds"
        if unit not in TIME_UNITS_MS:
            raise DataValidationError(f"Unknown time unit: {unit}", field="unit")

        delay_ms = _plain_number(duration * TIME_UNITS_MS[unit])

        self.logger.debug("Delaying execution", node_id=node.id, delay_ms=delay_ms)
        await asyncio.sleep(delay_ms / 1000)

        return {
            "delayed": True,
            "duration": _plain_number(duration),
            "unit": unit,
            "delayMs": delay_ms,
        }

    @classmethod
    def get_definition(cls) -> NodeDefinition:
        """Get node definition."""
        return NodeDefinition(
            name="Delay",
            type=NodeType.DELAY,
            category=NodeCategory.FLOW,
            description="Pause execution for specified duration",
            parameters=[
                NodeParameter(name="duration", type=ParameterType.NUMBER, required=True, min_value=0),
                NodeParameter(
                    name="unit",
                    type=ParameterType.OPTIONS,
                    default="seconds",
                    options=list(TIME_UNITS_MS),
                ),
            ],
        )
