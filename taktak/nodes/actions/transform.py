"""Transform node: build an object from a list of expressions."""

import json
from typing import Any, Dict

from taktak.executor.context import ExecutionContext
from taktak.nodes.base import NodeCategory, NodeDefinition, NodeHandler, NodeParameter, ParameterType
from taktak.nodes.expression import unwrap_placeholder
from taktak.nodes.schemas import TransformConfig, Transformation
from taktak.workflows.models import NodeType, WorkflowNode


class TransformHandler(NodeHandler[TransformConfig]):
    """Assign resolved expressions to output keys."""

    node_type = NodeType.TRANSFORM
    config_model = TransformConfig

    async def execute(self, node: WorkflowNode, context: ExecutionContext) -> Dict[str, Any]:
        """Execute transform."""
        config = self.parse_config(node)
        result: Dict[str, Any] = {}

        for entry in config.transformations:
            if not isinstance(entry, dict):
                continue
            transformation = Transformation.model_validate(entry)
            if not transformation.output_key or transformation.expression in (None, ""):
                continue
            result[transformation.output_key] = self.evaluate_expression(transformation.expression, context)

        self.logger.debug("Transform completed", node_id=node.id, keys=list(result))
        return result

    def evaluate_expression(self, expression: Any, context: ExecutionContext) -> Any:
        """Placeholder, else JSON literal, else the raw string."""
        if not isinstance(expression, str):
            return expression
        if unwrap_placeholder(expression) is not None:
            return self.resolve(expression, context)
        try:
            return json.loads(expression)
        except ValueError:
            return expression

    @classmethod
    def get_definition(cls) -> NodeDefinition:
        """Get node definition."""
        return NodeDefinition(
            name="Transform",
            type=NodeType.TRANSFORM,
            category=NodeCategory.TRANSFORM,
            description="Build an object from placeholders and JSON literals",
            parameters=[
                NodeParameter(
                    name="transformations",
                    type=ParameterType.ARRAY,
                    required=True,
                    description="List of {outputKey, expression}",
                ),
            ],
        )
