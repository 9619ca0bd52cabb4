"""Base handler classes and definitions."""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, ClassVar, Dict, Generic, List, Optional, Type, TypeVar, Union

import structlog
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from taktak.executor.context import ExecutionContext
from taktak.executor.errors import DataValidationError
from taktak.workflows.models import NodeType, WorkflowNode
from .expression import ExpressionEvaluator, evaluator

logger = structlog.get_logger()


class NodeCategory(str, Enum):
    """Node category enumeration."""
    TRIGGER = "trigger"
    ACTION = "action"
    TRANSFORM = "transform"
    FLOW = "flow"
    NETWORK = "network"


class ParameterType(str, Enum):
    """Parameter type enumeration."""
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    JSON = "json"
    OPTIONS = "options"
    ARRAY = "array"
    EXPRESSION = "expression"


class NodeParameter(BaseModel):
    """Node parameter definition."""
    name: str = Field(..., description="Config key")
    type: ParameterType = Field(..., description="Parameter type")
    required: bool = Field(default=False, description="Is parameter required")
    default: Any = Field(default=None, description="Default value")
    description: Optional[str] = Field(None, description="Parameter description")
    options: Optional[List[str]] = Field(None, description="Options for OPTIONS type")
    min_value: Optional[Union[int, float]] = Field(None, description="Minimum value for NUMBER type")
    max_value: Optional[Union[int, float]] = Field(None, description="Maximum value for NUMBER type")


class NodeDefinition(BaseModel):
    """Node type definition."""
    name: str = Field(..., description="Node display name")
    type: NodeType = Field(..., description="Node type")
    category: NodeCategory = Field(..., description="Node category")
    description: str = Field(..., description="Node description")
    parameters: List[NodeParameter] = Field(default_factory=list, description="Node parameters")

    def get_parameter(self, name: str) -> Optional[NodeParameter]:
        """Get parameter by name."""
        for param in self.parameters:
            if param.name == name:
                return param
        return None


class NodeConfig(BaseModel):
    """Base for typed node configs.

    Keys are read in the camelCase the graph builder writes (``leftValue``,
    ``continueOnItemError``); snake_case names are accepted too. Unknown keys
    are kept so UI-only settings never fail a run.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
        frozen=True,
    )

    # Messages for missing required fields, keyed by field name
    required_messages: ClassVar[Dict[str, str]] = {}


ConfigT = TypeVar("ConfigT", bound=NodeConfig)


class NodeHandler(ABC, Generic[ConfigT]):
    """Executable implementation bound to one node type."""

    node_type: ClassVar[NodeType]
    config_model: ClassVar[Type[NodeConfig]] = NodeConfig

    def __init__(self, expression_evaluator: Optional[ExpressionEvaluator] = None):
        self.expressions = expression_evaluator or evaluator
        self.logger = logger.bind(component=type(self).__name__, node_type=self.node_type.value)

    def resolve(self, value: Any, context: ExecutionContext) -> Any:
        """Resolve a ``{{key}}`` placeholder."""
        return self.expressions.resolve(value, context)

    def parse_config(self, node: WorkflowNode) -> ConfigT:
        """Validate the node config into its typed model."""
        model = self.config_model
        # Empty strings mean "not set" for required fields
        raw = {
            key: value for key, value in node.config.items()
            if not (value == "" and _field_name(model, key) in model.required_messages)
        }
        try:
            return model.model_validate(raw)
        except PydanticValidationError as exc:
            raise _to_validation_error(model, node, exc) from exc

    @abstractmethod
    async def execute(self, node: WorkflowNode, context: ExecutionContext) -> Any:
        """Execute the node. Must be implemented by subclasses."""
        raise NotImplementedError("Node execution not implemented")

    @classmethod
    @abstractmethod
    def get_definition(cls) -> NodeDefinition:
        """Get node definition."""
        raise NotImplementedError("Node definition not implemented")


def _field_name(model: Type[NodeConfig], key: str) -> str:
    for name, field in model.model_fields.items():
        if key in (name, field.alias):
            return name
    return key


def _to_validation_error(
    model: Type[NodeConfig],
    node: WorkflowNode,
    exc: PydanticValidationError,
) -> DataValidationError:
    first = exc.errors()[0]
    location = first["loc"][0] if first["loc"] else ""
    field = _field_name(model, str(location))

    if first["type"] == "missing":
        message = model.required_messages.get(
            field, f"{location} is required for {node.type.value}"
        )
        return DataValidationError(message, field=field)

    message = f"Invalid {node.type.value} config: {location}: {first['msg']}"
    return DataValidationError(message, field=field, actual_value=first.get("input"))
