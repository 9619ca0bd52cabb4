"""Node type to handler registry."""

from typing import Dict, Iterator, List, Optional

import structlog

from taktak.config import Settings
from taktak.exceptions import ConfigurationError
from taktak.workflows.models import NodeType
from .actions import CSVExportHandler, CSVImportHandler, HTTPRequestHandler, TransformHandler
from .base import NodeDefinition, NodeHandler
from .control import ConditionHandler, DelayHandler, LoopBody, LoopHandler
from .triggers import DatabaseWatchHandler, ErrorTriggerHandler, ScheduleHandler, WebhookHandler

logger = structlog.get_logger()


class HandlerRegistry:
    """Maps each node type to exactly one handler instance.

    Handlers are long-lived: one instance serves every invocation of its
    node type for the lifetime of the registry.
    """

    def __init__(self):
        self._handlers: Dict[NodeType, NodeHandler] = {}
        self.logger = logger.bind(component="handler_registry")

    def register(self, handler: NodeHandler) -> NodeHandler:
        """Register a handler; a second handler for the same type is an error."""
        node_type = handler.node_type
        if node_type in self._handlers:
            existing = type(self._handlers[node_type]).__name__
            raise ConfigurationError(
                f"Handler already registered for node type {node_type.value}: {existing}"
            )
        self._handlers[node_type] = handler
        self.logger.debug("Registered handler", node_type=node_type.value, handler=type(handler).__name__)
        return handler

    def replace(self, handler: NodeHandler) -> Optional[NodeHandler]:
        """Swap in a handler for its type, returning the previous one."""
        previous = self._handlers.get(handler.node_type)
        self._handlers[handler.node_type] = handler
        self.logger.info(
            "Replaced handler",
            node_type=handler.node_type.value,
            handler=type(handler).__name__,
            previous=type(previous).__name__ if previous else None,
        )
        return previous

    def get(self, node_type: NodeType) -> Optional[NodeHandler]:
        """Get the handler for a node type."""
        return self._handlers.get(node_type)

    def has(self, node_type: NodeType) -> bool:
        """Check whether a node type has a handler."""
        return node_type in self._handlers

    def node_types(self) -> List[NodeType]:
        """Registered node types in registration order."""
        return list(self._handlers)

    def definitions(self) -> List[NodeDefinition]:
        """Definitions of every registered handler."""
        return [handler.get_definition() for handler in self._handlers.values()]

    def copy(self) -> "HandlerRegistry":
        """Shallow copy sharing the same handler instances."""
        clone = HandlerRegistry()
        clone._handlers = dict(self._handlers)
        return clone

    def __contains__(self, node_type: object) -> bool:
        return node_type in self._handlers

    def __iter__(self) -> Iterator[NodeType]:
        return iter(self._handlers)

    def __len__(self) -> int:
        return len(self._handlers)


def create_default_registry(
    loop_body: Optional[LoopBody] = None,
    settings: Optional[Settings] = None,
) -> HandlerRegistry:
    """Registry with every built-in handler registered once."""
    registry = HandlerRegistry()

    # Triggers
    registry.register(ScheduleHandler())
    registry.register(WebhookHandler())
    registry.register(DatabaseWatchHandler())
    registry.register(ErrorTriggerHandler())

    # Flow
    registry.register(ConditionHandler())
    registry.register(LoopHandler(loop_body=loop_body, settings=settings))
    registry.register(DelayHandler())

    # Data
    registry.register(TransformHandler())
    registry.register(CSVImportHandler())
    registry.register(CSVExportHandler())

    # Network
    registry.register(HTTPRequestHandler(settings=settings))

    return registry
