"""Node handlers for taktak workflows."""

from .actions import CSVExportHandler, CSVImportHandler, HTTPRequestHandler, TransformHandler
from .base import NodeCategory, NodeConfig, NodeDefinition, NodeHandler, NodeParameter, ParameterType
from .control import ConditionHandler, DelayHandler, LoopBody, LoopHandler, passthrough_loop_body
from .expression import ExpressionEvaluator, evaluator
from .registry import HandlerRegistry, create_default_registry
from .triggers import DatabaseWatchHandler, ErrorTriggerHandler, ScheduleHandler, WebhookHandler

__all__ = [
    "NodeCategory",
    "NodeConfig",
    "NodeDefinition",
    "NodeHandler",
    "NodeParameter",
    "ParameterType",
    "ExpressionEvaluator",
    "evaluator",
    "HandlerRegistry",
    "create_default_registry",
    "ConditionHandler",
    "LoopHandler",
    "LoopBody",
    "passthrough_loop_body",
    "DelayHandler",
    "TransformHandler",
    "CSVImportHandler",
    "CSVExportHandler",
    "HTTPRequestHandler",
    "ScheduleHandler",
    "WebhookHandler",
    "DatabaseWatchHandler",
    "ErrorTriggerHandler",
]
