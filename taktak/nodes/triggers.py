"""Trigger handlers.

Real scheduling, webhook routing and change listening live outside the
engine; executing a trigger node echoes the data it was started with.
"""

import traceback
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

import pytz
from croniter import croniter

from taktak.executor.context import ExecutionContext
from taktak.executor.errors import DataValidationError
from taktak.workflows.models import NodeType, WorkflowNode
from .base import NodeCategory, NodeDefinition, NodeHandler, NodeParameter, ParameterType
from .schemas import DatabaseWatchConfig, ErrorTriggerConfig, ScheduleConfig, WebhookConfig


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class ScheduleHandler(NodeHandler[ScheduleConfig]):
    """Schedule trigger - started by the scheduler on a cron expression."""

    node_type = NodeType.SCHEDULE
    config_model = ScheduleConfig

    @staticmethod
    def validate_cron_expression(cron: str) -> bool:
        """Validate cron expression."""
        return croniter.is_valid(cron)

    @staticmethod
    def get_next_run_time(cron: str, timezone_str: str = "UTC") -> datetime:
        """Get next scheduled run time."""
        try:
            tz = pytz.timezone(timezone_str)
        except pytz.UnknownTimeZoneError as e:
            raise DataValidationError(f"Unknown timezone: {timezone_str}", field="timezone") from e
        return croniter(cron, datetime.now(tz)).get_next(datetime)

    async def execute(self, node: WorkflowNode, context: ExecutionContext) -> Dict[str, Any]:
        """Execute schedule trigger."""
        config = self.parse_config(node)
        schedule = config.schedule or config.cron

        if not schedule:
            raise DataValidationError("Schedule is required for schedule trigger", field="schedule")
        if not self.validate_cron_expression(schedule):
            raise DataValidationError(f"Invalid cron expression: {schedule}", field="schedule")

        next_run = self.get_next_run_time(schedule, config.timezone)

        self.logger.info("Schedule node triggered", node_id=node.id, cron=schedule, timezone=config.timezone)
        return {
            "triggered": True,
            "timestamp": _now(),
            "schedule": schedule,
            "cron": schedule,
            "timezone": config.timezone,
            "nextRun": next_run.isoformat(),
            "data": context.input,
            "message": "Schedule trigger executed",
        }

    @classmethod
    def get_definition(cls) -> NodeDefinition:
        """Get node definition."""
        return NodeDefinition(
            name="Schedule Trigger",
            type=NodeType.SCHEDULE,
            category=NodeCategory.TRIGGER,
            description="Trigger workflow on a schedule",
            parameters=[
                NodeParameter(name="schedule", type=ParameterType.STRING, required=True,
                              description="Cron expression"),
                NodeParameter(name="timezone", type=ParameterType.STRING, default="UTC"),
            ],
        )


class WebhookHandler(NodeHandler[WebhookConfig]):
    """Webhook trigger - passes the incoming request data through."""

    node_type = NodeType.WEBHOOK
    config_model = WebhookConfig

    async def execute(self, node: WorkflowNode, context: ExecutionContext) -> Dict[str, Any]:
        """Execute webhook trigger."""
        config = self.parse_config(node)

        self.logger.info("Webhook node triggered", node_id=node.id, has_input=bool(context.input))
        return {
            "triggered": True,
            "timestamp": _now(),
            "method": config.method,
            "path": config.path,
            "payload": context.input,
            "data": context.input,
            "message": "Webhook trigger executed",
        }

    @classmethod
    def get_definition(cls) -> NodeDefinition:
        """Get node definition."""
        return NodeDefinition(
            name="Webhook Trigger",
            type=NodeType.WEBHOOK,
            category=NodeCategory.TRIGGER,
            description="Trigger workflow via HTTP webhook",
            parameters=[
                NodeParameter(name="path", type=ParameterType.STRING, default="/webhook"),
                NodeParameter(
                    name="method",
                    type=ParameterType.OPTIONS,
                    default="POST",
                    options=["GET", "POST", "PUT", "DELETE", "PATCH"],
                ),
            ],
        )


class DatabaseWatchHandler(NodeHandler[DatabaseWatchConfig]):
    """Database watch trigger - passes the change record through."""

    node_type = NodeType.DATABASE_WATCH
    config_model = DatabaseWatchConfig

    async def execute(self, node: WorkflowNode, context: ExecutionContext) -> Dict[str, Any]:
        """Execute database watch trigger."""
        config = self.parse_config(node)
        collection = config.collection or config.table
        if not collection:
            raise DataValidationError("Collection is required for database watch trigger", field="collection")

        operation = config.operation or config.event or "all"

        self.logger.info(
            "Database watch node triggered",
            node_id=node.id,
            collection=collection,
            operation=operation,
            has_input=bool(context.input),
        )
        return {
            "triggered": True,
            "timestamp": _now(),
            "collection": collection,
            "table": collection,
            "operation": operation,
            "event": operation,
            "change": context.input,
            "data": context.input,
            "message": "Database watch trigger executed",
        }

    @classmethod
    def get_definition(cls) -> NodeDefinition:
        """Get node definition."""
        return NodeDefinition(
            name="Database Watch",
            type=NodeType.DATABASE_WATCH,
            category=NodeCategory.TRIGGER,
            description="Trigger workflow when database changes occur",
            parameters=[
                NodeParameter(name="collection", type=ParameterType.STRING, required=True),
                NodeParameter(
                    name="operation",
                    type=ParameterType.OPTIONS,
                    default="all",
                    options=["insert", "update", "delete", "all"],
                ),
            ],
        )


def describe_error(error: Any) -> Dict[str, Any]:
    """Message, type name and traceback of an exception or an error mapping."""
    if isinstance(error, BaseException):
        stack = None
        if error.__traceback__ is not None:
            stack = "".join(traceback.format_exception(type(error), error, error.__traceback__))
        return {
            "message": str(error) or "Unknown error",
            "type": type(error).__name__,
            "stack": stack,
        }
    if isinstance(error, Mapping):
        return {
            "message": error.get("message") or "Unknown error",
            "type": error.get("type") or error.get("name") or "Error",
            "stack": error.get("stack"),
        }
    if error:
        return {"message": str(error), "type": "Error", "stack": None}
    return {"message": "Unknown error", "type": "Error", "stack": None}


def _node_field(failed_node: Any, key: str) -> Any:
    if failed_node is None:
        return None
    if isinstance(failed_node, Mapping):
        return failed_node.get(key)
    value = getattr(failed_node, key, None)
    return getattr(value, "value", value)


class ErrorTriggerHandler(NodeHandler[ErrorTriggerConfig]):
    """Error trigger - fires when another node of the run has failed."""

    node_type = NodeType.ERROR_TRIGGER
    config_model = ErrorTriggerConfig

    async def execute(self, node: WorkflowNode, context: ExecutionContext) -> Dict[str, Any]:
        """Execute error trigger."""
        config = self.parse_config(node)

        self.logger.info("Error trigger activated", node_id=node.id, node_name=node.name)

        error = context.variables.get("$error")
        failed_node = context.variables.get("$failedNode")
        error_details = describe_error(error)
        failed_node_id = _node_field(failed_node, "id")

        if not self.should_trigger(config, failed_node_id, error_details["type"]):
            self.logger.debug(
                "Error trigger conditions not met",
                node_id=node.id,
                failed_node_id=failed_node_id,
            )
            return {"triggered": False}

        error_info = {
            "triggered": True,
            "timestamp": _now(),
            "workflowId": context.variables.get("$workflowId"),
            "executionId": context.variables.get("$executionId"),
            "error": error_details,
            "failedNode": {
                "id": failed_node_id,
                "name": _node_field(failed_node, "name"),
                "type": _node_field(failed_node, "type"),
            },
        }

        self.logger.info(
            "Error trigger executed",
            node_id=node.id,
            failed_node_id=failed_node_id,
            error_type=error_details["type"],
        )

        if config.notify_email:
            self.send_email_notification(config.notify_email, error_info)
        if config.notify_sms:
            self.send_sms_notification(config.notify_sms, error_info)

        return error_info

    @staticmethod
    def should_trigger(config: ErrorTriggerConfig, failed_node_id: Optional[str], error_type: str) -> bool:
        """Apply the node and error type allow-lists."""
        if config.trigger_on_nodes and failed_node_id not in config.trigger_on_nodes:
            return False
        if config.error_types and error_type not in config.error_types:
            return False
        return True

    def send_email_notification(self, email: str, error_info: Dict[str, Any]) -> None:
        """Record an email notification; delivery belongs to the mail service."""
        failed = error_info["failedNode"]
        self.logger.info(
            "Sending error notification email",
            to=email,
            workflow_id=error_info["workflowId"],
            subject=f"Workflow Error: {failed['name']}",
            body=(
                f"Error occurred in workflow {error_info['workflowId']}\n\n"
                f"Node: {failed['name']}\nError: {error_info['error']['message']}"
            ),
        )

    def send_sms_notification(self, phone: str, error_info: Dict[str, Any]) -> None:
        """Record an SMS notification; delivery belongs to the SMS service."""
        self.logger.info(
            "Sending error notification SMS",
            to=phone,
            workflow_id=error_info["workflowId"],
            message=(
                f"Workflow error in {error_info['failedNode']['name']}: "
                f"{error_info['error']['message']}"
            ),
        )

    @classmethod
    def get_definition(cls) -> NodeDefinition:
        """Get node definition."""
        return NodeDefinition(
            name="Error Trigger",
            type=NodeType.ERROR_TRIGGER,
            category=NodeCategory.TRIGGER,
            description="Run when a node of the workflow fails",
            parameters=[
                NodeParameter(name="triggerOnNodes", type=ParameterType.ARRAY,
                              description="Node ids to watch; empty watches all"),
                NodeParameter(name="errorTypes", type=ParameterType.ARRAY,
                              description="Error type names to catch; empty catches all"),
                NodeParameter(name="notifyEmail", type=ParameterType.STRING),
                NodeParameter(name="notifySMS", type=ParameterType.STRING),
            ],
        )
