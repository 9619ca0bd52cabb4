"""Workflow graph and execution record models."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class NodeType(str, Enum):
    """Node type enumeration."""
    # Triggers
    SCHEDULE = "schedule"
    WEBHOOK = "webhook"
    DATABASE_WATCH = "database_watch"
    ERROR_TRIGGER = "error_trigger"

    # Actions
    SEND_SMS = "send_sms"
    SEND_EMAIL = "send_email"
    DATABASE_QUERY = "database_query"
    DATABASE_INSERT = "database_insert"
    DATABASE_UPDATE = "database_update"
    HTTP_REQUEST = "http_request"

    # Vendor integrations
    SLACK = "slack"
    DISCORD = "discord"
    TELEGRAM = "telegram"
    TWILIO = "twilio"
    GOOGLE_SHEETS = "google_sheets"
    GOOGLE_DRIVE = "google_drive"
    GOOGLE_CALENDAR = "google_calendar"
    GMAIL = "gmail"
    GITHUB = "github"
    GITLAB = "gitlab"
    STRIPE = "stripe"
    PAYPAL = "paypal"
    NOTION = "notion"
    AIRTABLE = "airtable"
    TRELLO = "trello"
    ASANA = "asana"
    OPENAI = "openai"
    ANTHROPIC = "anthropic"

    # Logic
    CONDITION = "condition"
    LOOP = "loop"
    DELAY = "delay"

    # Data
    TRANSFORM = "transform"
    CSV_IMPORT = "csv_import"
    CSV_EXPORT = "csv_export"

    # AI
    AI_GENERATE = "ai_generate"
    AI_PARSE = "ai_parse"

    @classmethod
    def _missing_(cls, value: object) -> Optional["NodeType"]:
        # Accept the upper-case enum names used by some graph producers
        if isinstance(value, str):
            return cls.__members__.get(value.upper())
        return None


TRIGGER_TYPES = frozenset({
    NodeType.SCHEDULE,
    NodeType.WEBHOOK,
    NodeType.DATABASE_WATCH,
    NodeType.ERROR_TRIGGER,
})


class ExecutionStatus(str, Enum):
    """Workflow execution status."""
    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"
    CANCELLED = "cancelled"


class Position(BaseModel):
    """Canvas position; not used by execution."""
    x: float = 0
    y: float = 0


class NodeExecutionConfig(BaseModel):
    """Per-node execution policy honoured by the workflow runner."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    retries: int = Field(default=0, ge=0, description="Retry attempts after the first failure")
    retry_delay: int = Field(default=1000, ge=0, alias="retryDelay", description="Delay between retries in ms")
    timeout: Optional[int] = Field(default=None, ge=0, description="Execution timeout in ms")
    continue_on_error: bool = Field(default=False, alias="continueOnError")


class WorkflowNode(BaseModel):
    """A single typed step of a workflow graph."""

    model_config = ConfigDict(populate_by_name=True, frozen=True, use_enum_values=False)

    id: str
    type: NodeType
    name: str = ""
    description: Optional[str] = None
    config: Dict[str, Any] = Field(default_factory=dict)
    position: Optional[Position] = None
    execution_config: NodeExecutionConfig = Field(
        default_factory=NodeExecutionConfig, alias="executionConfig"
    )


class WorkflowConnection(BaseModel):
    """Directed edge between two nodes."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    source: str = Field(alias="from")
    target: str = Field(alias="to")
    condition: Optional[Union[str, Dict[str, Any]]] = None
    output: str = "main"


class Workflow(BaseModel):
    """A user-authored workflow graph."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(alias="_id")
    name: str = ""
    description: Optional[str] = None
    nodes: List[WorkflowNode] = Field(default_factory=list)
    connections: List[WorkflowConnection] = Field(default_factory=list)
    trigger: Optional[Union[str, WorkflowNode]] = None

    def get_node(self, node_id: str) -> Optional[WorkflowNode]:
        """Get a node by id."""
        for node in self.nodes:
            if node.id == node_id:
                return node
        if isinstance(self.trigger, WorkflowNode) and self.trigger.id == node_id:
            return self.trigger
        return None

    def get_trigger_node(self) -> Optional[WorkflowNode]:
        """Resolve the node a run starts from."""
        if isinstance(self.trigger, WorkflowNode):
            return self.trigger
        if isinstance(self.trigger, str):
            return self.get_node(self.trigger)
        for node in self.nodes:
            if node.type in TRIGGER_TYPES and node.type != NodeType.ERROR_TRIGGER:
                return node
        return self.nodes[0] if self.nodes else None

    def outgoing(self, node_id: str, output: str = "main") -> List[WorkflowConnection]:
        """Connections leaving a node on the given output."""
        return [c for c in self.connections if c.source == node_id and c.output == output]

    def error_trigger_nodes(self) -> List[WorkflowNode]:
        """Error trigger nodes of this workflow."""
        return [n for n in self.nodes if n.type == NodeType.ERROR_TRIGGER]


class ExecutionLog(BaseModel):
    """Single execution log entry."""
    timestamp: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    level: str = "info"
    message: str
    node_id: Optional[str] = None


class WorkflowExecution(BaseModel):
    """Record of a single workflow run."""

    id: str
    workflow_id: str
    workflow_name: str = ""
    status: ExecutionStatus = ExecutionStatus.PENDING
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None
    duration_ms: Optional[int] = None
    logs: List[ExecutionLog] = Field(default_factory=list)
    results: Dict[str, Any] = Field(default_factory=dict)
    error: Optional[Dict[str, Any]] = None

    def add_log(self, level: str, message: str, node_id: Optional[str] = None) -> None:
        """Append a log entry."""
        self.logs.append(ExecutionLog(level=level, message=message, node_id=node_id))

    def finish(self, status: ExecutionStatus) -> None:
        """Mark the run as finished with the given status."""
        self.status = status
        self.completed_at = datetime.now(timezone.utc)
        self.duration_ms = int((self.completed_at - self.started_at).total_seconds() * 1000)
