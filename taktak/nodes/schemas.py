"""Typed config models, one per node type."""

from typing import Any, ClassVar, Dict, List, Literal, Optional, Union

from pydantic import Field

from .base import NodeConfig


class ConditionClause(NodeConfig):
    """One clause of a multi-condition node."""
    field: str
    operator: str
    value: Any = None


class ConditionConfig(NodeConfig):
    """Either ``leftValue``/``operator``/``rightValue`` or ``conditions``/``logic``."""
    left_value: Any = None
    operator: Optional[str] = None
    right_value: Any = None
    conditions: Optional[List[ConditionClause]] = None
    logic: Literal["and", "or"] = "and"


class LoopConfig(NodeConfig):
    """Loop node config."""
    loop_type: str = "forEach"
    items: Optional[Union[str, List[Any]]] = None
    start: Any = None
    end: Any = None
    step: Any = None
    batch_size: Optional[int] = Field(default=None, ge=1)
    max_iterations: Optional[int] = Field(default=None, ge=1)
    continue_on_item_error: bool = False


class DelayConfig(NodeConfig):
    """Delay node config."""
    duration: Union[int, float, str]
    unit: str = "seconds"

    required_messages: ClassVar[Dict[str, str]] = {
        "duration": "Duration is required for delay",
    }


class Transformation(NodeConfig):
    """One ``outputKey`` <- ``expression`` assignment."""
    output_key: Optional[str] = None
    expression: Any = None


class TransformConfig(NodeConfig):
    """Transform node config."""
    transformations: List[Any]

    required_messages: ClassVar[Dict[str, str]] = {
        "transformations": "Transformations array is required",
    }


class CSVImportConfig(NodeConfig):
    """CSV import node config."""
    csv_data: Any
    delimiter: str = Field(default=",", min_length=1, max_length=1)
    has_header: bool = True

    required_messages: ClassVar[Dict[str, str]] = {
        "csv_data": "CSV data is required",
    }


class CSVExportConfig(NodeConfig):
    """CSV export node config."""
    data: Any
    delimiter: str = Field(default=",", min_length=1, max_length=1)
    include_header: bool = True

    required_messages: ClassVar[Dict[str, str]] = {
        "data": "Data is required for CSV export",
    }


class HTTPRequestConfig(NodeConfig):
    """HTTP request node config."""
    url: str
    method: str = "GET"
    headers: Dict[str, Any] = Field(default_factory=dict)
    body: Any = None
    query_parameters: Dict[str, Any] = Field(default_factory=dict)
    timeout: Optional[float] = Field(default=None, gt=0)
    authentication: Literal["none", "bearer", "basic", "api_key"] = "none"
    bearer_token: Optional[str] = None
    basic_username: Optional[str] = None
    basic_password: Optional[str] = None
    api_key: Optional[str] = None
    api_key_header: str = "X-API-Key"
    credential: str = "http"

    required_messages: ClassVar[Dict[str, str]] = {
        "url": "URL is required for HTTP request",
    }


class ScheduleConfig(NodeConfig):
    """Schedule trigger config; ``schedule`` and ``cron`` are synonyms."""
    schedule: Optional[str] = None
    cron: Optional[str] = None
    timezone: str = "UTC"


class WebhookConfig(NodeConfig):
    """Webhook trigger config."""
    method: str = "POST"
    path: str = "/webhook"


class DatabaseWatchConfig(NodeConfig):
    """Database watch trigger config."""
    collection: Optional[str] = None
    table: Optional[str] = None
    operation: Optional[str] = None
    event: Optional[str] = None
    filter: Dict[str, Any] = Field(default_factory=dict)


class ErrorTriggerConfig(NodeConfig):
    """Error trigger config; empty allow-lists match everything."""
    trigger_on_nodes: List[str] = Field(default_factory=list)
    error_types: List[str] = Field(default_factory=list)
    notify_email: Optional[str] = None
    notify_sms: Optional[str] = Field(default=None, alias="notifySMS")
