"""HTTP request node."""

import asyncio
import base64
from typing import Any, Dict, Optional

import aiohttp

from taktak.config import Settings, settings as default_settings
from taktak.executor.context import ExecutionContext
from taktak.executor.errors import ExternalServiceError
from taktak.nodes.base import NodeCategory, NodeDefinition, NodeHandler, NodeParameter, ParameterType
from taktak.nodes.expression import ExpressionEvaluator
from taktak.nodes.schemas import HTTPRequestConfig
from taktak.workflows.models import NodeType, WorkflowNode

METHODS_WITHOUT_BODY = frozenset({"GET", "HEAD"})


class HTTPRequestHandler(NodeHandler[HTTPRequestConfig]):
    """Perform an HTTP request and return the decoded response body."""

    node_type = NodeType.HTTP_REQUEST
    config_model = HTTPRequestConfig

    def __init__(
        self,
        settings: Optional[Settings] = None,
        expression_evaluator: Optional[ExpressionEvaluator] = None,
    ):
        super().__init__(expression_evaluator)
        self.settings = settings or default_settings

    async def execute(self, node: WorkflowNode, context: ExecutionContext) -> Any:
        """Execute HTTP request."""
        config = self.parse_config(node)

        method = config.method.upper()
        url = self.resolve(config.url, context)
        headers = self._prepare_headers(config, context)
        params = self.expressions.resolve_mapping(config.query_parameters, context)
        request_data = self._prepare_body(config, method, context)
        timeout = aiohttp.ClientTimeout(total=config.timeout or self.settings.http_timeout)

        self.logger.info("Sending HTTP request", node_id=node.id, method=method, url=url)

        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.request(
                    method=method,
                    url=url,
                    headers=headers,
                    params=params,
                    **request_data
                ) as response:
                    if not 200 <= response.status < 300:
                        raise ExternalServiceError(
                            f"HTTP request failed: {response.status} {response.reason}",
                            service=url,
                            status_code=response.status,
                        )

                    content_type = response.headers.get("Content-Type", "")
                    if "application/json" in content_type:
                        data = await response.json(content_type=None)
                    else:
                        data = await response.text()

                    self.logger.info(
                        "HTTP request completed",
                        node_id=node.id,
                        status=response.status,
                        content_type=content_type,
                    )
                    return data

        except asyncio.TimeoutError as e:
            raise ExternalServiceError(
                f"HTTP request timed out after {timeout.total} seconds",
                service=url,
            ) from e
        except aiohttp.ClientError as e:
            self.logger.error("HTTP request failed", node_id=node.id, url=url, error=str(e))
            raise ExternalServiceError(f"HTTP request failed: {e}", service=url) from e

    def _prepare_headers(self, config: HTTPRequestConfig, context: ExecutionContext) -> Dict[str, str]:
        headers = {
            key: str(value)
            for key, value in self.expressions.resolve_mapping(config.headers, context).items()
        }
        headers.update(self._prepare_authentication(config, context))
        return headers

    def _prepare_authentication(self, config: HTTPRequestConfig, context: ExecutionContext) -> Dict[str, str]:
        """Authentication headers; config values win over stored credentials."""
        credentials = context.credentials
        service = config.credential

        if config.authentication == "bearer":
            token = credentials.resolve(self.resolve(config.bearer_token, context), service, "bearerToken")
            if token:
                return {"Authorization": f"Bearer {token}"}

        elif config.authentication == "basic":
            username = credentials.resolve(self.resolve(config.basic_username, context), service, "username")
            password = credentials.resolve(self.resolve(config.basic_password, context), service, "password")
            if username and password:
                encoded = base64.b64encode(f"{username}:{password}".encode()).decode()
                return {"Authorization": f"Basic {encoded}"}

        elif config.authentication == "api_key":
            api_key = credentials.resolve(self.resolve(config.api_key, context), service, "apiKey")
            if api_key:
                return {config.api_key_header: str(api_key)}

        return {}

    def _prepare_body(self, config: HTTPRequestConfig, method: str, context: ExecutionContext) -> Dict[str, Any]:
        if method in METHODS_WITHOUT_BODY or config.body is None:
            return {}

        body = self.resolve(config.body, context)
        if isinstance(body, (dict, list)):
            return {"json": body}
        return {"data": str(body)}

    @classmethod
    def get_definition(cls) -> NodeDefinition:
        """Get node definition."""
        return NodeDefinition(
            name="HTTP Request",
            type=NodeType.HTTP_REQUEST,
            category=NodeCategory.NETWORK,
            description="Make HTTP requests to web APIs and services",
            parameters=[
                NodeParameter(
                    name="method",
                    type=ParameterType.OPTIONS,
                    default="GET",
                    options=["GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS"],
                ),
                NodeParameter(
                    name="url",
                    type=ParameterType.STRING,
                    required=True,
                    description="The URL to make the request to",
                ),
                NodeParameter(name="headers", type=ParameterType.JSON, description="HTTP headers to include"),
                NodeParameter(name="body", type=ParameterType.JSON),
                NodeParameter(name="queryParameters", type=ParameterType.JSON),
                NodeParameter(
                    name="authentication",
                    type=ParameterType.OPTIONS,
                    default="none",
                    options=["none", "bearer", "basic", "api_key"],
                ),
                NodeParameter(name="timeout", type=ParameterType.NUMBER, description="Timeout in seconds"),
            ],
        )
