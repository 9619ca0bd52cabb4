"""Tests for trigger nodes."""

from datetime import datetime

import pytest

from taktak.executor.errors import DataValidationError, ExternalServiceError
from taktak.nodes.triggers import (
    DatabaseWatchHandler,
    ErrorTriggerHandler,
    ScheduleHandler,
    WebhookHandler,
    describe_error,
)


@pytest.mark.unit
class TestScheduleHandler:
    """Schedule trigger."""

    @pytest.mark.asyncio
    async def test_passthrough(self, make_node, make_context):
        node = make_node("schedule", {"schedule": "*/5 * * * *", "timezone": "Europe/Amsterdam"})
        result = await ScheduleHandler().execute(node, make_context(input={"tick": 1}))

        assert result["triggered"] is True
        assert result["schedule"] == "*/5 * * * *"
        assert result["cron"] == "*/5 * * * *"
        assert result["timezone"] == "Europe/Amsterdam"
        assert result["data"] == {"tick": 1}
        assert datetime.fromisoformat(result["nextRun"]) > datetime.fromisoformat(result["timestamp"])

    @pytest.mark.asyncio
    async def test_cron_alias(self, make_node, context):
        result = await ScheduleHandler().execute(make_node("schedule", {"cron": "0 9 * * 1"}), context)
        assert result["schedule"] == "0 9 * * 1"

    @pytest.mark.asyncio
    async def test_missing_schedule(self, make_node, context):
        with pytest.raises(DataValidationError, match="Schedule is required"):
            await ScheduleHandler().execute(make_node("schedule", {}), context)

    @pytest.mark.asyncio
    async def test_invalid_cron(self, make_node, context):
        with pytest.raises(DataValidationError, match="Invalid cron expression"):
            await ScheduleHandler().execute(make_node("schedule", {"schedule": "every day"}), context)

    @pytest.mark.asyncio
    async def test_unknown_timezone(self, make_node, context):
        node = make_node("schedule", {"schedule": "0 * * * *", "timezone": "Mars/Olympus"})
        with pytest.raises(DataValidationError, match="Unknown timezone"):
            await ScheduleHandler().execute(node, context)


@pytest.mark.unit
class TestWebhookHandler:
    """Webhook trigger."""

    @pytest.mark.asyncio
    async def test_payload_echo(self, make_node, make_context):
        result = await WebhookHandler().execute(
            make_node("webhook", {"path": "/orders"}), make_context(input={"order": 7})
        )
        assert result["triggered"] is True
        assert result["method"] == "POST"
        assert result["path"] == "/orders"
        assert result["payload"] == {"order": 7}
        assert result["data"] == {"order": 7}
        assert "timestamp" in result


@pytest.mark.unit
class TestDatabaseWatchHandler:
    """Database watch trigger."""

    @pytest.mark.asyncio
    async def test_change_echo(self, make_node, make_context):
        node = make_node("database_watch", {"collection": "orders", "operation": "insert"})
        result = await DatabaseWatchHandler().execute(node, make_context(input={"_id": "o1"}))
        assert result["collection"] == "orders"
        assert result["operation"] == "insert"
        assert result["change"] == {"_id": "o1"}

    @pytest.mark.asyncio
    async def test_table_and_default_operation(self, make_node, context):
        result = await DatabaseWatchHandler().execute(make_node("database_watch", {"table": "users"}), context)
        assert result["collection"] == "users"
        assert result["operation"] == "all"

    @pytest.mark.asyncio
    async def test_missing_collection(self, make_node, context):
        with pytest.raises(DataValidationError, match="Collection is required"):
            await DatabaseWatchHandler().execute(make_node("database_watch", {}), context)


@pytest.mark.unit
class TestErrorTriggerHandler:
    """Error trigger filters."""

    def error_context(self, make_context, make_node, error, failed_id="http-1"):
        failed = make_node("http_request", {"url": "https://x.test"}, node_id=failed_id, name="Fetch")
        return make_context(variables={
            "$error": error,
            "$failedNode": failed,
            "$workflowId": "wf-1",
            "$executionId": "ex-1",
        })

    @pytest.mark.asyncio
    async def test_fires_without_filters(self, make_node, make_context):
        ctx = self.error_context(make_context, make_node, ExternalServiceError("HTTP request failed: 500", "api"))
        result = await ErrorTriggerHandler().execute(make_node("error_trigger"), ctx)

        assert result["triggered"] is True
        assert result["workflowId"] == "wf-1"
        assert result["executionId"] == "ex-1"
        assert result["error"]["message"] == "HTTP request failed: 500"
        assert result["error"]["type"] == "ExternalServiceError"
        assert result["failedNode"] == {"id": "http-1", "name": "Fetch", "type": "http_request"}

    @pytest.mark.asyncio
    async def test_node_filter_mismatch(self, make_node, make_context):
        ctx = self.error_context(make_context, make_node, ValueError("x"), failed_id="other")
        node = make_node("error_trigger", {"triggerOnNodes": ["http-1"]})
        assert await ErrorTriggerHandler().execute(node, ctx) == {"triggered": False}

    @pytest.mark.asyncio
    async def test_error_type_filter(self, make_node, make_context):
        node = make_node("error_trigger", {"errorTypes": ["TimeoutError"]})
        handler = ErrorTriggerHandler()

        mismatch = self.error_context(make_context, make_node, ValueError("x"))
        assert await handler.execute(node, mismatch) == {"triggered": False}

        match = self.error_context(make_context, make_node, TimeoutError("slow"))
        assert (await handler.execute(node, match))["triggered"] is True

    @pytest.mark.asyncio
    async def test_error_mapping(self, make_node, make_context):
        ctx = make_context(variables={
            "$error": {"message": "boom", "type": "NetworkError"},
            "$failedNode": {"id": "n1", "name": "Node", "type": "webhook"},
        })
        node = make_node("error_trigger", {"errorTypes": ["NetworkError"], "triggerOnNodes": ["n1"]})
        result = await ErrorTriggerHandler().execute(node, ctx)
        assert result["error"]["message"] == "boom"
        assert result["failedNode"]["id"] == "n1"

    @pytest.mark.asyncio
    async def test_notifications_are_logged(self, make_node, make_context):
        calls = []
        handler = ErrorTriggerHandler()
        handler.send_email_notification = lambda *args: calls.append(("email", args[0]))
        handler.send_sms_notification = lambda *args: calls.append(("sms", args[0]))

        node = make_node("error_trigger", {"notifyEmail": "ops@example.com", "notifySMS": "+31600000000"})
        await handler.execute(node, self.error_context(make_context, make_node, ValueError("x")))
        assert calls == [("email", "ops@example.com"), ("sms", "+31600000000")]

    def test_describe_error(self):
        assert describe_error(None) == {"message": "Unknown error", "type": "Error", "stack": None}
        described = describe_error(KeyError("k"))
        assert described["type"] == "KeyError"
        assert described["stack"] is None
