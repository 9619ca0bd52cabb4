"""Tests for the loop node."""

from unittest.mock import AsyncMock

import pytest

from taktak.executor.errors import DataValidationError, WorkflowExecutionError
from taktak.nodes.control import LoopHandler, passthrough_loop_body


@pytest.mark.unit
class TestLoopItems:
    """Item resolution and the iteration ceiling."""

    @pytest.mark.asyncio
    async def test_empty_array(self, make_node, context):
        result = await LoopHandler().execute(make_node("loop", {"items": []}), context)
        assert result == {"items": [], "count": 0}

    @pytest.mark.asyncio
    async def test_literal_array_in_batches(self, make_node, context):
        node = make_node("loop", {"items": [1, 2, 3, 4, 5, 6], "batchSize": 2})
        result = await LoopHandler().execute(node, context)
        assert result["count"] == 6
        assert result["successCount"] == 6
        assert result["errorCount"] == 0
        assert "errors" not in result

    @pytest.mark.asyncio
    async def test_passthrough_body_output(self, make_node, context):
        result = await LoopHandler().execute(make_node("loop", {"items": ["a", "b"]}), context)
        assert result["items"] == [
            {"item": "a", "processed": True, "context": {"index": 0, "iteration": 1}},
            {"item": "b", "processed": True, "context": {"index": 1, "iteration": 2}},
        ]

    @pytest.mark.asyncio
    async def test_json_expression(self, make_node, make_context):
        node = make_node("loop", {"items": "$json.data.users"})
        ctx = make_context(input={"data": {"users": [{"id": 1}, {"id": 2}]}})
        result = await LoopHandler().execute(node, ctx)
        assert result["count"] == 2

    @pytest.mark.asyncio
    async def test_node_expression(self, make_node, make_context):
        node = make_node("loop", {"items": "{{$node.fetch.rows}}"})
        ctx = make_context(variables={"fetch": {"rows": [1, 2, 3]}})
        result = await LoopHandler().execute(node, ctx)
        assert result["count"] == 3

    @pytest.mark.asyncio
    async def test_node_output_empty_array(self, make_node, make_context):
        node = make_node("loop", {"items": "$node.fetch"})
        result = await LoopHandler().execute(node, make_context(variables={"fetch": []}))
        assert result == {"items": [], "count": 0}

    @pytest.mark.asyncio
    async def test_missing_node_output(self, make_node, context):
        node = make_node("loop", {"items": "$node.fetch"})
        with pytest.raises(DataValidationError, match="Node output not found: fetch"):
            await LoopHandler().execute(node, context)

    @pytest.mark.asyncio
    async def test_variable_expression(self, make_node, make_context):
        node = make_node("loop", {"items": "users"})
        result = await LoopHandler().execute(node, make_context(variables={"users": ["x"]}))
        assert result["count"] == 1

    @pytest.mark.asyncio
    async def test_unresolvable_expression(self, make_node, context):
        node = make_node("loop", {"items": "missing"})
        with pytest.raises(DataValidationError, match="Cannot resolve expression: missing"):
            await LoopHandler().execute(node, context)

    @pytest.mark.asyncio
    async def test_non_array_variable(self, make_node, make_context):
        node = make_node("loop", {"items": "count"})
        with pytest.raises(DataValidationError, match="must be an array"):
            await LoopHandler().execute(node, make_context(variables={"count": 3}))

    @pytest.mark.asyncio
    async def test_missing_items(self, make_node, context):
        with pytest.raises(DataValidationError, match="array or expression"):
            await LoopHandler().execute(make_node("loop", {}), context)

    @pytest.mark.asyncio
    async def test_exceeding_max_iterations_processes_nothing(self, make_node, context):
        body = AsyncMock(return_value="ok")
        node = make_node("loop", {"items": [1, 2, 3], "maxIterations": 2})
        with pytest.raises(DataValidationError, match="maximum iterations limit: 3 > 2"):
            await LoopHandler(loop_body=body).execute(node, context)
        body.assert_not_called()

    @pytest.mark.asyncio
    async def test_default_ceiling_from_settings(self, make_node, context, test_settings):
        settings = test_settings.model_copy(update={"max_loop_iterations": 3})
        node = make_node("loop", {"items": list(range(4))})
        with pytest.raises(DataValidationError, match="4 > 3"):
            await LoopHandler(settings=settings).execute(node, context)

    @pytest.mark.asyncio
    async def test_range_mode(self, make_node, context):
        node = make_node("loop", {"loopType": "range", "start": 0, "end": 6, "step": 2})
        result = await LoopHandler().execute(node, context)
        assert [entry["item"] for entry in result["items"]] == [0, 2, 4]

    @pytest.mark.asyncio
    async def test_unknown_loop_type(self, make_node, context):
        node = make_node("loop", {"loopType": "while", "items": [1]})
        with pytest.raises(DataValidationError, match="Unknown loop type: while"):
            await LoopHandler().execute(node, context)


@pytest.mark.unit
class TestLoopScope:
    """Loop variables bound for each item."""

    @pytest.mark.asyncio
    async def test_loop_variables(self, make_node, make_context):
        seen = []

        async def body(node, item, scope):
            seen.append({
                key: scope.variables[key]
                for key in ("$item", "$index", "$iteration", "$length", "$isFirst", "$isLast")
            })
            return item

        outer = make_context(variables={"keep": True})
        await LoopHandler(loop_body=body).execute(make_node("loop", {"items": ["a", "b", "c"]}), outer)

        assert seen[0] == {
            "$item": "a", "$index": 0, "$iteration": 1, "$length": 3, "$isFirst": True, "$isLast": False,
        }
        assert seen[2]["$isLast"] is True
        assert seen[2]["$isFirst"] is False
        assert outer.variables == {"keep": True}

    @pytest.mark.asyncio
    async def test_scope_keeps_outer_variables(self, make_node, make_context):
        async def body(node, item, scope):
            return scope.variables["prefix"] + item

        node = make_node("loop", {"items": ["x", "y"]})
        result = await LoopHandler(loop_body=body).execute(node, make_context(variables={"prefix": ">"}))
        assert result["items"] == [">x", ">y"]


@pytest.mark.unit
class TestLoopErrorPolicy:
    """Per-item error handling."""

    @pytest.mark.asyncio
    async def test_abort_on_first_failure(self, make_node, context):
        processed = []

        async def body(node, item, scope):
            processed.append(item)
            if item == 2:
                raise ValueError("bad item")
            return item

        node = make_node("loop", {"items": [1, 2, 3, 4]}, node_id="loop-1")
        with pytest.raises(WorkflowExecutionError) as exc_info:
            await LoopHandler(loop_body=body).execute(node, context)

        assert processed == [1, 2]
        error = exc_info.value
        assert "Loop failed at item 1: bad item" in error.message
        assert error.node_id == "loop-1"
        assert error.details["partial_results"] == [1]
        assert isinstance(error.__cause__, ValueError)

    @pytest.mark.asyncio
    async def test_continue_on_item_error(self, make_node, context):
        async def body(node, item, scope):
            if item % 2 == 0:
                raise ValueError(f"even {item}")
            return item * 10

        node = make_node("loop", {"items": [1, 2, 3, 4, 5], "continueOnItemError": True})
        result = await LoopHandler(loop_body=body).execute(node, context)

        assert result["count"] == 5
        assert result["items"] == [10, None, 30, None, 50]
        assert result["successCount"] == 3
        assert result["errorCount"] == 2
        assert result["errors"] == [
            {"index": 1, "error": "even 2"},
            {"index": 3, "error": "even 4"},
        ]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_passthrough_body(make_node, make_context):
    scope = make_context().loop_scope("v", 2, 5)
    result = await passthrough_loop_body(make_node("loop"), "v", scope)
    assert result == {"item": "v", "processed": True, "context": {"index": 2, "iteration": 3}}
