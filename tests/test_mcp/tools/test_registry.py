"""Tests for ToolSpec and ToolRegistry dispatch."""

import dataclasses
from unittest.mock import MagicMock

import mcp.types as types
import pytest

from issue_relay.errors import NotFoundError, TransientError
from issue_relay.mcp.tools import ALL_SPECS
from issue_relay.mcp.tools.registry import ToolRegistry, ToolSpec


def _make_spec(name: str, handler=None) -> ToolSpec:
    if handler is None:

        async def handler(services, args):
            return types.CallToolResult(
                content=[types.TextContent(type="text", text=f"ok:{name}:{args}")]
            )

    return ToolSpec(
        tool=types.Tool(
            name=name,
            description=f"Test tool {name}",
            inputSchema={"type": "object", "properties": {}, "required": []},
        ),
        handler=handler,
    )


def _raising(exc: Exception) -> ToolSpec:
    async def handler(services, args):
        raise exc

    return _make_spec("boom", handler)


class TestToolSpec:
    def test_frozen(self):
        spec = _make_spec("a")
        with pytest.raises(dataclasses.FrozenInstanceError):
            spec.tool = None


class TestToolRegistry:
    def test_list_and_count(self):
        registry = ToolRegistry([_make_spec("a"), _make_spec("b")])
        assert [t.name for t in registry.list_tools()] == ["a", "b"]
        assert registry.tool_count() == 2

    def test_duplicate_names_rejected(self):
        with pytest.raises(ValueError, match="Duplicate tool name: a"):
            ToolRegistry([_make_spec("a"), _make_spec("a")])

    def test_builtin_specs_unique(self):
        registry = ToolRegistry(ALL_SPECS)
        assert {t.name for t in registry.list_tools()} == {
            "connection_test",
            "sync_run",
            "sync_log",
        }

    async def test_call_dispatches_with_empty_args(self):
        registry = ToolRegistry([_make_spec("a")])
        result = await registry.call_tool("a", None, MagicMock())
        assert result.content[0].text == "ok:a:{}"

    async def test_unknown_tool_raises(self):
        registry = ToolRegistry([_make_spec("a")])
        with pytest.raises(ValueError, match="Unknown tool: zzz"):
            await registry.call_tool("zzz", {}, MagicMock())

    async def test_relay_error_translated(self):
        registry = ToolRegistry([_raising(NotFoundError("Mapping 'x' missing"))])
        result = await registry.call_tool("boom", {}, MagicMock())
        assert result.isError
        assert result.content[0].text.startswith("Error (not_found): Mapping 'x' missing")

    async def test_transient_error_mentions_retry(self):
        registry = ToolRegistry([_raising(TransientError("429", retry_after=4))])
        result = await registry.call_tool("boom", {}, MagicMock())
        assert "(retry after 4s)" in result.content[0].text

    async def test_value_error_is_validation_error(self):
        registry = ToolRegistry([_raising(ValueError("limit must be positive"))])
        result = await registry.call_tool("boom", {}, MagicMock())
        assert "Error (validation_error): limit must be positive" in result.content[0].text

    async def test_unexpected_error_is_server_error(self):
        registry = ToolRegistry([_raising(RuntimeError("kaput"))])
        result = await registry.call_tool("boom", {}, MagicMock())
        assert result.isError
        assert "Error (server_error): kaput" in result.content[0].text
