"""Tests for the MCP server globals, ping tool and lifespan."""

from unittest.mock import patch

import pytest

from issue_relay.mcp import server
from issue_relay.mcp.lifespan import server_lifespan
from issue_relay.mcp.tools import ToolRegistry


@pytest.fixture
def installed(relay_services):
    server.set_services(relay_services)
    server.set_registry(ToolRegistry([server.PING_SPEC]))
    yield relay_services
    server.set_services(None)
    server.set_registry(None)


def test_accessors_require_init():
    with pytest.raises(RuntimeError, match="not initialized"):
        server.get_services()
    with pytest.raises(RuntimeError, match="not initialized"):
        server.get_registry()


async def test_ping(installed):
    result = await server.handle_call_tool("ping", {})
    text = result.content[0].text
    assert "1 trackers, 1 channels, 1 of 1 mappings active" in text


async def test_list_tools(installed):
    tools = await server.handle_list_tools()
    assert [t.name for t in tools] == ["ping"]


async def test_unknown_tool(installed):
    result = await server.handle_call_tool("nope", None)
    assert result.isError
    assert "Error (unknown_tool)" in result.content[0].text


class TestLifespan:
    async def test_yields_services(self, tmp_path, capsys):
        async with server_lifespan({"state_dir": str(tmp_path / "state")}) as ctx:
            services = ctx["services"]
            assert services.config.state_dir == tmp_path / "state"
            assert services.unified.mappings == []

        err = capsys.readouterr().err
        assert "Server ready" in err
        assert "shutting down" in err

    async def test_config_error_becomes_runtime_error(self, monkeypatch, capsys):
        monkeypatch.setenv("RELAY_REQUEST_TIMEOUT", "-1")
        with pytest.raises(RuntimeError, match="Configuration error"):
            async with server_lifespan():
                pass
        assert "ERROR: Configuration error" in capsys.readouterr().err

    async def test_unreachable_endpoints_only_warn(self, tmp_path, capsys):
        config = tmp_path / ".issue_relay" / "config.yml"
        config.parent.mkdir(parents=True)
        config.write_text(
            "trackers:\n"
            "  - id: bugs\n"
            "    api_key: k\n"
            "    database_id: db\n",
            encoding="utf-8",
        )
        with patch(
            "issue_relay.tracker.notion.NotionTracker.test_connection", return_value=False
        ):
            async with server_lifespan() as ctx:
                assert ctx["services"].unified.get_tracker("bugs") is not None

        assert "WARNING: tracker 'bugs' is unreachable" in capsys.readouterr().err
