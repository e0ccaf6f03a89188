"""Tests for the sync_run and sync_log MCP tools over fake adapters."""

import pytest

from fakes import make_record
from issue_relay.errors import TransientError
from issue_relay.mcp.tools.sync import SYNC_TOOLS, handle_sync_tool


def test_tool_definitions():
    names = [t.name for t in SYNC_TOOLS]
    assert names == ["sync_run", "sync_log"]
    for tool in SYNC_TOOLS:
        assert tool.inputSchema["type"] == "object"
        assert tool.inputSchema["required"] == []


class TestSyncRun:
    async def test_runs_all_mappings(self, relay_services, fake_tracker, fake_channel):
        fake_tracker.records = [make_record("r1")]

        result = await handle_sync_tool("sync_run", {}, relay_services)

        assert not result.isError
        assert result.structuredContent["issuesProcessed"] == 1
        assert "Sync of all mappings: OK" in result.content[0].text
        assert fake_channel.posts == ["r1"]

    async def test_runs_one_mapping(self, relay_services, fake_tracker):
        fake_tracker.records = [make_record("r1"), make_record("r2")]

        result = await handle_sync_tool("sync_run", {"mapping_id": "m1"}, relay_services)

        assert "Sync of mapping 'm1'" in result.content[0].text
        assert result.structuredContent["issuesProcessed"] == 2

    async def test_unknown_mapping(self, relay_services, fake_tracker):
        result = await handle_sync_tool("sync_run", {"mapping_id": "nope"}, relay_services)

        assert result.isError
        assert "Error (not_found)" in result.content[0].text
        assert "['m1']" in result.content[0].text
        assert fake_tracker.fetch_calls == 0

    async def test_failed_run_flags_error(self, relay_services, fake_tracker):
        fake_tracker.fetch_error = TransientError("Notion down")

        result = await handle_sync_tool("sync_run", None, relay_services)

        assert result.isError
        assert result.structuredContent["success"] is False
        assert "Notion down" in result.structuredContent["errors"][0]


class TestSyncLog:
    async def test_returns_recent_entries(self, relay_services, fake_tracker):
        fake_tracker.records = [make_record("r1")]
        await handle_sync_tool("sync_run", {"mapping_id": "m1"}, relay_services)

        result = await handle_sync_tool("sync_log", {"limit": 5}, relay_services)

        body = result.structuredContent
        assert body["total"] == 1
        assert body["recentEntries"][0]["operation"] == "sync"
        assert body["recentEntries"][0]["mappingId"] == "m1"
        assert "Operations: 1 total" in result.content[0].text

    @pytest.mark.parametrize("limit", [0, 101, "ten"])
    async def test_bad_limit(self, relay_services, limit):
        with pytest.raises(ValueError, match="limit"):
            await handle_sync_tool("sync_log", {"limit": limit}, relay_services)


async def test_unknown_sync_tool(relay_services):
    with pytest.raises(ValueError, match="Unknown sync tool"):
        await handle_sync_tool("sync_everything", {}, relay_services)
