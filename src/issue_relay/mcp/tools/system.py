"""System tool handlers for MCP server.

Implements ``connection_test``: probe every configured tracker connection
and channel and report which ones are reachable with their credentials.
"""

import logging

import mcp.types as types

from ...core.async_utils import run_sync
from ...services import RelayServices
from .registry import ToolSpec

logger = logging.getLogger(__name__)


SYSTEM_TOOLS = [
    types.Tool(
        name="connection_test",
        description=(
            "Check that every configured Notion database and Discord channel "
            "is reachable with its credentials."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=True,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=True,
        ),
        inputSchema={
            "type": "object",
            "properties": {},
            "required": [],
        },
    )
]


async def check_connections(services: RelayServices) -> dict[str, dict[str, bool]]:
    """Return ``{"trackers": {id: ok}, "channels": {id: ok}}``."""
    engine = services.engine
    trackers = {
        t.id: await run_sync(engine.tracker_for(t.id).test_connection)
        for t in services.unified.trackers
    }
    channels = {
        c.id: await run_sync(engine.channel_for(c.id).test_connection)
        for c in services.unified.channels
    }
    return {"trackers": trackers, "channels": channels}


async def handle_system_tool(
    name: str, arguments: dict | None, services: RelayServices
) -> types.CallToolResult:
    """Handle system tool execution.

    Raises:
        ValueError: If tool name is unknown
    """
    match name:
        case "connection_test":
            return await _handle_connection_test(services)
        case _:
            raise ValueError(f"Unknown system tool: {name}")


async def _handle_connection_test(services: RelayServices) -> types.CallToolResult:
    status = await check_connections(services)
    lines = []
    for kind in ("trackers", "channels"):
        for item_id, ok in status[kind].items():
            lines.append(f"{kind[:-1]} {item_id}: {'ok' if ok else 'FAILED'}")
    if not lines:
        lines.append("No trackers or channels configured.")
    failed = [
        item_id for group in status.values() for item_id, ok in group.items() if not ok
    ]
    if failed:
        logger.warning("Connection test failed for: %s", ", ".join(failed))

    return types.CallToolResult(
        content=[types.TextContent(type="text", text="\n".join(lines))],
        structuredContent=status,
        isError=bool(failed),
    )


SYSTEM_SPECS = [
    ToolSpec(
        tool=SYSTEM_TOOLS[0],
        handler=lambda services, args: handle_system_tool(
            "connection_test", args, services
        ),
    )
]
