"""MCP tool handlers for reconciliation runs.

Defines two tools:

- ``sync_run`` -- reconcile one mapping, or every active mapping.
- ``sync_log`` -- operation log totals and most recent entries.
"""

from __future__ import annotations

import logging
from typing import Any

import mcp.types as types

from ...services import RelayServices
from ...sync.reporter import (
    format_log_summary,
    format_sync_result,
    log_summary_to_json,
    result_to_json,
)
from .errors import build_error_response
from .registry import ToolSpec

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Tool definitions
# ---------------------------------------------------------------------------


SYNC_TOOLS: list[types.Tool] = [
    types.Tool(
        name="sync_run",
        description=(
            "Mirror open tracker issues into their Discord channels. Runs one "
            "mapping when mapping_id is given, otherwise every active mapping."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=True,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "mapping_id": {
                    "type": "string",
                    "description": "Id of the mapping to run (omit for all)",
                },
            },
            "required": [],
        },
    ),
    types.Tool(
        name="sync_log",
        description=(
            "Show operation log totals and the most recent entries "
            "(sync summaries, failures, chat interactions)."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=True,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=False,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "limit": {
                    "type": "integer",
                    "minimum": 1,
                    "maximum": 100,
                    "default": 10,
                    "description": "Number of recent entries to return",
                },
            },
            "required": [],
        },
    ),
]


# ---------------------------------------------------------------------------
# Tool handler
# ---------------------------------------------------------------------------


async def handle_sync_tool(
    name: str,
    arguments: dict[str, Any] | None,
    services: RelayServices,
) -> types.CallToolResult:
    """Dispatch and execute a sync tool.

    Args:
        name: Tool name (``sync_run`` or ``sync_log``).
        arguments: Tool arguments dict.
        services: The process's relay services.
    """
    args = arguments or {}

    match name:
        case "sync_run":
            return await _handle_sync_run(services, args)
        case "sync_log":
            return await _handle_sync_log(services, args)
        case _:
            raise ValueError(f"Unknown sync tool: {name}")


async def _handle_sync_run(
    services: RelayServices, args: dict[str, Any]
) -> types.CallToolResult:
    mapping_id = args.get("mapping_id")
    if mapping_id:
        if services.unified.get_mapping(mapping_id) is None:
            available = [m.id for m in services.unified.mappings]
            return build_error_response(
                "not_found",
                f"Mapping '{mapping_id}' not found.",
                f"Available mappings: {available}. "
                "Check the mappings section of .issue_relay/config.yml.",
            )
        result = await services.engine.run_mapping(mapping_id)
    else:
        result = await services.engine.run_full()

    return types.CallToolResult(
        content=[types.TextContent(type="text", text=format_sync_result(result))],
        structuredContent=result_to_json(result),
        isError=not result.success,
    )


async def _handle_sync_log(
    services: RelayServices, args: dict[str, Any]
) -> types.CallToolResult:
    limit = args.get("limit", 10)
    if not isinstance(limit, int) or not (1 <= limit <= 100):
        raise ValueError("limit must be an integer between 1 and 100")

    summary = services.oplog.summary(limit)
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=format_log_summary(summary))],
        structuredContent=log_summary_to_json(summary),
    )


SYNC_SPECS: list[ToolSpec] = [
    ToolSpec(
        tool=tool,
        handler=lambda services, args, _name=tool.name: handle_sync_tool(
            _name, args, services
        ),
    )
    for tool in SYNC_TOOLS
]
