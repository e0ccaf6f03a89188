"""MCP tool handlers for relay operations.

This package wraps the reconciliation engine and operation log with async
handlers and structured error responses.
"""

from .errors import build_error_response, translate_relay_error
from .registry import ToolRegistry, ToolSpec
from .sync import SYNC_SPECS, SYNC_TOOLS, handle_sync_tool
from .system import SYSTEM_SPECS, SYSTEM_TOOLS, handle_system_tool

ALL_SPECS: list[ToolSpec] = SYSTEM_SPECS + SYNC_SPECS

__all__ = [
    "build_error_response",
    "translate_relay_error",
    "ToolSpec",
    "ToolRegistry",
    "ALL_SPECS",
    "SYNC_SPECS",
    "SYNC_TOOLS",
    "SYSTEM_SPECS",
    "SYSTEM_TOOLS",
    "handle_sync_tool",
    "handle_system_tool",
]
