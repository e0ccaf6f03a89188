"""MCP server exposing relay operations over stdio.

Transport: stdio
Protocol: JSON-RPC 2.0 over MCP
"""

import argparse
import asyncio
import logging
import sys

import mcp.server.stdio
import mcp.types as types
from mcp.server import NotificationOptions, Server
from mcp.server.models import InitializationOptions

from .. import __version__
from ..logger import setup_logging
from ..services import RelayServices
from .lifespan import server_lifespan
from .tools import ALL_SPECS, ToolRegistry, build_error_response
from .tools.registry import ToolSpec

logger = logging.getLogger(__name__)

server = Server("issue-relay")

# Initialized in main()
_services: RelayServices | None = None
_registry: ToolRegistry | None = None


# ---------------------------------------------------------------------------
# Ping tool
# ---------------------------------------------------------------------------


async def _handle_ping(
    services: RelayServices, args: dict
) -> types.CallToolResult:
    """Report configuration counts; touches no remote service."""
    unified = services.unified
    return types.CallToolResult(
        content=[
            types.TextContent(
                type="text",
                text=(
                    f"Issue relay {__version__} running: "
                    f"{len(unified.trackers)} trackers, {len(unified.channels)} channels, "
                    f"{len(unified.active_mappings())} of {len(unified.mappings)} mappings active."
                ),
            )
        ]
    )


PING_SPEC = ToolSpec(
    tool=types.Tool(
        name="ping",
        description="Check that the relay MCP server is running and summarize its configuration",
        inputSchema={
            "type": "object",
            "properties": {},
            "required": [],
        },
    ),
    handler=_handle_ping,
)


# ---------------------------------------------------------------------------
# Global accessors
# ---------------------------------------------------------------------------


def get_services() -> RelayServices:
    """Get the global RelayServices instance.

    Raises:
        RuntimeError: If services are not initialized
    """
    if _services is None:
        raise RuntimeError(
            "Relay services not initialized. Server lifespan not started."
        )
    return _services


def set_services(services: RelayServices | None) -> None:
    global _services
    _services = services


def get_registry() -> ToolRegistry:
    """Get the global ToolRegistry instance.

    Raises:
        RuntimeError: If registry is not initialized
    """
    if _registry is None:
        raise RuntimeError("ToolRegistry not initialized.")
    return _registry


def set_registry(registry: ToolRegistry | None) -> None:
    global _registry
    _registry = registry


# ---------------------------------------------------------------------------
# MCP protocol handlers
# ---------------------------------------------------------------------------


@server.list_tools()
async def handle_list_tools() -> list[types.Tool]:
    return get_registry().list_tools()


@server.call_tool()
async def handle_call_tool(
    name: str, arguments: dict | None
) -> types.CallToolResult:
    """Handle tool execution via ToolRegistry dispatch."""
    services = get_services()
    try:
        return await get_registry().call_tool(name, arguments, services)
    except ValueError as e:
        return build_error_response(
            "unknown_tool",
            str(e),
            "Use list_tools to see available tools.",
        )


# ---------------------------------------------------------------------------
# Server lifecycle
# ---------------------------------------------------------------------------


async def main(config_overrides: dict | None = None):
    """Run the MCP server with stdio transport.

    Logging goes to a file only; stdout carries JSON-RPC.

    Args:
        config_overrides: Optional dict with state_dir, debug and log_file
    """
    overrides = config_overrides or {}
    setup_logging(
        mode="mcp",
        debug=overrides.get("debug", False),
        log_file=overrides.get("log_file"),
    )

    all_specs = [PING_SPEC] + ALL_SPECS
    registry = ToolRegistry(all_specs)
    logger.info("Registered %d tools", registry.tool_count())
    set_registry(registry)

    # set_services() is called here rather than inside the lifespan so that
    # running this file as __main__ updates the same module globals the
    # handlers read.
    async with server_lifespan(config_overrides=overrides) as ctx:
        set_services(ctx["services"])
        try:
            async with mcp.server.stdio.stdio_server() as (
                read_stream,
                write_stream,
            ):
                init_options = InitializationOptions(
                    server_name="issue-relay",
                    server_version=__version__,
                    capabilities=server.get_capabilities(
                        notification_options=NotificationOptions(),
                        experimental_capabilities={},
                    ),
                )
                await server.run(read_stream, write_stream, init_options)
        finally:
            set_services(None)
            set_registry(None)


def run() -> None:
    """Entry point that handles errors gracefully and parses CLI arguments."""
    parser = argparse.ArgumentParser(
        description="Issue Relay MCP Server - run and inspect issue syncs from an MCP client",
    )
    parser.add_argument(
        "--state-dir",
        help="Directory for the relay cache and operation log (overrides RELAY_STATE_DIR)",
    )
    parser.add_argument(
        "--log-file",
        default="/tmp/issue-relay.log",
        help="Log file path (default: /tmp/issue-relay.log)",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "--version",
        action="version",
        version=f"issue-relay version {__version__}",
    )
    args = parser.parse_args()

    config_overrides: dict = {"log_file": args.log_file}
    if args.state_dir:
        config_overrides["state_dir"] = args.state_dir
    if args.debug:
        config_overrides["debug"] = True

    try:
        asyncio.run(main(config_overrides=config_overrides))
    except RuntimeError:
        # Error already printed to stderr by lifespan manager
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(0)


if __name__ == "__main__":
    run()
