"""ToolSpec and ToolRegistry for MCP tool dispatch.

Key concepts:
- ToolSpec: Immutable dataclass linking a Tool definition with an async
  handler of signature (services, args) -> CallToolResult.
- ToolRegistry: Provides list_tools() and call_tool() dispatch, translating
  relay errors and unexpected exceptions into structured responses.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import mcp.types as types

from ...errors import RelayError
from ...services import RelayServices

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ToolSpec:
    """Immutable definition of a single MCP tool.

    Attributes:
        tool: The MCP Tool definition (name, description, inputSchema).
        handler: Async handler with signature (services, args) -> CallToolResult.
    """

    tool: types.Tool
    handler: Callable[[RelayServices, dict], Awaitable[types.CallToolResult]]


class ToolRegistry:
    """Registry of ToolSpecs keyed by tool name."""

    def __init__(self, specs: list[ToolSpec]):
        self._specs: dict[str, ToolSpec] = {}
        for spec in specs:
            if spec.tool.name in self._specs:
                raise ValueError(f"Duplicate tool name: {spec.tool.name}")
            self._specs[spec.tool.name] = spec

    def list_tools(self) -> list[types.Tool]:
        """Return list of types.Tool for all registered specs."""
        return [spec.tool for spec in self._specs.values()]

    def tool_count(self) -> int:
        return len(self._specs)

    async def call_tool(
        self,
        name: str,
        arguments: dict | None,
        services: RelayServices,
    ) -> types.CallToolResult:
        """Dispatch tool call to registered handler.

        Raises:
            ValueError: If tool name is not registered.
        """
        from .errors import build_error_response, translate_relay_error

        spec = self._specs.get(name)
        if spec is None:
            raise ValueError(f"Unknown tool: {name}")
        args = arguments or {}
        try:
            return await spec.handler(services, args)
        except RelayError as e:
            logger.warning("Relay error in %s: %s", name, e)
            return translate_relay_error(e)
        except ValueError as e:
            return build_error_response(
                "validation_error",
                str(e),
                "Check parameter values and retry.",
            )
        except Exception as e:
            logger.exception("Unexpected error in tool %s", name)
            return build_error_response(
                "server_error",
                str(e),
                "Check the relay log file and retry later.",
            )
