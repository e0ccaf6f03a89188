"""Error response builders for MCP tool handlers.

Structured error responses carry a corrective action so an agent can
recover without human intervention.
"""

import mcp.types as types

from ...errors import (
    AuthError,
    NotFoundError,
    RelayError,
    TransientError,
    ValidationError,
)


def build_error_response(
    error_type: str, message: str, corrective_action: str
) -> types.CallToolResult:
    """Build a structured error response with corrective action.

    Args:
        error_type: Error category (not_found, auth_error, validation_error,
            transient_error, server_error, unknown_tool)
        message: Human-readable error description
        corrective_action: Specific action the agent can take to resolve the error

    Returns:
        CallToolResult with isError=True

    Examples:
        >>> build_error_response("not_found", "Mapping 'x' not found", "Use sync_log to list mappings.")
        CallToolResult(content=[TextContent(...)], isError=True)
    """
    error_text = f"Error ({error_type}): {message}\n\nAction: {corrective_action}"

    return types.CallToolResult(
        content=[types.TextContent(type="text", text=error_text)],
        isError=True,
    )


_CORRECTIVE_ACTIONS: dict[type[RelayError], str] = {
    AuthError: "Check the Notion API key and Discord bot token in the relay config.",
    NotFoundError: "Check the mapping, tracker and channel ids in the relay config.",
    ValidationError: "Check parameter values and the tracker database schema, then retry.",
    TransientError: "The remote service is busy or unreachable; retry later.",
}


def translate_relay_error(error: RelayError) -> types.CallToolResult:
    """Translate a typed relay error into a structured error response."""
    action = "Check the relay log file and retry."
    for cls, text in _CORRECTIVE_ACTIONS.items():
        if isinstance(error, cls):
            action = text
            break
    message = str(error)
    if isinstance(error, TransientError) and error.retry_after is not None:
        message += f" (retry after {error.retry_after:.0f}s)"
    return build_error_response(error.error_type, message, action)
