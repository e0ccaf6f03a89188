"""MCP (stdio) surface for the relay."""
