"""Lifespan management for MCP server startup and shutdown."""

import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from ..config_loader import discover_config_files
from ..services import load_services
from .tools.system import check_connections

logger = logging.getLogger(__name__)


def _stderr_print(msg: str) -> None:
    """Print message to stderr for user feedback (safe in MCP mode)."""
    print(msg, file=sys.stderr, flush=True)


@asynccontextmanager
async def server_lifespan(
    config_overrides: dict[str, Any] | None = None,
) -> AsyncIterator[dict[str, Any]]:
    """
    Manage server startup and shutdown lifecycle.

    On startup:
    - Load .env, the YAML config and runtime settings (CLI > env > .env > YAML > defaults)
    - Build the relay services
    - Probe every tracker connection and channel; unreachable ones are
      reported but do not stop the server, since mappings fail in isolation

    Args:
        config_overrides: Optional dict with values from CLI (state_dir, debug)

    Yields:
        Dict with 'services' key containing the initialized RelayServices

    Raises:
        RuntimeError: If configuration is invalid.
    """
    logger.info("MCP server starting...")
    _stderr_print("Issue Relay MCP Server starting...")

    try:
        services = load_services(config_overrides)
    except ValueError as e:
        logger.error("Configuration error: %s", e)
        _stderr_print(f"ERROR: Configuration error: {e}")
        raise RuntimeError(f"Configuration error: {e}") from e

    config_files = discover_config_files()
    source = f"config file: {config_files[0]}" if config_files else "defaults"
    logger.info("Configuration loaded from: %s", source)
    _stderr_print(f"  Configuration loaded from: {source}")
    _stderr_print(
        f"  {len(services.unified.mappings)} mappings, state in {services.config.state_dir}"
    )

    status = await check_connections(services)
    for kind, group in status.items():
        for item_id, ok in group.items():
            if not ok:
                logger.warning("%s %s is unreachable", kind, item_id)
                _stderr_print(f"  WARNING: {kind[:-1]} '{item_id}' is unreachable")
    _stderr_print("Server ready. Waiting for MCP client connection...")

    yield {"services": services}

    logger.info("MCP server shutting down")
    _stderr_print("Issue Relay MCP Server shutting down.")
