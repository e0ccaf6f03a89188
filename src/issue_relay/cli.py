"""``issue-relay`` command line.

Subcommands:
    serve   Run the HTTP service (interactions endpoint and sync triggers).
    mcp     Run the MCP stdio server.
    sync    Run one reconciliation pass (all mappings, or ``--mapping ID``).
    log     Print the operation log summary.
    check   Probe every tracker connection and channel.
    init    Write a starter config file.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys

from . import __version__
from .config_loader import ensure_config
from .errors import RelayError
from .logger import setup_logging
from .services import RelayServices, load_services
from .sync.reporter import (
    format_log_summary,
    format_sync_result,
    log_summary_to_json,
    result_to_json,
)

logger = logging.getLogger(__name__)


def _overrides(args: argparse.Namespace) -> dict:
    overrides: dict = {"debug": args.debug}
    if args.state_dir:
        overrides["state_dir"] = args.state_dir
    if getattr(args, "host", None):
        overrides["host"] = args.host
    if getattr(args, "port", None):
        overrides["port"] = args.port
    return overrides


def _print(data: dict, text: str, as_json: bool) -> None:
    if as_json:
        print(json.dumps(data, indent=2))
    else:
        print(text)


def cmd_sync(services: RelayServices, args: argparse.Namespace) -> int:
    if args.mapping:
        result = asyncio.run(services.engine.run_mapping(args.mapping))
    else:
        result = asyncio.run(services.engine.run_full())
    _print(result_to_json(result), format_sync_result(result), args.json)
    return 0 if result.success else 1


def cmd_log(services: RelayServices, args: argparse.Namespace) -> int:
    summary = services.oplog.summary(args.limit)
    _print(log_summary_to_json(summary), format_log_summary(summary), args.json)
    return 0


def cmd_check(services: RelayServices, args: argparse.Namespace) -> int:
    from .mcp.tools.system import check_connections

    status = asyncio.run(check_connections(services))
    lines = [
        f"{kind[:-1]} {item_id}: {'ok' if ok else 'FAILED'}"
        for kind, group in status.items()
        for item_id, ok in group.items()
    ]
    _print(status, "\n".join(lines) or "No trackers or channels configured.", args.json)
    return 0 if all(ok for group in status.values() for ok in group.values()) else 1


def cmd_serve(services: RelayServices, args: argparse.Namespace) -> int:
    import uvicorn

    from .web.app import create_app

    app = create_app(services)
    uvicorn.run(
        app,
        host=services.config.host,
        port=services.config.port,
        log_config=None,
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="issue-relay",
        description="Mirror open Notion issues into Discord channels and resolve them from chat",
    )
    parser.add_argument("--version", action="version", version=f"issue-relay {__version__}")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--log-file", help="Also write logs to this file")
    parser.add_argument(
        "--log-format", choices=("text", "json"), default="text", help="Log line format"
    )
    parser.add_argument("--state-dir", help="Directory for the relay cache and operation log")

    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP service")
    serve.add_argument("--host", help="Bind host (default: 127.0.0.1)")
    serve.add_argument("--port", type=int, help="Bind port (default: 8080)")

    sub.add_parser("mcp", help="Run the MCP stdio server")

    sync = sub.add_parser("sync", help="Run one reconciliation pass")
    sync.add_argument("--mapping", help="Only run this mapping id")
    sync.add_argument("--json", action="store_true", help="Print JSON")

    log = sub.add_parser("log", help="Show the operation log summary")
    log.add_argument("--limit", type=int, default=10, help="Recent entries to show")
    log.add_argument("--json", action="store_true", help="Print JSON")

    check = sub.add_parser("check", help="Probe tracker connections and channels")
    check.add_argument("--json", action="store_true", help="Print JSON")

    sub.add_parser("init", help="Write a starter .issue_relay/config.yml")
    return parser


_COMMANDS = {
    "sync": cmd_sync,
    "log": cmd_log,
    "check": cmd_check,
    "serve": cmd_serve,
}


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    if args.command == "mcp":
        from .mcp.server import main as mcp_main

        overrides = _overrides(args)
        if args.log_file:
            overrides["log_file"] = args.log_file
        try:
            asyncio.run(mcp_main(config_overrides=overrides))
        except RuntimeError:
            return 1
        return 0

    setup_logging(
        mode="server" if args.command == "serve" else "cli",
        debug=args.debug,
        log_file=args.log_file,
        debug_format=args.log_format,
    )

    if args.command == "init":
        path = ensure_config()
        print(f"Config file: {path}")
        return 0

    try:
        services = load_services(_overrides(args))
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    try:
        return _COMMANDS[args.command](services, args)
    except RelayError as e:
        logger.error("%s failed: %s", args.command, e)
        print(f"Error ({e.error_type}): {e}", file=sys.stderr)
        return 1


def run() -> None:
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(130)


if __name__ == "__main__":
    run()
