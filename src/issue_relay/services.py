"""Wire the cache, log, engine and interaction handler together.

Every surface (HTTP app, MCP server, CLI) builds one ``RelayServices`` at
startup and shares it for the life of the process.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from dotenv import load_dotenv

from .channel.base import ChannelFactory
from .channel.discord import DiscordChannel
from .config import Config, load_config
from .config_loader import load_hierarchical_config
from .config_schema import ChannelConfig, TrackerConnectionConfig, UnifiedConfig, build_config
from .interactions.handler import InteractionHandler
from .sync.engine import ReconciliationEngine
from .sync.models import OperationStatus
from .sync.oplog import OperationLog
from .sync.state import LocalCache
from .tracker.base import TrackerFactory
from .tracker.notion import NotionTracker

logger = logging.getLogger(__name__)


@dataclass
class RelayServices:
    config: Config
    unified: UnifiedConfig
    cache: LocalCache
    oplog: OperationLog
    engine: ReconciliationEngine
    interactions: InteractionHandler

    def stats(self, recent_errors: int = 5) -> dict[str, Any]:
        """Mapping counts, last sync time and the latest errors."""
        active = self.unified.active_mappings()
        last_syncs = [
            ts
            for ts in (self.cache.get_last_sync(m.id) for m in self.unified.mappings)
            if ts
        ]
        errors = [
            e
            for e in reversed(self.oplog.entries())
            if e.status is OperationStatus.ERROR
        ][:recent_errors]
        return {
            "totalMappings": len(self.unified.mappings),
            "activeMappings": len(active),
            "inactiveMappings": len(self.unified.mappings) - len(active),
            "lastSyncTime": max(last_syncs) if last_syncs else None,
            "cachedRecords": self.cache.stats()["records"],
            "recentErrors": [
                {
                    "mappingId": e.mapping_id,
                    "operation": e.operation.value,
                    "message": e.message,
                    "errorDetails": e.error_details,
                    "timestamp": e.timestamp,
                }
                for e in errors
            ],
        }


def default_factories(config: Config) -> tuple[TrackerFactory, ChannelFactory]:
    """Notion trackers and Discord channels with the configured HTTP timeout."""
    timeout = (min(10.0, config.request_timeout), config.request_timeout)

    def tracker_factory(connection: TrackerConnectionConfig) -> NotionTracker:
        return NotionTracker(connection, timeout=timeout)

    def channel_factory(channel: ChannelConfig) -> DiscordChannel:
        return DiscordChannel(channel, timeout=timeout)

    return tracker_factory, channel_factory


def build_services(
    unified: UnifiedConfig,
    config: Config,
    *,
    tracker_factory: TrackerFactory | None = None,
    channel_factory: ChannelFactory | None = None,
) -> RelayServices:
    """Build the service graph. Factories default to Notion and Discord."""
    default_tracker, default_channel = default_factories(config)
    cache = LocalCache(config.state_dir)
    oplog = OperationLog(config.state_dir)
    engine = ReconciliationEngine(
        unified,
        cache,
        oplog,
        tracker_factory or default_tracker,
        channel_factory or default_channel,
        max_concurrency=config.max_parallel_requests,
        call_timeout=config.request_timeout,
    )
    interactions = InteractionHandler(
        cache,
        oplog,
        engine.tracker_for,
        config.public_key,
        call_timeout=config.request_timeout,
    )
    logger.info(
        "Relay ready: %d trackers, %d channels, %d mappings (%d active), state in %s",
        len(unified.trackers),
        len(unified.channels),
        len(unified.mappings),
        len(unified.active_mappings()),
        config.state_dir,
    )
    return RelayServices(config, unified, cache, oplog, engine, interactions)


def load_services(overrides: dict[str, Any] | None = None) -> RelayServices:
    """Load .env, YAML config and runtime settings, then build services.

    Precedence for runtime settings: CLI overrides > env > .env > YAML > defaults.

    Raises:
        ValueError: The configuration is invalid.
    """
    load_dotenv()
    unified = build_config(load_hierarchical_config())
    yaml_fallbacks = {
        k: v for k, v in unified.relay.model_dump().items() if v is not None
    }
    opts = overrides or {}
    config = load_config(
        state_dir=opts.get("state_dir"),
        host=opts.get("host"),
        port=opts.get("port"),
        debug=opts.get("debug", False),
        yaml_fallbacks=yaml_fallbacks,
    )
    return build_services(unified, config)
