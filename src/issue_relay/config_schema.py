"""Unified configuration schema for issue_relay.

Defines Pydantic models for the YAML config: tracker connections, chat
channels, the mappings that pair them, runtime relay settings and logging.

Usage:
    from issue_relay.config_schema import build_config

    raw = load_hierarchical_config()
    unified = build_config(raw)
    for mapping in unified.active_mappings():
        ...
"""

from __future__ import annotations

import logging

from pydantic import BaseModel, Field, field_validator, model_validator

logger = logging.getLogger(__name__)

# Sentinel project filter meaning "every project".
ALL_PROJECTS = "all"


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class PropertyNames(BaseModel):
    """Names of the tracker properties a record is read from."""

    display_id: str = Field(default="issue-id")
    title: str = Field(default="bug-name")
    description: str = Field(default="bug-description")
    project: str = Field(default="project")
    severity: str = Field(default="severity")
    attachments: str = Field(default="attached-files")

    model_config = {"frozen": True}


class TrackerConnectionConfig(BaseModel):
    """A Notion database holding issue pages."""

    id: str = Field(description="Stable identifier referenced by mappings")
    name: str = Field(default="", description="Display name")
    api_key: str = Field(description="Notion integration token")
    database_id: str = Field(description="Notion database id")
    status_property: str = Field(
        default="status", description="Name of the status property"
    )
    open_value: str = Field(
        default="open", description="Status value that marks a record open"
    )
    resolved_value: str = Field(
        default="resolved",
        description="Status value written when a record is resolved",
    )
    properties: PropertyNames = Field(default_factory=PropertyNames)
    active: bool = True

    model_config = {"frozen": True}


class ChannelConfig(BaseModel):
    """A Discord channel messages are posted to."""

    id: str = Field(description="Stable identifier referenced by mappings")
    name: str = Field(default="", description="Display name")
    bot_token: str = Field(description="Discord bot token")
    channel_id: str = Field(description="Discord channel snowflake")
    guild_id: str | None = Field(default=None, description="Discord guild")
    active: bool = True

    model_config = {"frozen": True}

    @field_validator("channel_id", "guild_id", mode="before")
    @classmethod
    def _snowflake_as_str(cls, value):
        # Unquoted snowflakes in YAML load as ints.
        return str(value) if isinstance(value, int) else value


class MappingConfig(BaseModel):
    """Pairs a tracker connection with a channel and an optional project filter."""

    id: str
    tracker: str = Field(description="TrackerConnectionConfig.id")
    channel: str = Field(description="ChannelConfig.id")
    project_filter: str | None = Field(
        default=None,
        description="Only relay records of this project; null or 'all' relays every project",
    )
    active: bool = True

    model_config = {"frozen": True}

    @property
    def matches_all_projects(self) -> bool:
        return self.project_filter is None or self.project_filter == ALL_PROJECTS

    def accepts(self, project: str) -> bool:
        """Return True if a record of *project* belongs to this mapping."""
        return self.matches_all_projects or project == self.project_filter


class RelaySettings(BaseModel):
    """Runtime settings (YAML fallbacks for ``issue_relay.config.Config``)."""

    state_dir: str | None = Field(
        default=None, description="Directory for cache and operation log"
    )
    public_key: str | None = Field(
        default=None, description="Discord application public key (hex)"
    )
    cron_secret: str | None = Field(
        default=None, description="Bearer secret required by trigger routes"
    )
    request_timeout: float | None = Field(default=None, gt=0)
    max_parallel_requests: int | None = Field(default=None, ge=1, le=64)
    host: str | None = None
    port: int | None = Field(default=None, ge=1, le=65535)
    debug: bool = False

    model_config = {"frozen": True}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
        format: "text" or "json".
    """

    level: str = Field(default="INFO", description="Log level")
    file: str | None = Field(default=None, description="Log file path")
    format: str = Field(default="text", description="text or json")

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level unified config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Top-level unified configuration.

    Every section has defaults, so ``UnifiedConfig()`` (zero-config) is
    valid; it simply has nothing to relay.
    """

    trackers: list[TrackerConnectionConfig] = Field(default_factory=list)
    channels: list[ChannelConfig] = Field(default_factory=list)
    mappings: list[MappingConfig] = Field(default_factory=list)
    relay: RelaySettings = Field(default_factory=RelaySettings)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _check_references(self) -> UnifiedConfig:
        for section in ("trackers", "channels", "mappings"):
            ids = [item.id for item in getattr(self, section)]
            dupes = sorted({i for i in ids if ids.count(i) > 1})
            if dupes:
                raise ValueError(f"Duplicate {section} ids: {dupes}")

        tracker_ids = {t.id for t in self.trackers}
        channel_ids = {c.id for c in self.channels}
        seen: dict[tuple[str, str, str], str] = {}
        for m in self.mappings:
            if m.tracker not in tracker_ids:
                raise ValueError(
                    f"Mapping '{m.id}' references unknown tracker '{m.tracker}'"
                )
            if m.channel not in channel_ids:
                raise ValueError(
                    f"Mapping '{m.id}' references unknown channel '{m.channel}'"
                )
            # None and "all" are the same filter.
            key = (
                m.tracker,
                m.channel,
                ALL_PROJECTS if m.matches_all_projects else m.project_filter,
            )
            if key in seen:
                raise ValueError(
                    f"Mappings '{seen[key]}' and '{m.id}' share tracker, "
                    "channel and project filter"
                )
            seen[key] = m.id
        return self

    def get_tracker(self, tracker_id: str) -> TrackerConnectionConfig | None:
        return next((t for t in self.trackers if t.id == tracker_id), None)

    def get_channel(self, channel_id: str) -> ChannelConfig | None:
        return next((c for c in self.channels if c.id == channel_id), None)

    def get_mapping(self, mapping_id: str) -> MappingConfig | None:
        return next((m for m in self.mappings if m.id == mapping_id), None)

    def is_runnable(self, mapping: MappingConfig) -> bool:
        """A mapping runs only when it and both of its endpoints are active."""
        tracker = self.get_tracker(mapping.tracker)
        channel = self.get_channel(mapping.channel)
        return bool(
            mapping.active
            and tracker is not None
            and tracker.active
            and channel is not None
            and channel.active
        )

    def active_mappings(self) -> list[MappingConfig]:
        return [m for m in self.mappings if self.is_runnable(m)]


# ---------------------------------------------------------------------------
# Factory function
# ---------------------------------------------------------------------------


def build_config(raw_data: dict) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from the raw dict returned by
    ``load_hierarchical_config()``.

    Missing sections get defaults.

    Raises:
        pydantic.ValidationError: If the config is structurally invalid.
    """
    if not raw_data:
        return UnifiedConfig()

    return UnifiedConfig(**raw_data)
