"""Channel adapters: where records are published."""

from .base import ChannelAdapter, ChannelFactory
from .discord import DiscordChannel
from .render import render_record

__all__ = ["ChannelAdapter", "ChannelFactory", "DiscordChannel", "render_record"]
