"""Discord channel adapter over the bot REST API (v10)."""

from __future__ import annotations

import logging
from typing import Any

from ..config_schema import ChannelConfig
from ..core.http import DEFAULT_TIMEOUT, ApiClient
from ..errors import NotFoundError, RelayError, ValidationError
from ..sync.models import Record
from .render import render_record

logger = logging.getLogger(__name__)

DISCORD_API = "https://discord.com/api/v10"
UNKNOWN_MESSAGE = 10008


class DiscordChannel(ApiClient):
    """Posts, edits and deletes record messages in one channel."""

    base_url = DISCORD_API

    def __init__(
        self,
        channel: ChannelConfig,
        timeout: float | tuple[float, float] = DEFAULT_TIMEOUT,
    ):
        super().__init__(timeout)
        self.channel = channel

    def _default_headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bot {self.channel.bot_token}",
            "Content-Type": "application/json",
            "User-Agent": "DiscordBot (issue-relay, 0.1)",
        }

    def _error_message(self, body: Any) -> str | None:
        if isinstance(body, dict) and body.get("code") == UNKNOWN_MESSAGE:
            return f"Unknown Message ({UNKNOWN_MESSAGE})"
        return super()._error_message(body)

    @property
    def _messages(self) -> str:
        return f"/channels/{self.channel.channel_id}/messages"

    def post(self, record: Record) -> str:
        """Post a new message for *record* and return its message id."""
        data = self._request("POST", self._messages, json=render_record(record))
        message_id = (data or {}).get("id")
        if not message_id:
            raise ValidationError("Discord did not return a message id")
        logger.debug(
            "Posted record %s to channel %s as %s",
            record.id,
            self.channel.id,
            message_id,
        )
        return str(message_id)

    def update(self, message_id: str, record: Record) -> None:
        """Replace the content of an existing message.

        Raises:
            NotFoundError: The message no longer exists.
        """
        self._request(
            "PATCH", f"{self._messages}/{message_id}", json=render_record(record)
        )

    def delete(self, message_id: str) -> None:
        """Delete a message.

        Raises:
            NotFoundError: The message was already gone.
        """
        self._request("DELETE", f"{self._messages}/{message_id}")

    def test_connection(self) -> bool:
        """Check the bot token and that the bot can see the channel."""
        try:
            me = self._request("GET", "/users/@me") or {}
            self._request("GET", f"/channels/{self.channel.channel_id}")
        except NotFoundError as e:
            logger.warning("Channel %s not visible to bot: %s", self.channel.id, e)
            return False
        except RelayError as e:
            logger.warning("Channel %s connection test failed: %s", self.channel.id, e)
            return False
        logger.debug("Discord bot %s can reach channel %s", me.get("username"), self.channel.id)
        return True
