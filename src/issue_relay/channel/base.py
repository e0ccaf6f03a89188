"""Channel port used by the engine."""

from __future__ import annotations

from typing import Callable, Protocol

from ..config_schema import ChannelConfig
from ..sync.models import Record


class ChannelAdapter(Protocol):
    """Publish records to one destination channel.

    ``update`` and ``delete`` raise ``NotFoundError`` when the message is
    gone; the engine uses that to self-heal or to treat a delete as done.
    """

    def post(self, record: Record) -> str:
        ...

    def update(self, message_id: str, record: Record) -> None:
        ...

    def delete(self, message_id: str) -> None:
        ...

    def test_connection(self) -> bool:
        ...


ChannelFactory = Callable[[ChannelConfig], ChannelAdapter]
