"""Tracker port used by the engine and the interaction handler."""

from __future__ import annotations

from typing import Callable, Protocol

from ..config_schema import TrackerConnectionConfig
from ..sync.models import Record, RecordStatus


class TrackerAdapter(Protocol):
    """Read open records from, and write status back to, one tracker connection.

    Methods raise ``issue_relay.errors`` types; they never return error values.
    """

    def fetch_open_records(self) -> list[Record]:
        ...

    def update_status(self, record_id: str, status: RecordStatus) -> None:
        ...

    def test_connection(self) -> bool:
        ...


TrackerFactory = Callable[[TrackerConnectionConfig], TrackerAdapter]
