"""Local cache persistence layer.

Keeps the relay's view of what has been delivered in one JSON document
(``cache.json`` in the state directory):

* ``records`` -- ``connection -> record_id -> Record`` as last delivered.
* ``claims`` -- ``connection -> record_id -> {mapping_id: channel_id}``;
  which mappings currently consider the record theirs. A mapping's cached
  set is the records it claims, so sibling mappings on the same connection
  never evict each other's records.
* ``links`` -- ``"connection/channel" -> record_id -> DeliveryLink``.
* ``mappings`` -- ``mapping_id -> {"last_sync_at": ...}``.

Key design choices:

* **Atomic writes** -- every mutation rewrites the file through a temp file
  and ``os.replace()`` so readers never see partial data and a crash
  mid-run loses at most the operation in flight.
* **Single writer** -- an ``RLock`` serializes mutations within the
  process; running two relay processes on one state dir is unsupported.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any

from .models import DeliveryLink, Record

logger = logging.getLogger(__name__)

CACHE_VERSION = 1
CACHE_FILE = "cache.json"


def _empty_state() -> dict[str, Any]:
    return {
        "version": CACHE_VERSION,
        "records": {},
        "claims": {},
        "links": {},
        "mappings": {},
    }


def _link_key(connection_id: str, channel_id: str) -> str:
    return f"{connection_id}/{channel_id}"


class LocalCache:
    """Load, mutate and persist the relay cache.

    Args:
        state_dir: Directory holding ``cache.json`` (created on first write).
    """

    def __init__(self, state_dir: Path) -> None:
        self._state_dir = Path(state_dir)
        self._lock = threading.RLock()
        self._state = self._load()

    @property
    def path(self) -> Path:
        return self._state_dir / CACHE_FILE

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _load(self) -> dict[str, Any]:
        if not self.path.exists():
            return _empty_state()
        with open(self.path, encoding="utf-8") as fh:
            data = json.load(fh)
        state = _empty_state()
        state.update(data)
        return state

    def _save(self) -> None:
        self._state_dir.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=str(self._state_dir), suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(self._state, fh, indent=2)
            os.replace(tmp_path, self.path)
        except BaseException:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise

    # ------------------------------------------------------------------
    # Records and claims
    # ------------------------------------------------------------------

    def cached_records(self, connection_id: str, mapping_id: str) -> dict[str, Record]:
        """Records under *connection_id* that *mapping_id* has delivered."""
        with self._lock:
            records = self._state["records"].get(connection_id, {})
            claims = self._state["claims"].get(connection_id, {})
            return {
                rid: Record.model_validate(data)
                for rid, data in records.items()
                if mapping_id in claims.get(rid, {})
            }

    def get_record(self, connection_id: str, record_id: str) -> Record | None:
        with self._lock:
            data = self._state["records"].get(connection_id, {}).get(record_id)
            return Record.model_validate(data) if data is not None else None

    def store(
        self,
        connection_id: str,
        mapping_id: str,
        channel_id: str,
        record: Record,
    ) -> None:
        """Cache *record* and claim it for *mapping_id* in one write."""
        with self._lock:
            self._state["records"].setdefault(connection_id, {})[record.id] = (
                record.model_dump(mode="json")
            )
            self._state["claims"].setdefault(connection_id, {}).setdefault(
                record.id, {}
            )[mapping_id] = channel_id
            self._save()

    def other_claimants(
        self,
        connection_id: str,
        mapping_id: str,
        record_id: str,
        channel_id: str | None = None,
    ) -> list[str]:
        """Mappings other than *mapping_id* claiming the record.

        With *channel_id*, only claimants delivering to that channel count.
        """
        with self._lock:
            claims = self._state["claims"].get(connection_id, {}).get(record_id, {})
            return sorted(
                m
                for m, ch in claims.items()
                if m != mapping_id and (channel_id is None or ch == channel_id)
            )

    def release(self, connection_id: str, mapping_id: str, record_id: str) -> None:
        """Drop *mapping_id*'s claim; forget the record once nobody claims it."""
        with self._lock:
            conn_claims = self._state["claims"].get(connection_id, {})
            claims = conn_claims.get(record_id, {})
            claims.pop(mapping_id, None)
            if not claims:
                conn_claims.pop(record_id, None)
                self._state["records"].get(connection_id, {}).pop(record_id, None)
            self._save()

    def find_connections(self, record_id: str) -> list[str]:
        """Connections whose cache holds *record_id* (normally exactly one)."""
        with self._lock:
            return sorted(
                conn
                for conn, records in self._state["records"].items()
                if record_id in records
            )

    # ------------------------------------------------------------------
    # Delivery links
    # ------------------------------------------------------------------

    def get_link(
        self, connection_id: str, channel_id: str, record_id: str
    ) -> DeliveryLink | None:
        with self._lock:
            data = (
                self._state["links"]
                .get(_link_key(connection_id, channel_id), {})
                .get(record_id)
            )
            return DeliveryLink.model_validate(data) if data is not None else None

    def put_link(self, link: DeliveryLink) -> None:
        """Insert or overwrite the link for ``(connection, channel, record)``."""
        with self._lock:
            key = _link_key(link.connection_id, link.channel_id)
            self._state["links"].setdefault(key, {})[link.record_id] = (
                link.model_dump(mode="json")
            )
            self._save()

    def delete_link(self, connection_id: str, channel_id: str, record_id: str) -> None:
        with self._lock:
            key = _link_key(connection_id, channel_id)
            links = self._state["links"].get(key, {})
            if links.pop(record_id, None) is not None:
                if not links:
                    self._state["links"].pop(key, None)
                self._save()

    # ------------------------------------------------------------------
    # Mapping bookkeeping
    # ------------------------------------------------------------------

    def set_last_sync(self, mapping_id: str, timestamp: str) -> None:
        with self._lock:
            self._state["mappings"].setdefault(mapping_id, {})["last_sync_at"] = timestamp
            self._save()

    def get_last_sync(self, mapping_id: str) -> str | None:
        with self._lock:
            return self._state["mappings"].get(mapping_id, {}).get("last_sync_at")

    def stats(self) -> dict[str, Any]:
        """Counts for status displays."""
        with self._lock:
            return {
                "records": sum(len(r) for r in self._state["records"].values()),
                "links": sum(len(links) for links in self._state["links"].values()),
                "last_sync": {
                    m: v.get("last_sync_at")
                    for m, v in self._state["mappings"].items()
                },
            }
