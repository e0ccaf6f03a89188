"""Notion database adapter.

Reads issue pages from a Notion database and writes status changes back.
The status property's encoding is probed once per adapter instance from the
database schema (``GET /databases/{id}``) and reused for every query and
update.
"""

from __future__ import annotations

import logging
import threading
from typing import Any

from ..config_schema import TrackerConnectionConfig
from ..core.http import DEFAULT_TIMEOUT, ApiClient
from ..errors import RelayError, ValidationError
from ..sync.models import Record, RecordStatus
from .encoding import StatusEncoding, file_urls, plain_text, resolve_encoding

logger = logging.getLogger(__name__)

NOTION_API = "https://api.notion.com/v1"
NOTION_VERSION = "2022-06-28"
PAGE_SIZE = 100


class NotionTracker(ApiClient):
    base_url = NOTION_API

    def __init__(
        self,
        connection: TrackerConnectionConfig,
        timeout: float | tuple[float, float] = DEFAULT_TIMEOUT,
    ):
        super().__init__(timeout)
        self.connection = connection
        self._encoding: StatusEncoding | None = None
        self._encoding_lock = threading.Lock()
        self._property_names: frozenset[str] = frozenset()

    def _default_headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.connection.api_key}",
            "Notion-Version": NOTION_VERSION,
            "Content-Type": "application/json",
        }

    # ------------------------------------------------------------------
    # Schema
    # ------------------------------------------------------------------

    def get_schema(self) -> dict:
        return self._request("GET", f"/databases/{self.connection.database_id}")

    @property
    def encoding(self) -> StatusEncoding:
        """The status encoding, probed on first use."""
        with self._encoding_lock:
            if self._encoding is None:
                schema = self.get_schema()
                self._property_names = frozenset(schema.get("properties") or {})
                self._encoding = resolve_encoding(
                    schema,
                    self.connection.status_property,
                    self.connection.open_value,
                    self.connection.resolved_value,
                )
                logger.debug(
                    "Tracker %s: status property '%s' is %s",
                    self.connection.id,
                    self._encoding.property_name,
                    self._encoding.kind.value,
                )
            return self._encoding

    # ------------------------------------------------------------------
    # TrackerAdapter
    # ------------------------------------------------------------------

    def fetch_open_records(self) -> list[Record]:
        """Return every open record in the database.

        Follows ``next_cursor`` pagination. Pages without a title are skipped
        with a warning; a final local status check drops anything the
        server-side filter let through (and is the only filter for
        formula-backed status).
        """
        encoding = self.encoding
        body: dict[str, Any] = {"page_size": PAGE_SIZE}
        query_filter = encoding.query_filter()
        if query_filter is not None:
            body["filter"] = query_filter
        sort_by = self.connection.properties.display_id
        if sort_by in self._property_names:
            # Ascending issue id.
            body["sorts"] = [{"property": sort_by, "direction": "ascending"}]

        records: list[Record] = []
        path = f"/databases/{self.connection.database_id}/query"
        while True:
            data = self._request("POST", path, json=body) or {}
            for page in data.get("results", []):
                record = self.page_to_record(page)
                if record is not None and record.status is RecordStatus.OPEN:
                    records.append(record)
            cursor = data.get("next_cursor")
            if not data.get("has_more") or not cursor:
                break
            body["start_cursor"] = cursor

        logger.info(
            "Fetched %d open records from tracker %s",
            len(records),
            self.connection.id,
        )
        return records

    def update_status(self, record_id: str, status: RecordStatus) -> None:
        """Set *record_id*'s status. A no-op when it already has that status."""
        encoding = self.encoding
        page = self._request("GET", f"/pages/{record_id}")
        current = encoding.read(
            (page.get("properties") or {}).get(encoding.property_name)
        )
        if current is status:
            logger.info(
                "Record %s already %s, skipping update", record_id, status.value
            )
            return
        self._request(
            "PATCH",
            f"/pages/{record_id}",
            json={"properties": encoding.write(status)},
        )
        logger.info("Record %s set to %s", record_id, status.value)

    def test_connection(self) -> bool:
        try:
            self.get_schema()
        except RelayError as e:
            logger.warning("Tracker %s connection test failed: %s", self.connection.id, e)
            return False
        return True

    # ------------------------------------------------------------------
    # Page normalization
    # ------------------------------------------------------------------

    def page_to_record(self, page: dict) -> Record | None:
        """Normalize a Notion page, or return None if it lacks a title."""
        props = page.get("properties") or {}
        names = self.connection.properties
        page_id = page.get("id")
        if not page_id:
            raise ValidationError("Notion page without an id")

        title = plain_text(props.get(names.title))
        if not title:
            logger.warning(
                "Skipping page %s: missing '%s' property", page_id, names.title
            )
            return None

        return Record(
            id=page_id,
            display_id=plain_text(props.get(names.display_id)) or page_id,
            status=self.encoding.read(props.get(self.encoding.property_name)),
            project=plain_text(props.get(names.project)),
            title=title,
            description=plain_text(props.get(names.description)),
            severity=plain_text(props.get(names.severity)),
            attachments=file_urls(props.get(names.attachments)),
            source_url=page.get("url") or "",
            last_edited=page.get("last_edited_time"),
        )
