"""Pydantic models for the reconciliation engine.

Defines the data contracts shared by adapters, the engine and the surfaces:

- ``RecordStatus``: normalized two-state status of a tracker record.
- ``Record``: tracker-agnostic view of one issue.
- ``DeliveryLink``: which chat message currently mirrors a record.
- ``SyncAction`` / ``RecordResult`` / ``SyncResult``: outcome of a run.
- ``Operation`` / ``OperationLogEntry`` / ``OperationLogSummary``: audit log.

All models are frozen (immutable).
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class RecordStatus(str, Enum):
    OPEN = "open"
    RESOLVED = "resolved"


class Record(BaseModel):
    """One tracker issue, normalized.

    Attributes:
        id: Tracker-native id (Notion page id). Stable, unique per connection.
        display_id: Human-facing issue number; falls back to ``id``.
        status: Normalized status.
        project: Project name, "" when unset.
        title: Issue title.
        description: Free text body.
        severity: Severity label, "" when unset.
        attachments: Attachment URLs.
        source_url: Link back to the tracker page.
        last_edited: Tracker's last-edited timestamp, when known.
    """

    id: str
    status: RecordStatus
    title: str
    project: str = ""
    description: str = ""
    severity: str = ""
    attachments: list[str] = Field(default_factory=list)
    source_url: str = ""
    display_id: str = ""
    last_edited: str | None = None

    model_config = {"frozen": True}

    @property
    def label(self) -> str:
        return self.display_id or self.id


class DeliveryLink(BaseModel):
    """Associates a record with the chat message that mirrors it."""

    connection_id: str
    channel_id: str
    record_id: str
    message_id: str
    created_at: str = Field(default_factory=utc_now)

    model_config = {"frozen": True}


class SyncAction(str, Enum):
    """What the engine did (or tried to do) for one record."""

    CREATE = "create"
    UPDATE = "update"
    REPOST = "repost"
    DELETE = "delete"
    SKIP = "skip"


class RecordResult(BaseModel):
    record_id: str
    action: SyncAction
    success: bool
    error: str | None = None

    model_config = {"frozen": True}


class SyncResult(BaseModel):
    """Outcome of one mapping run, or of a full run across mappings.

    Attributes:
        success: True when no error was recorded.
        issues_processed: Number of record operations that succeeded. Skips
            (a removal that left a shared message in place) are not counted.
        errors: Human-readable error strings, one per failure.
        warnings: Non-fatal notes (self-healing reposts, skipped mappings).
        mapping_id: The mapping, or None for a full run.
        results: Per-record outcomes.
    """

    success: bool = True
    issues_processed: int = 0
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    mapping_id: str | None = None
    started_at: str = Field(default_factory=utc_now)
    completed_at: str | None = None
    results: list[RecordResult] = Field(default_factory=list)

    model_config = {"frozen": True}

    def _with_action(self, action: SyncAction) -> list[RecordResult]:
        return [r for r in self.results if r.action == action and r.success]

    @property
    def created(self) -> list[RecordResult]:
        return self._with_action(SyncAction.CREATE)

    @property
    def updated(self) -> list[RecordResult]:
        return self._with_action(SyncAction.UPDATE)

    @property
    def reposted(self) -> list[RecordResult]:
        return self._with_action(SyncAction.REPOST)

    @property
    def deleted(self) -> list[RecordResult]:
        return self._with_action(SyncAction.DELETE)

    @property
    def skipped(self) -> list[RecordResult]:
        return self._with_action(SyncAction.SKIP)

    @property
    def failed(self) -> list[RecordResult]:
        return [r for r in self.results if not r.success]

    def merge(self, other: SyncResult) -> SyncResult:
        """Return a new result aggregating *other* into this one."""
        return self.model_copy(
            update={
                "success": self.success and other.success,
                "issues_processed": self.issues_processed + other.issues_processed,
                "errors": [*self.errors, *other.errors],
                "warnings": [*self.warnings, *other.warnings],
                "results": [*self.results, *other.results],
            }
        )

    def summary(self) -> str:
        scope = f"mapping '{self.mapping_id}'" if self.mapping_id else "all mappings"
        return (
            f"Sync of {scope}: {self.issues_processed} processed "
            f"({len(self.created)} created, {len(self.updated)} updated, "
            f"{len(self.reposted)} reposted, {len(self.deleted)} removed), "
            f"{len(self.errors)} errors"
        )


class Operation(str, Enum):
    FETCH = "fetch"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    INTERACTION = "interaction"
    SYNC = "sync"
    FULL_SYNC = "full_sync"


class OperationStatus(str, Enum):
    SUCCESS = "success"
    ERROR = "error"


class OperationLogEntry(BaseModel):
    mapping_id: str | None
    operation: Operation
    status: OperationStatus
    message: str
    records_affected: int = 0
    error_details: str | None = None
    timestamp: str = Field(default_factory=utc_now)

    model_config = {"frozen": True}


class OperationLogSummary(BaseModel):
    total: int
    success_count: int
    error_count: int
    recent_entries: list[OperationLogEntry]

    model_config = {"frozen": True}
