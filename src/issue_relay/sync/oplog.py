"""Append-only operation log (``operations.jsonl``).

Every fetch failure, record operation failure, per-mapping summary,
full-run summary and interaction outcome is appended as one JSON line.
Appending never raises: a failure to log is reported through ``logging``
and the caller carries on.
"""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path

from .models import OperationLogEntry, OperationLogSummary, OperationStatus

logger = logging.getLogger(__name__)

LOG_FILE = "operations.jsonl"


class OperationLog:
    def __init__(self, state_dir: Path) -> None:
        self._state_dir = Path(state_dir)
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._state_dir / LOG_FILE

    def append(self, entry: OperationLogEntry) -> bool:
        """Append *entry*. Returns False (after logging) if it could not be written."""
        try:
            line = entry.model_dump_json()
            with self._lock:
                self._state_dir.mkdir(parents=True, exist_ok=True)
                with open(self.path, "a", encoding="utf-8") as fh:
                    fh.write(line + "\n")
        except (OSError, TypeError, ValueError):
            logger.exception(
                "Failed to append operation log entry (%s %s)",
                entry.operation.value,
                entry.status.value,
            )
            return False
        return True

    def entries(self) -> list[OperationLogEntry]:
        """All readable entries, oldest first. Corrupt lines are skipped."""
        if not self.path.exists():
            return []
        result: list[OperationLogEntry] = []
        with open(self.path, encoding="utf-8") as fh:
            for line_num, line in enumerate(fh, 1):
                line = line.strip()
                if not line:
                    continue
                try:
                    result.append(OperationLogEntry.model_validate(json.loads(line)))
                except ValueError:
                    logger.warning(
                        "Skipping corrupt operation log line %d in %s",
                        line_num,
                        self.path,
                    )
        return result

    def summary(self, limit: int = 10) -> OperationLogSummary:
        """Totals and the *limit* most recent entries, newest first."""
        entries = self.entries()
        return OperationLogSummary(
            total=len(entries),
            success_count=sum(
                1 for e in entries if e.status is OperationStatus.SUCCESS
            ),
            error_count=sum(1 for e in entries if e.status is OperationStatus.ERROR),
            recent_entries=list(reversed(entries[-limit:])) if limit > 0 else [],
        )
