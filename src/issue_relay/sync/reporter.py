"""Sync result and operation log formatting.

- ``format_sync_result`` -- human-readable post-sync summary (CLI, MCP).
- ``result_to_json`` -- trigger response body (``success``,
  ``issuesProcessed``, ``errors``, ``warnings``).
- ``format_log_summary`` / ``log_summary_to_json`` -- operation log read model.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .models import OperationLogSummary, SyncResult


def format_sync_result(result: SyncResult) -> str:
    """Format a sync result as text. Sections appear only when non-empty."""
    scope = f"mapping '{result.mapping_id}'" if result.mapping_id else "all mappings"
    lines = [f"Sync of {scope}: {'OK' if result.success else 'completed with errors'}"]
    lines.append(f"Started: {result.started_at}")
    if result.completed_at:
        lines.append(f"Completed: {result.completed_at}")
    lines.append("")
    lines.append(
        f"Processed {result.issues_processed} records: "
        f"{len(result.created)} created, {len(result.updated)} updated, "
        f"{len(result.reposted)} reposted, {len(result.deleted)} removed, "
        f"{len(result.errors)} errors"
    )
    lines.append("")

    if result.warnings:
        lines.append("Warnings:")
        lines.extend(f"  {w}" for w in result.warnings)
        lines.append("")

    if result.errors:
        lines.append("Errors:")
        lines.extend(f"  {e}" for e in result.errors)
        lines.append("")

    return "\n".join(lines).rstrip()


def result_to_json(result: SyncResult, include_errors: bool = True) -> dict[str, Any]:
    """Trigger response body.

    Args:
        result: The completed run.
        include_errors: False for scheduled triggers, which report counts
            only and leave error detail to the operation log.
    """
    body: dict[str, Any] = {
        "success": result.success,
        "issuesProcessed": result.issues_processed,
        "warnings": list(result.warnings),
    }
    if include_errors:
        body["errors"] = list(result.errors)
    else:
        body["errorCount"] = len(result.errors)
    return body


def format_log_summary(summary: OperationLogSummary) -> str:
    lines = [
        f"Operations: {summary.total} total, "
        f"{summary.success_count} succeeded, {summary.error_count} failed",
    ]
    if summary.recent_entries:
        lines.append("")
        lines.append("Recent:")
    for entry in summary.recent_entries:
        scope = entry.mapping_id or "*"
        lines.append(
            f"  {entry.timestamp} [{entry.status.value}] {entry.operation.value} "
            f"({scope}): {entry.message}"
        )
        if entry.error_details:
            lines.append(f"      {entry.error_details}")
    return "\n".join(lines)


def log_summary_to_json(summary: OperationLogSummary) -> dict[str, Any]:
    return {
        "total": summary.total,
        "successCount": summary.success_count,
        "errorCount": summary.error_count,
        "recentEntries": [
            {
                "mappingId": e.mapping_id,
                "operation": e.operation.value,
                "status": e.status.value,
                "message": e.message,
                "recordsAffected": e.records_affected,
                "errorDetails": e.error_details,
                "timestamp": e.timestamp,
            }
            for e in summary.recent_entries
        ],
    }
