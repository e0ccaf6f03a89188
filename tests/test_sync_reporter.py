from issue_relay.sync.models import (
    Operation,
    OperationLogEntry,
    OperationLogSummary,
    OperationStatus,
    RecordResult,
    SyncAction,
    SyncResult,
)
from issue_relay.sync.reporter import (
    format_log_summary,
    format_sync_result,
    log_summary_to_json,
    result_to_json,
)


def sample_result(**overrides) -> SyncResult:
    data = {
        "success": False,
        "issues_processed": 3,
        "errors": ["create r4: 429 rate limited"],
        "warnings": ["Message 9 for record r2 was missing from channel 'triage'; reposted"],
        "mapping_id": "m1",
        "results": [
            RecordResult(record_id="r1", action=SyncAction.CREATE, success=True),
            RecordResult(record_id="r2", action=SyncAction.REPOST, success=True),
            RecordResult(record_id="r3", action=SyncAction.DELETE, success=True),
            RecordResult(record_id="r4", action=SyncAction.CREATE, success=False, error="429"),
        ],
    }
    data.update(overrides)
    return SyncResult(**data)


class TestSyncResult:
    def test_action_buckets_count_successes_only(self):
        result = sample_result()
        assert [r.record_id for r in result.created] == ["r1"]
        assert [r.record_id for r in result.reposted] == ["r2"]
        assert [r.record_id for r in result.deleted] == ["r3"]
        assert [r.record_id for r in result.failed] == ["r4"]

    def test_merge(self):
        merged = SyncResult(mapping_id=None).merge(sample_result()).merge(
            SyncResult(issues_processed=2, mapping_id="m2")
        )
        assert merged.mapping_id is None
        assert merged.success is False
        assert merged.issues_processed == 5
        assert len(merged.errors) == 1

    def test_summary(self):
        assert sample_result().summary() == (
            "Sync of mapping 'm1': 3 processed "
            "(1 created, 0 updated, 1 reposted, 1 removed), 1 errors"
        )


class TestResultToJson:
    def test_manual_trigger_body(self):
        assert result_to_json(sample_result()) == {
            "success": False,
            "issuesProcessed": 3,
            "warnings": ["Message 9 for record r2 was missing from channel 'triage'; reposted"],
            "errors": ["create r4: 429 rate limited"],
        }

    def test_scheduled_trigger_counts_only(self):
        body = result_to_json(sample_result(), include_errors=False)
        assert "errors" not in body
        assert body["errorCount"] == 1


class TestFormatSyncResult:
    def test_sections(self):
        text = format_sync_result(sample_result(completed_at="2024-05-01T00:00:01+00:00"))
        assert text.startswith("Sync of mapping 'm1': completed with errors")
        assert "Completed: 2024-05-01T00:00:01+00:00" in text
        assert "Processed 3 records: 1 created, 0 updated, 1 reposted, 1 removed, 1 errors" in text
        assert "Warnings:" in text
        assert "  create r4: 429 rate limited" in text

    def test_clean_run_has_no_error_sections(self):
        text = format_sync_result(SyncResult(mapping_id=None))
        assert text.startswith("Sync of all mappings: OK")
        assert "Errors:" not in text
        assert "Warnings:" not in text


def sample_summary() -> OperationLogSummary:
    entries = [
        OperationLogEntry(
            mapping_id="m1",
            operation=Operation.CREATE,
            status=OperationStatus.ERROR,
            message="Failed to create record r4",
            error_details="429 rate limited",
            timestamp="2024-05-01T00:00:02+00:00",
        ),
        OperationLogEntry(
            mapping_id=None,
            operation=Operation.FULL_SYNC,
            status=OperationStatus.SUCCESS,
            message="Full sync of 1 mappings: 3 processed, 0 errors",
            records_affected=3,
            timestamp="2024-05-01T00:00:01+00:00",
        ),
    ]
    return OperationLogSummary(total=7, success_count=6, error_count=1, recent_entries=entries)


def test_format_log_summary():
    text = format_log_summary(sample_summary())
    lines = text.splitlines()
    assert lines[0] == "Operations: 7 total, 6 succeeded, 1 failed"
    assert "[error] create (m1): Failed to create record r4" in text
    assert "      429 rate limited" in lines
    assert "full_sync (*)" in text


def test_log_summary_to_json():
    body = log_summary_to_json(sample_summary())
    assert body["total"] == 7
    assert body["successCount"] == 6
    assert body["errorCount"] == 1
    assert body["recentEntries"][1] == {
        "mappingId": None,
        "operation": "full_sync",
        "status": "success",
        "message": "Full sync of 1 mappings: 3 processed, 0 errors",
        "recordsAffected": 3,
        "errorDetails": None,
        "timestamp": "2024-05-01T00:00:01+00:00",
    }
