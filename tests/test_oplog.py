import logging
from unittest.mock import patch

from issue_relay.sync.models import Operation, OperationLogEntry, OperationStatus
from issue_relay.sync.oplog import OperationLog


def entry(message: str, status=OperationStatus.SUCCESS, operation=Operation.SYNC) -> OperationLogEntry:
    return OperationLogEntry(
        mapping_id="m1",
        operation=operation,
        status=status,
        message=message,
    )


def test_append_and_read_back(oplog):
    assert oplog.append(entry("first"))
    assert oplog.append(entry("second", OperationStatus.ERROR, Operation.CREATE))

    entries = oplog.entries()
    assert [e.message for e in entries] == ["first", "second"]
    assert entries[1].operation == Operation.CREATE
    assert oplog.path.read_text().count("\n") == 2


def test_entries_when_missing(oplog):
    assert oplog.entries() == []


def test_corrupt_lines_are_skipped(oplog, caplog):
    oplog.append(entry("good"))
    with open(oplog.path, "a", encoding="utf-8") as fh:
        fh.write("{truncated\n\n")
        fh.write('{"mapping_id": "m1", "operation": "bogus"}\n')
    oplog.append(entry("also good"))

    with caplog.at_level(logging.WARNING):
        entries = oplog.entries()

    assert [e.message for e in entries] == ["good", "also good"]
    assert "corrupt" in caplog.text


def test_summary_newest_first(oplog):
    for i in range(5):
        oplog.append(entry(f"e{i}", OperationStatus.ERROR if i % 2 else OperationStatus.SUCCESS))

    summary = oplog.summary(limit=3)

    assert summary.total == 5
    assert summary.success_count == 3
    assert summary.error_count == 2
    assert [e.message for e in summary.recent_entries] == ["e4", "e3", "e2"]


def test_summary_zero_limit(oplog):
    oplog.append(entry("e0"))
    assert oplog.summary(limit=0).recent_entries == []


def test_append_failure_is_reported_not_raised(oplog, caplog):
    with patch("builtins.open", side_effect=PermissionError("read-only")):
        with caplog.at_level(logging.ERROR):
            assert oplog.append(entry("lost")) is False
    assert "Failed to append operation log entry" in caplog.text


def test_creates_state_dir(tmp_path):
    log = OperationLog(tmp_path / "nested" / "state")
    log.append(entry("hello"))
    assert log.path.exists()
