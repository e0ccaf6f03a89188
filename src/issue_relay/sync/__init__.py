"""Reconciliation of tracker records into chat channels.

Public API:
    - ``ReconciliationEngine`` -- runs one mapping or all of them.
    - ``LocalCache`` -- delivered records, claims and links.
    - ``OperationLog`` -- append-only audit log.
    - Models: ``Record``, ``RecordStatus``, ``SyncResult`` and friends.

The engine lives in ``issue_relay.sync.engine`` and is not re-exported here;
the adapters import these models and the engine imports the adapters.
"""

from .models import (
    DeliveryLink,
    Operation,
    OperationLogEntry,
    OperationLogSummary,
    OperationStatus,
    Record,
    RecordResult,
    RecordStatus,
    SyncAction,
    SyncResult,
)
from .oplog import OperationLog
from .state import LocalCache

__all__ = [
    "DeliveryLink",
    "LocalCache",
    "Operation",
    "OperationLog",
    "OperationLogEntry",
    "OperationLogSummary",
    "OperationStatus",
    "Record",
    "RecordResult",
    "RecordStatus",
    "SyncAction",
    "SyncResult",
]
