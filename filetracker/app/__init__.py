"""Application layer for FileTracker.

This layer orchestrates hashing and the integrity record without direct
network I/O. All side effects are delegated to adapters via port interfaces.
"""

__all__ = [
    "AuditService",
    "OperationResult",
    "Outcome",
    "RecordState",
    "TrackerController",
]

from filetracker.app.audit_service import AuditService
from filetracker.app.records import RecordState
from filetracker.app.tracker import OperationResult, Outcome, TrackerController
