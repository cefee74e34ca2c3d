"""
Models for the Raintree sync engine.
"""

from .mapping import RecordMapping, SyncSource, normalize_mappings
from .records import ObservedRecord, RecordKind, FieldSpec, parse_timestamp
from .sync import (
    SyncDirection, SyncResult, SyncSummary, SyncStatus, PassState,
    SyncPassReport, SyncRunReport
)

__all__ = [
    "RecordMapping",
    "SyncSource",
    "normalize_mappings",
    "ObservedRecord",
    "RecordKind",
    "FieldSpec",
    "parse_timestamp",
    "SyncDirection",
    "SyncResult",
    "SyncSummary",
    "SyncStatus",
    "PassState",
    "SyncPassReport",
    "SyncRunReport",
]
