"""Shared fixtures: an in-memory gateway and record/mapping factories."""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import pytest

from raintree_sync.connectors.base import RecordGateway
from raintree_sync.exceptions import SalesforceAPIError
from raintree_sync.models.mapping import RecordMapping, SyncSource
from raintree_sync.models.records import ObservedRecord, RecordKind

T0 = datetime(2024, 1, 15, 10, 0, 0, tzinfo=timezone.utc)


def ts(minutes: int = 0) -> datetime:
    """A timestamp ``minutes`` after the fixed base time."""
    return T0 + timedelta(minutes=minutes)


def make_record(record_id: str, minutes: int = 0, kind: RecordKind = RecordKind.OPPORTUNITY,
                **fields) -> ObservedRecord:
    if kind is RecordKind.OPPORTUNITY:
        payload = {"Name": f"Deal {record_id}", "StageName": "Prospecting", "Amount": 1000,
                   "CloseDate": "2024-06-30"}
    else:
        payload = {"FirstName": "Ada", "LastName": record_id, "Company": "Acme",
                   "Email": f"{record_id}@example.com", "Status": "Working"}
    payload.update(fields)
    return ObservedRecord(id=record_id, kind=kind, payload=payload, last_modified_date=ts(minutes))


def make_mapping(partner_id: str = "P1", raintree_id: str = "R1", partner_minutes: int = 0,
                 raintree_minutes: int = 0, source: SyncSource = SyncSource.SYSTEM) -> RecordMapping:
    return RecordMapping(
        partner_id=partner_id,
        raintree_id=raintree_id,
        partner_last_modified=ts(partner_minutes),
        raintree_last_modified=ts(raintree_minutes),
        last_sync_source=source,
        last_sync_time=ts(0),
    )


class FakeGateway(RecordGateway):
    """
    In-memory gateway. ``update`` overwrites the stored fields and bumps the
    record's modification time to ``write_time``, the way a real org would.
    """

    def __init__(self, side: SyncSource, records: Optional[List[ObservedRecord]] = None,
                 write_time: Optional[datetime] = None):
        self.side = side
        self.records: Dict[str, ObservedRecord] = {r.id: r for r in records or []}
        self.write_time = write_time or ts(100)
        self.updates: List[tuple] = []
        self.failing_updates: set = set()
        self.failing_reads: set = set()
        self.fail_fetch_many = False
        self.connected = True

    def add(self, record: ObservedRecord) -> None:
        self.records[record.id] = record

    def fetch_by_id(self, kind: RecordKind, record_id: str) -> Optional[ObservedRecord]:
        if record_id in self.failing_reads:
            raise SalesforceAPIError(f"read failed for {record_id}", status_code=500)
        return self.records.get(record_id)

    def fetch_many(self, kind: RecordKind, record_ids) -> Dict[str, ObservedRecord]:
        if self.fail_fetch_many:
            raise SalesforceAPIError("bulk query failed", status_code=503)
        return super().fetch_many(kind, record_ids)

    def fetch_recent(self, kind: RecordKind, limit: int = 100) -> List[ObservedRecord]:
        records = sorted(self.records.values(), key=lambda r: r.last_modified_date, reverse=True)
        return records[:limit]

    def update(self, kind: RecordKind, record_id: str, fields: Dict[str, Any]) -> None:
        if record_id in self.failing_updates:
            raise SalesforceAPIError(f"update rejected for {record_id}", status_code=400)
        self.updates.append((kind, record_id, dict(fields)))
        current = self.records[record_id]
        self.records[record_id] = current.model_copy(update={
            "payload": {**current.payload, **fields},
            "last_modified_date": self.write_time,
        })

    def test_connection(self) -> bool:
        return self.connected


@pytest.fixture
def partner() -> FakeGateway:
    return FakeGateway(SyncSource.PARTNER)


@pytest.fixture
def raintree() -> FakeGateway:
    return FakeGateway(SyncSource.RAINTREE)
