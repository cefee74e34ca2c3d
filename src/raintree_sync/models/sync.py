"""
Models for sync pass results and status tracking.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Any, Optional
from pydantic import BaseModel, Field

from .mapping import RecordMapping, SyncSource
from .records import RecordKind


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SyncDirection(str, Enum):
    """Direction reported for one processed mapping."""
    PARTNER_TO_RAINTREE = "partner-to-raintree"
    RAINTREE_TO_PARTNER = "raintree-to-partner"
    NONE = "none"
    CONFLICT = "conflict"


class SyncStatus(str, Enum):
    """Status of a sync pass."""
    RUNNING = "running"
    COMPLETED = "completed"
    SKIPPED = "skipped"  # another pass of the same kind was in flight


class PassState(str, Enum):
    """Phase of the sync pass currently running for a record kind."""
    IDLE = "idle"
    FETCHING_PARTNER = "fetching_partner"
    FETCHING_RAINTREE = "fetching_raintree"
    RECONCILING = "reconciling"
    DONE = "done"


class SyncResult(BaseModel):
    """Outcome for a single processed mapping."""
    record_id: str
    record_name: str
    direction: SyncDirection
    success: bool
    winner: Optional[SyncSource] = None  # set when direction is CONFLICT
    error_message: Optional[str] = None
    timestamp: datetime = Field(default_factory=utcnow)


class SyncSummary(BaseModel):
    """Aggregate counts over a list of results."""
    total: int = 0
    synced: int = 0
    failed: int = 0
    conflicts: int = 0

    @classmethod
    def from_results(cls, results: List[SyncResult]) -> "SyncSummary":
        return cls(
            total=len(results),
            synced=len([r for r in results if r.success and r.direction != SyncDirection.NONE]),
            failed=len([r for r in results if not r.success]),
            conflicts=len([r for r in results if r.direction == SyncDirection.CONFLICT]),
        )


class SyncPassReport(BaseModel):
    """Represents one sync pass over all mappings of a record kind."""
    id: str
    kind: RecordKind
    status: SyncStatus = SyncStatus.RUNNING
    dry_run: bool = False
    started_at: datetime = Field(default_factory=utcnow)
    completed_at: Optional[datetime] = None
    results: List[SyncResult] = Field(default_factory=list)
    updated_mappings: Dict[str, RecordMapping] = Field(default_factory=dict)
    unresolved: List[str] = Field(default_factory=list)  # skipped this pass, retried next pass
    execution_time_seconds: Optional[float] = None

    @property
    def summary(self) -> SyncSummary:
        return SyncSummary.from_results(self.results)

    def mark_completed(self, status: SyncStatus = SyncStatus.COMPLETED) -> None:
        """Mark the pass as finished and record its duration."""
        self.status = status
        self.completed_at = utcnow()
        self.execution_time_seconds = (self.completed_at - self.started_at).total_seconds()

    def to_response(self) -> Dict[str, Any]:
        """Serialize for API/CLI output, with mappings in their stored form."""
        data = self.model_dump(mode="json", exclude={"updated_mappings"})
        data["updated_mappings"] = {
            partner_id: mapping.to_store()
            for partner_id, mapping in self.updated_mappings.items()
        }
        data["summary"] = self.summary.model_dump()
        return data


class SyncRunReport(BaseModel):
    """Opportunity and Lead passes run together."""
    opportunities: SyncPassReport
    leads: SyncPassReport

    @property
    def summary(self) -> SyncSummary:
        return SyncSummary.from_results(self.opportunities.results + self.leads.results)

    def to_response(self) -> Dict[str, Any]:
        return {
            "opportunities": self.opportunities.to_response(),
            "leads": self.leads.to_response(),
            "summary": self.summary.model_dump(),
        }
