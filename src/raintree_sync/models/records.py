"""
Record kinds, synced field sets and the engine's read-only view of a
remote record.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

SALESFORCE_TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%f%z"


def parse_timestamp(value: Union[str, datetime]) -> datetime:
    """Parse a Salesforce or ISO-8601 timestamp into an aware UTC datetime.

    Accepts Salesforce's ``2024-01-15T10:30:00.000+0000`` form as well as
    plain ISO strings with a ``Z`` or ``+00:00`` suffix. Naive values are
    taken to be UTC.

    Raises:
        ValueError: If the value cannot be parsed
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        try:
            parsed = datetime.strptime(text, SALESFORCE_TIMESTAMP_FORMAT)
        except ValueError:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    else:
        raise ValueError(f"Invalid timestamp: {value!r}")

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


class FieldSpec(BaseModel):
    """A business field that is copied from the winning side to the losing side."""
    name: str
    data_type: str  # "string", "number", "date"
    default: Optional[Any] = None


OPPORTUNITY_FIELDS: List[FieldSpec] = [
    FieldSpec(name="Name", data_type="string"),
    FieldSpec(name="StageName", data_type="string"),
    FieldSpec(name="Amount", data_type="number", default=0),
    FieldSpec(name="CloseDate", data_type="date"),
]

LEAD_FIELDS: List[FieldSpec] = [
    FieldSpec(name="FirstName", data_type="string", default=""),
    FieldSpec(name="LastName", data_type="string", default=""),
    FieldSpec(name="Company", data_type="string", default=""),
    FieldSpec(name="Email", data_type="string", default=""),
    FieldSpec(name="Status", data_type="string", default="Open - Not Contacted"),
]


class RecordKind(str, Enum):
    """Kind of business record kept in sync."""
    OPPORTUNITY = "opportunity"
    LEAD = "lead"

    @property
    def sobject(self) -> str:
        """Salesforce object API name."""
        return "Opportunity" if self is RecordKind.OPPORTUNITY else "Lead"

    @property
    def sync_fields(self) -> List[FieldSpec]:
        """Fields propagated between the two systems for this kind."""
        return OPPORTUNITY_FIELDS if self is RecordKind.OPPORTUNITY else LEAD_FIELDS

    @property
    def query_fields(self) -> List[str]:
        """Fields selected when reading records of this kind."""
        return ["Id"] + [spec.name for spec in self.sync_fields] + ["CreatedDate", "LastModifiedDate"]


class ObservedRecord(BaseModel):
    """Read-only snapshot of a record fetched from either system."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    kind: RecordKind
    payload: Dict[str, Any] = Field(default_factory=dict)
    last_modified_date: datetime

    @field_validator("last_modified_date", mode="before")
    @classmethod
    def validate_last_modified(cls, v):
        return parse_timestamp(v)

    @property
    def display_name(self) -> str:
        """Human-readable name used in sync reports."""
        if self.kind is RecordKind.LEAD:
            first = self.payload.get("FirstName") or ""
            last = self.payload.get("LastName") or ""
            name = f"{first} {last}".strip()
        else:
            name = self.payload.get("Name") or ""
        return name or "Unknown"

    @classmethod
    def from_salesforce(cls, kind: RecordKind, data: Dict[str, Any]) -> "ObservedRecord":
        """Build a snapshot from a raw Salesforce REST record.

        ``LastModifiedDate`` falls back to ``CreatedDate`` for records that
        were never modified.
        """
        modified = data.get("LastModifiedDate") or data.get("CreatedDate")
        if not modified:
            raise ValueError(f"{kind.sobject} {data.get('Id')} has no modification timestamp")

        payload = {spec.name: data.get(spec.name) for spec in kind.sync_fields}
        return cls(id=data.get("Id") or "", kind=kind, payload=payload, last_modified_date=modified)
