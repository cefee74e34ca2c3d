"""
Persisted pairing between a Partner record and its Raintree counterpart,
plus the bookkeeping the sync engine needs to detect changes.
"""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Tuple, List

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..exceptions import MappingError
from .records import parse_timestamp

logger = logging.getLogger(__name__)


class SyncSource(str, Enum):
    """Which side's change drove the most recent successful sync."""
    PARTNER = "partner"
    RAINTREE = "raintree"
    SYSTEM = "system"  # mapping created, no directional sync yet


class RecordMapping(BaseModel):
    """
    Sync state for one logical record across both systems.

    Attribute names are snake_case; the persisted form uses the camelCase
    aliases so existing stored mappings keep loading.
    """
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    partner_id: str = Field(..., alias="partnerId", min_length=1)
    raintree_id: str = Field(..., alias="raintreeId", min_length=1)
    partner_last_modified: datetime = Field(..., alias="partnerLastModified")
    raintree_last_modified: datetime = Field(..., alias="raintreeLastModified")
    last_sync_source: SyncSource = Field(SyncSource.SYSTEM, alias="lastSyncSource")
    last_sync_time: datetime = Field(default_factory=lambda: datetime.now(timezone.utc),
                                     alias="lastSyncTime")

    @field_validator("partner_last_modified", "raintree_last_modified", "last_sync_time", mode="before")
    @classmethod
    def validate_timestamp(cls, v):
        return parse_timestamp(v)

    def to_store(self) -> Dict[str, Any]:
        """Convert to the persisted (camelCase, ISO timestamp) form."""
        return self.model_dump(by_alias=True, mode="json")

    @classmethod
    def from_store(cls, partner_id: str, value: Any) -> "RecordMapping":
        """
        Create an instance from a stored value.

        Two shapes are accepted: a bare Raintree id string (a pairing that
        has never been synced) or the structured mapping dict.

        Raises:
            MappingError: If the value is missing ids or has unparseable timestamps
        """
        if isinstance(value, str):
            now = datetime.now(timezone.utc)
            value = {
                "partnerId": partner_id,
                "raintreeId": value,
                "partnerLastModified": now,
                "raintreeLastModified": now,
                "lastSyncSource": SyncSource.SYSTEM,
                "lastSyncTime": now,
            }
        elif isinstance(value, dict):
            value = {"partnerId": partner_id, **value}
        else:
            raise MappingError(f"Mapping for {partner_id} has unsupported type {type(value).__name__}")

        try:
            return cls.model_validate(value)
        except ValidationError as e:
            raise MappingError(f"Invalid mapping for {partner_id}: {e.error_count()} error(s): "
                               f"{_summarize_errors(e)}") from e


def _summarize_errors(error: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
        for err in error.errors()
    )


def normalize_mappings(raw: Optional[Dict[str, Any]]) -> Tuple[Dict[str, RecordMapping], List[str]]:
    """
    Normalize a raw stored mapping set into structured mappings.

    Malformed entries are logged and skipped rather than raised.

    Args:
        raw: Stored mappings keyed by Partner id

    Returns:
        Tuple of (valid mappings keyed by Partner id, ids of skipped entries)
    """
    mappings: Dict[str, RecordMapping] = {}
    skipped: List[str] = []

    for partner_id, value in (raw or {}).items():
        try:
            mappings[partner_id] = RecordMapping.from_store(partner_id, value)
        except MappingError as e:
            logger.warning(f"Skipping malformed mapping: {e}")
            skipped.append(partner_id)

    return mappings, skipped
