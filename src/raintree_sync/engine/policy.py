"""
Conflict resolution policy.

``decide`` maps a stored mapping plus the two freshly observed records to
the single action that converges the two systems:

1. A side has changed when its ``last_modified_date`` is strictly later
   than the timestamp stored on the mapping.
2. Both changed: the later ``last_modified_date`` wins. Equal timestamps
   resolve to Raintree -> Partner.
3. Only Partner changed: propagate Partner -> Raintree unless the last
   successful sync was driven by Raintree. That sync's own write is what
   bumped Partner's timestamp, and echoing it back would start a ping-pong
   loop. A genuine Partner edit landing right after a Raintree-driven sync
   is therefore held back until either side changes again.
4. Only Raintree changed: the mirror of 3.
5. Otherwise nothing to do.

The policy is a pure function with no I/O.
"""

from typing import Any, ClassVar, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from ..models.mapping import RecordMapping, SyncSource
from ..models.records import ObservedRecord
from ..models.sync import SyncDirection
from .transforms import FieldTransformer


class NoOp(BaseModel):
    """Both systems already agree as far as timestamps can tell."""
    model_config = ConfigDict(frozen=True)

    winner: ClassVar[Optional[SyncSource]] = None
    direction: ClassVar[SyncDirection] = SyncDirection.NONE


class PropagatePartnerToRaintree(BaseModel):
    """Write the Partner record's values onto the Raintree record."""
    model_config = ConfigDict(frozen=True)

    winner: ClassVar[Optional[SyncSource]] = SyncSource.PARTNER
    direction: ClassVar[SyncDirection] = SyncDirection.PARTNER_TO_RAINTREE

    payload: Dict[str, Any] = Field(default_factory=dict)
    conflict: bool = False


class PropagateRaintreeToPartner(BaseModel):
    """Write the Raintree record's values onto the Partner record."""
    model_config = ConfigDict(frozen=True)

    winner: ClassVar[Optional[SyncSource]] = SyncSource.RAINTREE
    direction: ClassVar[SyncDirection] = SyncDirection.RAINTREE_TO_PARTNER

    payload: Dict[str, Any] = Field(default_factory=dict)
    conflict: bool = False


SyncAction = Union[NoOp, PropagatePartnerToRaintree, PropagateRaintreeToPartner]


def _partner_wins(partner_record: ObservedRecord, conflict: bool = False) -> PropagatePartnerToRaintree:
    return PropagatePartnerToRaintree(payload=FieldTransformer.build_payload(partner_record), conflict=conflict)


def _raintree_wins(raintree_record: ObservedRecord, conflict: bool = False) -> PropagateRaintreeToPartner:
    return PropagateRaintreeToPartner(payload=FieldTransformer.build_payload(raintree_record), conflict=conflict)


def decide(mapping: RecordMapping, partner_record: ObservedRecord,
           raintree_record: ObservedRecord) -> SyncAction:
    """Compute the sync action for one mapped record pair."""
    partner_changed = partner_record.last_modified_date > mapping.partner_last_modified
    raintree_changed = raintree_record.last_modified_date > mapping.raintree_last_modified

    if partner_changed and raintree_changed:
        if partner_record.last_modified_date > raintree_record.last_modified_date:
            return _partner_wins(partner_record, conflict=True)
        return _raintree_wins(raintree_record, conflict=True)

    if partner_changed:
        if mapping.last_sync_source is SyncSource.RAINTREE:
            return NoOp()
        return _partner_wins(partner_record)

    if raintree_changed:
        if mapping.last_sync_source is SyncSource.PARTNER:
            return NoOp()
        return _raintree_wins(raintree_record)

    return NoOp()


def reported_direction(action: SyncAction) -> SyncDirection:
    """Direction recorded on the SyncResult for an action."""
    if isinstance(action, NoOp):
        return SyncDirection.NONE
    if isinstance(action, (PropagatePartnerToRaintree, PropagateRaintreeToPartner)):
        return SyncDirection.CONFLICT if action.conflict else action.direction
    raise TypeError(f"Unknown sync action: {type(action).__name__}")
