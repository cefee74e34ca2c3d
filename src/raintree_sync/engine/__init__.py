"""
Sync engine for reconciling records between the Partner and Raintree orgs.
"""

from .policy import (
    NoOp, PropagatePartnerToRaintree, PropagateRaintreeToPartner, SyncAction, decide
)
from .sync import SyncEngine
from .transforms import FieldTransformer

__all__ = [
    "SyncEngine",
    "FieldTransformer",
    "SyncAction",
    "NoOp",
    "PropagatePartnerToRaintree",
    "PropagateRaintreeToPartner",
    "decide",
]
