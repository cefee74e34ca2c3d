"""
Gateway framework for Raintree Sync.

This package contains the gateways for the two sides of the sync. The engine
depends only on ``RecordGateway``.
"""

from .base import RecordGateway
from .salesforce import SalesforceGateway, PartnerGateway, RaintreeGateway, create_gateway_from_env

__all__ = [
    "RecordGateway",
    "SalesforceGateway",
    "PartnerGateway",
    "RaintreeGateway",
    "create_gateway_from_env",
    "get_connector",
]

# Gateway registry for dynamic loading
CONNECTOR_REGISTRY = {
    "partner": PartnerGateway,
    "raintree": RaintreeGateway,
}


def get_connector(side: str):
    """Get a gateway class by side name."""
    if side not in CONNECTOR_REGISTRY:
        raise ValueError(f"Unknown side: {side}")
    return CONNECTOR_REGISTRY[side]
