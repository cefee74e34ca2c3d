from .client import SalesforceClient, DEFAULT_API_VERSION, DEFAULT_TIMEOUT

__all__ = [
    "SalesforceClient",
    "DEFAULT_API_VERSION",
    "DEFAULT_TIMEOUT",
]
