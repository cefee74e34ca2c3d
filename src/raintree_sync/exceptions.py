"""
Custom exceptions for Raintree Sync.
"""

from typing import Optional


class RaintreeSyncException(Exception):
    """Base exception for all application-specific errors."""
    pass


class ConfigurationError(RaintreeSyncException):
    """Error related to environment or service configuration."""
    pass


class MappingError(RaintreeSyncException):
    """A stored record mapping is malformed and cannot be used."""
    pass


class RemoteError(RaintreeSyncException):
    """A remote system call failed (network, auth, rate limit, 4xx/5xx)."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class SalesforceAPIError(RemoteError):
    """Exception raised for Salesforce REST API errors."""
    pass


class RecordNotFoundError(SalesforceAPIError):
    """The requested record does not exist (or was deleted) remotely."""
    pass
