"""
Exception types raised by the Cloud SQL security manager.
"""

from typing import Optional


class CloudSqlError(Exception):
    """Base class for all errors raised by this package."""


class CredentialError(CloudSqlError):
    """Bearer token could not be obtained or introspected."""


class TemplateRenderError(CloudSqlError):
    """A request template could not be rendered (programmer error)."""


class TransportError(CloudSqlError):
    """Network-level failure while talking to the API."""


class HTTPStatusError(CloudSqlError):
    """The API answered with a non-success status code."""

    def __init__(self, code: int, message: str = "", url: Optional[str] = None):
        self.code = code
        self.message = message
        self.url = url
        detail = f"HTTP {code}"
        if message:
            detail = f"{detail}: {message}"
        if url:
            detail = f"{detail} ({url})"
        super().__init__(detail)


class DecodeError(CloudSqlError):
    """Response body is not valid JSON or does not match the expected shape."""


class EmptyOperationError(CloudSqlError):
    """Polling was attempted without a submitted operation."""


class NoPublicIPError(CloudSqlError):
    """The instance has no PRIMARY ip address."""


class OperationTimeoutError(CloudSqlError):
    """The operation did not reach DONE before the caller's deadline."""


class OperationFailedError(CloudSqlError):
    """The operation finished but the API reported an error for it."""
