"""
Collection Index Integration - Custom Exceptions

SRP: Only error definitions, no logic.
Raised by client.py and the index manager; mapped to HTTP errors in router.py.
"""
from __future__ import annotations


class CollectionIndexError(Exception):
    """Base error for the collection index integration."""
    pass


class UpstreamUnavailable(CollectionIndexError):
    """Network failure: connection refused, DNS error, reset, etc."""
    pass


class FetchTimeout(CollectionIndexError):
    """The index request did not complete within the configured timeout."""

    def __init__(self, timeout_ms: int):
        self.timeout_ms = timeout_ms
        super().__init__(f"Fetch timeout after {timeout_ms}ms")


class UpstreamHTTPError(CollectionIndexError):
    """Upstream answered with a non-2xx status."""

    def __init__(self, status_code: int, reason: str = ""):
        self.status_code = status_code
        self.reason = reason
        super().__init__(f"HTTP {status_code}: {reason}")


class IndexValidationError(CollectionIndexError):
    """Response body is not a well-formed collection index."""
    pass


class CollectionIndexUnavailable(CollectionIndexError):
    """No fetch succeeded and there is no cached index to fall back on."""

    def __init__(self, cause: object):
        self.cause = cause
        super().__init__(f"Collection index not available: {cause}")
