"""
Error taxonomy for the relay.

Every failure the service can surface derives from FeedError and carries a
stable machine-readable ``code`` plus the HTTP status the REST facade maps it
to. Message text is advisory only. All of these are recoverable: the poll
loops log them and move on, the API renders them as JSON errors.
"""
from __future__ import annotations

from typing import Any, Optional


class FeedError(Exception):
    """Base class for recoverable relay failures."""

    code = "feed_error"
    status_code = 500

    def __init__(self, message: str, *, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.code, "message": self.message}


class TransportFailure(FeedError):
    """Network error or timeout talking to the provider."""

    code = "upstream_unreachable"
    status_code = 504


class UpstreamFailure(FeedError):
    """Provider answered with a non-2xx status or an error body."""

    code = "upstream_error"
    status_code = 502

    def __init__(
        self,
        message: str,
        *,
        status: Optional[int] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, details=details)
        self.status = status


class MalformedPayload(FeedError):
    """Provider body did not have the expected shape."""

    code = "malformed_payload"
    status_code = 502


class NotFound(FeedError):
    """Identifier is absent from the cache and could not be fetched on demand."""

    code = "not_found"
    status_code = 404


class InvalidRequest(FeedError):
    """Client request is missing or has invalid parameters."""

    code = "invalid_request"
    status_code = 400
