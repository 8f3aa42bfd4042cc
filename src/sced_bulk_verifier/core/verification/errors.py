# -*- coding: utf-8 -*-

"""
Exceptions raised by the bulk verification client.

Precondition errors are raised before any request is sent. Transport and
rate-limit errors are absorbed by the poller into backoff; everywhere else
they propagate to the caller.
"""

from typing import Optional


class VerificationError(Exception):
    """Base class for all bulk verification errors."""


class PreconditionError(VerificationError, ValueError):
    """A required input was missing or invalid, so no request was attempted."""


class NotAuthenticatedError(PreconditionError):
    """No bearer token is available, or the server rejected it."""


class InvalidFileError(PreconditionError):
    """The file to upload is missing, empty or not a CSV."""


class TransportError(VerificationError):
    """Network failure, timeout or an unusable response."""


class APIStatusError(TransportError):
    """The server answered with an unexpected HTTP status code."""

    def __init__(self, status_code: int, message: str, body: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class MalformedResponseError(TransportError):
    """The response body could not be decoded into the expected shape."""


class RateLimitedError(VerificationError):
    """The server answered with HTTP 429."""

    def __init__(self, message: str = "Rate limited by the verification API",
                 retry_after: Optional[float] = None):
        super().__init__(message)
        self.retry_after = retry_after


class ServerReportedError(VerificationError):
    """The server reported a failure (``success: false`` or batch status ``error``)."""
