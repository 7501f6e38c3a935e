"""Error taxonomy for the remote client.

Every failure surfaced by the transport, REST and event stream layers is one
of the classes below, so callers can catch ``OpencodeRemoteError`` once and
still tell a dead network apart from a server-side rejection.
"""

from __future__ import annotations


class OpencodeRemoteError(Exception):
    """Base class for all client errors."""


class TransportError(OpencodeRemoteError):
    """The server could not be reached (no decoded HTTP response)."""


class HttpError(OpencodeRemoteError):
    """The server answered with a status code >= 400."""

    def __init__(self, status: int, message: str) -> None:
        """Store the status code alongside the resolved message."""
        super().__init__(message)
        self.status = status
        self.message = message

    def __repr__(self) -> str:
        return f"HttpError(status={self.status}, message={self.message!r})"


class DecodeError(OpencodeRemoteError):
    """A successful response body did not match the expected shape."""


class StreamError(OpencodeRemoteError):
    """The event stream failed to open or dropped."""


class UnhealthyServerError(OpencodeRemoteError):
    """The health endpoint answered but reported ``healthy=false``."""
