"""
Stream Errors
=============

Error taxonomy for the metrics stream client.

Recovery rules:
    - DecodeError: absorbed at the dispatch boundary, stream continues
    - ConnectError / TransportError: routed into the backoff state machine
    - ExhaustedRetriesError: terminal, surfaced to subscribers
    - asyncio.CancelledError: deliberate teardown, never retried
"""

from typing import Optional


class StreamError(Exception):
    """Base class for all metrics stream failures."""


class ConnectError(StreamError):
    """
    Stream handshake failed.

    Raised for non-2xx responses and for network failures that happen
    before the response headers arrive.

    Attributes:
        status_code: HTTP status, or None if no response was received
    """

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TransportError(StreamError):
    """Stream dropped mid-read."""


class DecodeError(StreamError):
    """
    Event payload could not be decoded.

    Attributes:
        event_type: Event name of the offending record
    """

    def __init__(self, message: str, event_type: str) -> None:
        super().__init__(message)
        self.event_type = event_type


class ExhaustedRetriesError(StreamError):
    """Reconnect attempts exhausted; no further attempt is scheduled."""

    def __init__(self, attempts: int, last_error: Optional[BaseException] = None) -> None:
        super().__init__(f"Failed to connect after {attempts} reconnect attempts")
        self.attempts = attempts
        self.last_error = last_error
