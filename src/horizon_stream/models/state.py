"""
Connection State Models
=======================

Connection lifecycle states for the metrics stream.

Transitions:
    DISCONNECTED -> CONNECTING | RECONNECTING | FAILED
    CONNECTING   -> CONNECTED | DISCONNECTED
    CONNECTED    -> DISCONNECTED
    RECONNECTING -> CONNECTING | DISCONNECTED
    FAILED       -> CONNECTING | DISCONNECTED

Every attempt that ends (handshake failure, end of stream, transport
error, teardown) passes through DISCONNECTED. From there the backoff
policy either schedules a retry (RECONNECTING) or gives up (FAILED).
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Optional


class ConnectionState(str, Enum):
    """
    Connection lifecycle states.

    Attributes:
        DISCONNECTED: No live connection
        CONNECTING: Handshake in flight
        CONNECTED: Read loop running
        RECONNECTING: Backoff timer pending
        FAILED: Retries exhausted (terminal until a manual reconnect)
    """

    DISCONNECTED = "DISCONNECTED"
    CONNECTING = "CONNECTING"
    CONNECTED = "CONNECTED"
    RECONNECTING = "RECONNECTING"
    FAILED = "FAILED"


ALLOWED_TRANSITIONS: Dict[ConnectionState, FrozenSet[ConnectionState]] = {
    ConnectionState.DISCONNECTED: frozenset({
        ConnectionState.CONNECTING,
        ConnectionState.RECONNECTING,
        ConnectionState.FAILED,
    }),
    ConnectionState.CONNECTING: frozenset({
        ConnectionState.CONNECTED,
        ConnectionState.DISCONNECTED,
    }),
    ConnectionState.CONNECTED: frozenset({ConnectionState.DISCONNECTED}),
    ConnectionState.RECONNECTING: frozenset({
        ConnectionState.CONNECTING,
        ConnectionState.DISCONNECTED,
    }),
    ConnectionState.FAILED: frozenset({
        ConnectionState.CONNECTING,
        ConnectionState.DISCONNECTED,
    }),
}


@dataclass(frozen=True, slots=True)
class ConnectionStatus:
    """
    Immutable snapshot of the connection state.

    Attributes:
        state: Current lifecycle state
        attempt: Reconnect attempt number (RECONNECTING/FAILED only)
        delay: Backoff delay in seconds (RECONNECTING only)
        error: Last error, if the state was reached through a failure
    """

    state: ConnectionState = ConnectionState.DISCONNECTED
    attempt: int = 0
    delay: Optional[float] = None
    error: Optional[BaseException] = None

    @property
    def connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED

    @property
    def in_flight(self) -> bool:
        """Whether an attempt is already connecting or connected."""
        return self.state in (ConnectionState.CONNECTING, ConnectionState.CONNECTED)

    def can_transition(self, target: ConnectionState) -> bool:
        return target in ALLOWED_TRANSITIONS[self.state]

    def to_dict(self) -> dict:
        """Export status as a JSON-safe dict."""
        return {
            "state": self.state.value,
            "attempt": self.attempt,
            "delay": self.delay,
            "error": str(self.error) if self.error else None,
        }
