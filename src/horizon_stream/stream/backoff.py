"""
Reconnect Policy
================

Exponential backoff for stream reconnects.

    delay(attempt) = min(base_delay * 2 ** attempt, max_delay)

With the defaults (1s base, 30s cap) consecutive failures wait
1, 2, 4, 8, 16 seconds, then 30 seconds from attempt 5 onward. Once
max_attempts retries have been scheduled without a successful
connection, no further retry is scheduled.
"""

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class ReconnectPolicy:
    """
    Backoff parameters.

    Attributes:
        base_delay: Delay before the first retry (seconds)
        max_delay: Upper bound on any delay (seconds)
        max_attempts: Retries allowed before giving up
    """

    base_delay: float = 1.0
    max_delay: float = 30.0
    max_attempts: int = 10

    def __post_init__(self) -> None:
        if self.base_delay <= 0:
            raise ValueError("base_delay must be > 0")
        if self.max_delay < self.base_delay:
            raise ValueError("max_delay must be >= base_delay")
        if self.max_attempts < 0:
            raise ValueError("max_attempts must be >= 0")

    def delay_for(self, attempt: int) -> float:
        """Delay before retry number attempt + 1 (attempt counts from 0)."""
        if attempt < 0:
            raise ValueError("attempt must be >= 0")
        # Avoid float overflow for very large attempt numbers
        if attempt >= 64:
            return self.max_delay
        return min(self.base_delay * (2 ** attempt), self.max_delay)

    def exhausted(self, attempt: int) -> bool:
        return attempt >= self.max_attempts
