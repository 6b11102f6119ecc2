"""
Store Module
============

In-memory structures fed by the stream:
    - LatestValueCache: latest sample per agent
    - AgentHistory: bounded ring buffer of points for one agent
    - HistoryAggregator: pending buffer + commit tick per agent
"""

from horizon_stream.store.latest import LatestValueCache
from horizon_stream.store.history import AgentHistory, HistoryAggregator


__all__ = [
    "LatestValueCache",
    "AgentHistory",
    "HistoryAggregator",
]
