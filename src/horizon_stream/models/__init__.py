"""
Data Models
===========

Models for horizon-stream.

Models:
    Wire:
        - Sample: One metrics snapshot as received from the server
        - DiskInfo, NetworkInterface: Sub-metrics keyed by name

    History:
        - HistoryPoint: Charted projection of a Sample
        - InterfaceRate: Per-interface rx/tx rates

    Connection:
        - ConnectionState: Lifecycle states
        - ConnectionStatus: Immutable state snapshot
"""

from horizon_stream.models.sample import DiskInfo, NetworkInterface, Sample
from horizon_stream.models.history import HistoryPoint, InterfaceRate
from horizon_stream.models.state import ConnectionState, ConnectionStatus

__all__ = [
    # Wire
    "Sample",
    "DiskInfo",
    "NetworkInterface",
    # History
    "HistoryPoint",
    "InterfaceRate",
    # Connection
    "ConnectionState",
    "ConnectionStatus",
]
