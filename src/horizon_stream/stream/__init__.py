"""
Stream Module
=============

Event-stream consumption components.

This module provides the ingestion layer for horizon-stream:
    - FrameParser: Incremental text/event-stream frame decoder
    - decode_event: Frame -> typed event (init / metrics / heartbeat)
    - ReconnectPolicy: Exponential backoff parameters
    - StreamConnection: HTTP stream client with backoff reconnect

Example:
    from horizon_stream.stream import StreamConnection

    connection = StreamConnection(
        base_url="http://localhost:8080/api",
        on_event=handle_event,
    )
    await connection.connect()
"""

from horizon_stream.stream.parser import FrameParser, SSEFrame
from horizon_stream.stream.events import (
    HeartbeatEvent,
    InitEvent,
    MetricsEvent,
    StreamEvent,
    decode_event,
)
from horizon_stream.stream.backoff import ReconnectPolicy
from horizon_stream.stream.connection import StreamConnection, StreamMetrics


__all__ = [
    "FrameParser",
    "SSEFrame",
    "HeartbeatEvent",
    "InitEvent",
    "MetricsEvent",
    "StreamEvent",
    "decode_event",
    "ReconnectPolicy",
    "StreamConnection",
    "StreamMetrics",
]
