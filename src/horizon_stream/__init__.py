"""
Horizon Stream
==============

Live host-telemetry stream client for the Horizon monitoring platform.

This package subscribes to the server's metrics event stream, keeps the
latest sample per agent, and turns the irregular push stream into a
bounded, fixed-rate history per agent for charting.

Components:
    - stream: Frame parser, event decoding, reconnecting connection
    - store: Latest-value cache and history aggregator
    - session: Consumer-facing session tying the pipeline together
    - main: FastAPI service exposing a session over HTTP

Example:
    from horizon_stream.session import MetricsSession

    async with MetricsSession("http://localhost:8080/api", token=token) as session:
        session.subscribe(on_sample=print)
        ...
"""

__version__ = "0.1.0"
__author__ = "Horizon Project"

__all__ = [
    "__version__",
]
