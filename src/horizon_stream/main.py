"""
Horizon Stream Service
======================

FastAPI entry point hosting one MetricsSession for the process lifetime.

Endpoints:
    GET    /                      - Service information
    GET    /health                - Liveness probe (is process alive?)
    GET    /ready                 - Readiness probe (stream connected?)
    GET    /metrics               - Connection, stream and history counters
    GET    /agents                - Latest sample for every agent
    GET    /agents/{id}/latest    - Latest sample for one agent
    GET    /agents/{id}/history   - Committed history for one agent
    DELETE /agents/{id}/history   - Drop one agent's history
    POST   /reconnect             - Manual reconnect (resets backoff)
"""

import logging
import os
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from horizon_stream import __version__
from horizon_stream.config import settings, setup_logging
from horizon_stream.models.state import ConnectionState
from horizon_stream.session import MetricsSession


logger = logging.getLogger(__name__)


# =============================================================================
# Global State
# =============================================================================

_session: Optional[MetricsSession] = None
_startup_time: float = 0.0


def get_session() -> Optional[MetricsSession]:
    return _session


# =============================================================================
# Lifespan
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open the metrics session on startup, release it on shutdown."""
    global _session, _startup_time

    setup_logging(settings)
    _startup_time = time.time()

    logger.info(f"Starting horizon-stream v{__version__}")
    logger.info(f"Stream base URL: {settings.stream.base_url}")

    _session = MetricsSession.from_settings(settings)
    await _session.open()

    yield

    logger.info("Shutting down gracefully...")
    session, _session = _session, None
    await session.close()
    logger.info("Shutdown complete")


# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title="horizon-stream",
    description="Live host-telemetry stream with bounded per-agent history",
    version=__version__,
    lifespan=lifespan,
)


def _unavailable() -> JSONResponse:
    return JSONResponse({"error": "Session not started"}, status_code=503)


# =============================================================================
# HTTP Endpoints
# =============================================================================

@app.get("/")
async def root() -> JSONResponse:
    """Service information endpoint."""
    return JSONResponse({
        "service": "horizon-stream",
        "version": __version__,
        "stream_url": _session.connection.url if _session else None,
        "status": "running",
    })


@app.get("/health")
async def health() -> JSONResponse:
    """Liveness probe. Always 200 while the process runs."""
    return JSONResponse({
        "status": "healthy",
        "uptime_seconds": round(time.time() - _startup_time, 1),
    })


@app.get("/ready")
async def ready() -> JSONResponse:
    """
    Readiness probe.

    Returns 200 while the stream is connected, 503 otherwise. A session
    that exhausted its retries reports "failed" so operators can tell a
    terminal failure from a transient reconnect.
    """
    session = get_session()
    if session is None:
        return _unavailable()

    status = session.status
    if status.connected:
        return JSONResponse({"status": "ready", "connection": status.to_dict()})

    label = "failed" if status.state is ConnectionState.FAILED else "not_ready"
    return JSONResponse(
        {"status": label, "connection": status.to_dict()},
        status_code=503,
    )


@app.get("/metrics")
async def metrics() -> JSONResponse:
    """Detailed metrics for observability."""
    session = get_session()
    if session is None:
        return _unavailable()

    return JSONResponse({
        "uptime_seconds": round(time.time() - _startup_time, 1),
        **session.metrics(),
    })


@app.get("/agents")
async def agents() -> JSONResponse:
    """Latest sample for every agent seen on the stream."""
    session = get_session()
    if session is None:
        return _unavailable()

    return JSONResponse([
        sample.model_dump(mode="json", by_alias=True)
        for sample in session.get_all_latest().values()
    ])


@app.get("/agents/{agent_id}/latest")
async def agent_latest(agent_id: int) -> JSONResponse:
    session = get_session()
    if session is None:
        return _unavailable()

    sample = session.get_latest(agent_id)
    if sample is None:
        return JSONResponse({"error": f"No data for agent {agent_id}"}, status_code=404)
    return JSONResponse(sample.model_dump(mode="json", by_alias=True))


@app.get("/agents/{agent_id}/history")
async def agent_history(agent_id: int) -> JSONResponse:
    """Committed history points, oldest first."""
    session = get_session()
    if session is None:
        return _unavailable()

    return JSONResponse({
        "agent_id": agent_id,
        "max_points": session.history.max_points,
        "history": [point.model_dump(mode="json") for point in session.get_history(agent_id)],
    })


@app.delete("/agents/{agent_id}/history")
async def clear_agent_history(agent_id: int) -> JSONResponse:
    session = get_session()
    if session is None:
        return _unavailable()

    session.clear_history(agent_id)
    return JSONResponse({"agent_id": agent_id, "cleared": True})


@app.post("/reconnect")
async def reconnect() -> JSONResponse:
    """User-initiated reconnect; resets the backoff counter."""
    session = get_session()
    if session is None:
        return _unavailable()

    if not session.is_open:
        return JSONResponse({"error": "Session is not open"}, status_code=409)

    await session.force_reconnect()
    return JSONResponse({"connection": session.status.to_dict()})


# =============================================================================
# Main Entry Point
# =============================================================================

def run() -> None:
    import uvicorn

    port = int(os.environ.get("PORT", settings.server.port))

    uvicorn.run(
        "horizon_stream.main:app",
        host=settings.server.host,
        port=port,
        reload=False,
    )


if __name__ == "__main__":
    run()
