"""
Stream Connection
=================

Persistent HTTP event-stream client for the metrics endpoint.

This module provides the StreamConnection class which:
    - Opens GET {base_url}/metrics/stream[/{agent_id}] with a bearer token
    - Feeds response text through FrameParser
    - Decodes frames into typed events and hands them to a callback
    - Reconnects with exponential backoff on failure
    - Distinguishes deliberate teardown from unexpected disconnects

Design Rules:
    - At most one attempt (handshake or read loop) in flight
    - At most one backoff timer pending
    - A malformed frame is counted and dropped; the loop continues
    - Cancellation never schedules a reconnect
    - Every exit path releases the response and clears timers
"""

import asyncio
import logging
from typing import Callable, Dict, Optional

import httpx

from horizon_stream.errors import (
    ConnectError,
    DecodeError,
    ExhaustedRetriesError,
    StreamError,
    TransportError,
)
from horizon_stream.models.state import ConnectionState, ConnectionStatus
from horizon_stream.stream.backoff import ReconnectPolicy
from horizon_stream.stream.events import HeartbeatEvent, StreamEvent, decode_event
from horizon_stream.stream.parser import FrameParser, SSEFrame


logger = logging.getLogger(__name__)


EventHandler = Callable[[StreamEvent], None]
StateHandler = Callable[[ConnectionStatus], None]


class StreamMetrics:
    """Metrics for StreamConnection observability."""

    __slots__ = (
        "events_received",
        "heartbeats",
        "decode_errors",
        "ignored_events",
        "rejected_samples",
        "connect_count",
        "connect_failures",
        "transport_errors",
        "reconnect_count",
    )

    def __init__(self) -> None:
        self.events_received: int = 0
        self.heartbeats: int = 0
        self.decode_errors: int = 0
        self.ignored_events: int = 0
        self.rejected_samples: int = 0
        self.connect_count: int = 0
        self.connect_failures: int = 0
        self.transport_errors: int = 0
        self.reconnect_count: int = 0

    @property
    def dropped_frames(self) -> int:
        """Frames discarded as malformed or unrecognized."""
        return self.decode_errors + self.ignored_events

    def to_dict(self) -> dict:
        """Export metrics as dict."""
        return {
            "events_received": self.events_received,
            "heartbeats": self.heartbeats,
            "decode_errors": self.decode_errors,
            "ignored_events": self.ignored_events,
            "dropped_frames": self.dropped_frames,
            "rejected_samples": self.rejected_samples,
            "connect_count": self.connect_count,
            "connect_failures": self.connect_failures,
            "transport_errors": self.transport_errors,
            "reconnect_count": self.reconnect_count,
        }


class StreamConnection:
    """
    Event-stream consumer for the metrics endpoint.

    Attributes:
        base_url: API base URL, e.g. "http://localhost:8080/api"
        agent_id: Optional agent scope for the stream path
        policy: Reconnect backoff policy
        status: Current ConnectionStatus snapshot
        metrics: Operational metrics

    Example:
        connection = StreamConnection(
            base_url="http://localhost:8080/api",
            on_event=handle_event,
            on_state=handle_state,
            token=access_token,
        )

        await connection.connect()
        ...
        await connection.close()
    """

    def __init__(
        self,
        base_url: str,
        on_event: EventHandler,
        on_state: Optional[StateHandler] = None,
        *,
        token: Optional[str] = None,
        agent_id: Optional[int] = None,
        policy: Optional[ReconnectPolicy] = None,
        client: Optional[httpx.AsyncClient] = None,
        connect_timeout: float = 10.0,
    ) -> None:
        """
        Initialize stream connection.

        Args:
            base_url: API base URL (stream path is appended)
            on_event: Called once per decoded, non-heartbeat event
            on_state: Called on every connection state change
            token: Bearer token for the Authorization header
            agent_id: Scope the stream to a single agent
            policy: Backoff policy (defaults: 1s base, 30s cap, 10 retries)
            client: Pre-built httpx client; not closed by close()
            connect_timeout: Handshake timeout; reads never time out
        """
        self.base_url = base_url.rstrip("/")
        self.agent_id = agent_id
        self.token = token
        self.policy = policy or ReconnectPolicy()

        self._on_event = on_event
        self._on_state = on_state

        self._client = client
        self._owns_client = client is None
        self._timeout = httpx.Timeout(connect_timeout, read=None)

        # State
        self._status = ConnectionStatus()
        self._attempt: int = 0
        self._closed: bool = False
        self._parser = FrameParser()
        self._attempt_task: Optional[asyncio.Task] = None
        self._backoff_task: Optional[asyncio.Task] = None

        # Metrics
        self.metrics = StreamMetrics()

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def status(self) -> ConnectionStatus:
        return self._status

    @property
    def state(self) -> ConnectionState:
        return self._status.state

    @property
    def connected(self) -> bool:
        return self._status.connected

    @property
    def attempt(self) -> int:
        """Consecutive failed attempts since the last successful connect."""
        return self._attempt

    @property
    def reconnect_pending(self) -> bool:
        return self._backoff_task is not None and not self._backoff_task.done()

    @property
    def url(self) -> str:
        if self.agent_id is not None:
            return f"{self.base_url}/metrics/stream/{self.agent_id}"
        return f"{self.base_url}/metrics/stream"

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def connect(self, agent_id: Optional[int] = None) -> None:
        """
        Start a connection attempt.

        No-op while an attempt is already connecting or connected.
        A pending backoff timer is cancelled and the attempt starts now.

        Args:
            agent_id: Re-scope the stream to this agent before connecting
        """
        if self._closed:
            raise StreamError("StreamConnection is closed")

        if self._status.in_flight:
            logger.debug(f"Connect ignored, already {self._status.state.value}")
            return

        if agent_id is not None:
            self.agent_id = agent_id

        self._cancel_backoff()
        self._start_attempt()

    async def reconnect(self) -> None:
        """
        Manual retry.

        Cancels any pending backoff and in-flight attempt, resets the
        attempt counter and connects immediately.
        """
        if self._closed:
            raise StreamError("StreamConnection is closed")

        logger.info("Manual reconnect requested")
        await self._teardown()
        self._attempt = 0
        self._start_attempt()

    async def close(self) -> None:
        """
        Tear down the connection and all timers.

        Safe to call more than once.
        """
        if self._closed:
            return
        self._closed = True

        await self._teardown()

        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

        logger.info("StreamConnection closed")

    async def join(self) -> None:
        """Wait until the current attempt (handshake + read loop) ends."""
        task = self._attempt_task
        if task is None or task is asyncio.current_task():
            return
        try:
            await asyncio.shield(task)
        except asyncio.CancelledError:
            if not task.cancelled():
                raise

    async def __aenter__(self) -> "StreamConnection":
        await self.connect()
        return self

    async def __aexit__(self, *args) -> None:
        await self.close()

    # -------------------------------------------------------------------------
    # Attempt
    # -------------------------------------------------------------------------

    def _start_attempt(self) -> None:
        self._parser.reset()
        self._set_status(ConnectionStatus(ConnectionState.CONNECTING, attempt=self._attempt))
        self._attempt_task = asyncio.create_task(
            self._run_attempt(),
            name="metrics_stream",
        )

    async def _run_attempt(self) -> None:
        """Handshake, then read until the stream ends or fails."""
        error: Optional[StreamError] = None

        try:
            await self._connect_and_consume()
            logger.info("Stream ended by server")
        except asyncio.CancelledError:
            logger.debug("Stream attempt cancelled")
            raise
        except ConnectError as e:
            self.metrics.connect_failures += 1
            logger.warning(f"Stream connect failed: {e}")
            error = e
        except TransportError as e:
            self.metrics.transport_errors += 1
            logger.warning(f"Stream dropped: {e}")
            error = e

        self._schedule_reconnect(error)

    async def _connect_and_consume(self) -> None:
        """Open the stream and feed chunks to the parser until EOF."""
        client = self._get_client()
        connected = False

        try:
            async with client.stream("GET", self.url, headers=self._headers()) as response:
                if not response.is_success:
                    raise ConnectError(
                        f"HTTP {response.status_code}: {response.reason_phrase}",
                        status_code=response.status_code,
                    )

                connected = True
                self._on_connected()

                async for chunk in response.aiter_text():
                    for frame in self._parser.feed(chunk):
                        self._dispatch(frame)

        except (httpx.HTTPError, httpx.StreamError) as e:
            if connected:
                raise TransportError(f"{type(e).__name__}: {e}") from e
            raise ConnectError(f"{type(e).__name__}: {e}") from e

    def _on_connected(self) -> None:
        self._attempt = 0
        self.metrics.connect_count += 1
        self._set_status(ConnectionStatus(ConnectionState.CONNECTED))
        logger.info(f"Connected to metrics stream: {self.url}")

    def _dispatch(self, frame: SSEFrame) -> None:
        """Decode one frame and hand it to the event callback."""
        try:
            event = decode_event(frame)
        except DecodeError as e:
            self.metrics.decode_errors += 1
            logger.warning(f"Dropped malformed frame: {e}")
            return

        if event is None:
            self.metrics.ignored_events += 1
            logger.debug(f"Ignored unknown event type: {frame.event}")
            return

        if isinstance(event, HeartbeatEvent):
            self.metrics.heartbeats += 1
            return

        self.metrics.events_received += 1
        self.metrics.rejected_samples += event.rejected
        try:
            self._on_event(event)
        except Exception:
            logger.exception(f"Event handler failed for '{frame.event}' event")

    # -------------------------------------------------------------------------
    # Backoff
    # -------------------------------------------------------------------------

    def _schedule_reconnect(self, error: Optional[StreamError]) -> None:
        """Route a finished attempt into the backoff state machine."""
        self._set_status(ConnectionStatus(ConnectionState.DISCONNECTED, error=error))

        if self._closed:
            return

        if self.policy.exhausted(self._attempt):
            exhausted = ExhaustedRetriesError(self._attempt, error)
            logger.error(str(exhausted))
            self._set_status(ConnectionStatus(
                ConnectionState.FAILED,
                attempt=self._attempt,
                error=exhausted,
            ))
            return

        delay = self.policy.delay_for(self._attempt)
        self._attempt += 1
        self.metrics.reconnect_count += 1
        logger.info(f"Reconnecting in {delay:.1f}s (attempt {self._attempt})")

        self._set_status(ConnectionStatus(
            ConnectionState.RECONNECTING,
            attempt=self._attempt,
            delay=delay,
            error=error,
        ))
        self._backoff_task = asyncio.create_task(
            self._backoff(delay),
            name="metrics_stream_backoff",
        )

    async def _backoff(self, delay: float) -> None:
        await asyncio.sleep(delay)
        self._backoff_task = None
        self._start_attempt()

    def _cancel_backoff(self) -> None:
        task, self._backoff_task = self._backoff_task, None
        if task is not None and not task.done():
            task.cancel()

    async def _teardown(self) -> None:
        """Cancel the backoff timer and any in-flight attempt."""
        self._cancel_backoff()

        task, self._attempt_task = self._attempt_task, None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        if self._status.state is not ConnectionState.DISCONNECTED:
            self._set_status(ConnectionStatus(ConnectionState.DISCONNECTED))

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Accept": "text/event-stream",
            "Cache-Control": "no-cache",
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _set_status(self, status: ConnectionStatus) -> None:
        current = self._status
        if status.state is not current.state and not current.can_transition(status.state):
            raise RuntimeError(
                f"Illegal connection transition: {current.state.value} -> {status.state.value}"
            )

        self._status = status
        if self._on_state is None:
            return
        try:
            self._on_state(status)
        except Exception:
            logger.exception("Connection state handler failed")
