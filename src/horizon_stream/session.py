"""
Metrics Session
===============

Consumer-facing owner of one metrics stream and its derived data.

The session wires the pipeline together:

    StreamConnection -> dispatch -> LatestValueCache   (immediate)
                                 -> HistoryAggregator  (next commit tick)

and exposes the contract used by rendering code:

    subscribe(on_sample, on_state, on_refresh) -> unsubscribe
    get_latest(agent_id) -> Sample | None
    get_history(agent_id) -> list[HistoryPoint]
    force_reconnect()
    dispose()

Lifecycle:
    open() starts the connection, the history commit timer and the
    value refresh timer. close()/dispose() releases all three no matter
    how the stream ended. The cache and histories outlive individual
    connection attempts; only clear_history()/clear_all() drop them.
"""

import asyncio
import logging
import time
from typing import Callable, Dict, List, Optional, Sequence

import httpx

from horizon_stream.config import Settings
from horizon_stream.models.history import HistoryPoint
from horizon_stream.models.sample import Sample
from horizon_stream.models.state import ConnectionStatus
from horizon_stream.store.history import HistoryAggregator
from horizon_stream.store.latest import LatestValueCache
from horizon_stream.stream.backoff import ReconnectPolicy
from horizon_stream.stream.connection import StreamConnection
from horizon_stream.stream.events import InitEvent, MetricsEvent, StreamEvent


logger = logging.getLogger(__name__)


SampleCallback = Callable[[Sequence[Sample]], None]
StateCallback = Callable[[ConnectionStatus], None]
RefreshCallback = Callable[[Dict[int, Sample]], None]


DEFAULT_REFRESH_INTERVAL = 2.0


class Subscription:
    """Handle returned by MetricsSession.subscribe()."""

    __slots__ = ("on_sample", "on_state", "on_refresh", "_session")

    def __init__(
        self,
        session: "MetricsSession",
        on_sample: Optional[SampleCallback],
        on_state: Optional[StateCallback],
        on_refresh: Optional[RefreshCallback],
    ) -> None:
        self._session = session
        self.on_sample = on_sample
        self.on_state = on_state
        self.on_refresh = on_refresh

    def unsubscribe(self) -> None:
        self._session._unsubscribe(self)

    def __call__(self) -> None:
        self.unsubscribe()


class MetricsSession:
    """
    One live metrics stream plus its latest-value cache and histories.

    Attributes:
        connection: Underlying StreamConnection
        cache: Latest sample per agent
        history: Per-agent bounded history

    Example:
        session = MetricsSession(
            base_url="http://localhost:8080/api",
            token=access_token,
        )

        async with session:
            unsubscribe = session.subscribe(on_sample=print)
            ...
            session.get_history(1)
    """

    def __init__(
        self,
        base_url: str,
        *,
        token: Optional[str] = None,
        agent_id: Optional[int] = None,
        policy: Optional[ReconnectPolicy] = None,
        max_points: int = 60,
        commit_interval: float = 1.5,
        refresh_interval: float = DEFAULT_REFRESH_INTERVAL,
        client: Optional[httpx.AsyncClient] = None,
        connect_timeout: float = 10.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Initialize metrics session.

        Args:
            base_url: API base URL of the metrics service
            token: Bearer token
            agent_id: Scope the stream to one agent
            policy: Reconnect backoff policy
            max_points: Capacity of each agent's history
            commit_interval: Seconds between history commits
            refresh_interval: Seconds between latest-value refreshes
            client: Pre-built httpx client (owned by the caller)
            connect_timeout: Stream handshake timeout
            clock: Source of history commit timestamps
        """
        if refresh_interval <= 0:
            raise ValueError("refresh_interval must be > 0")

        self.refresh_interval = refresh_interval

        self.cache = LatestValueCache()
        self.history = HistoryAggregator(
            max_points=max_points,
            commit_interval=commit_interval,
            clock=clock,
        )
        self.connection = StreamConnection(
            base_url,
            on_event=self._handle_event,
            on_state=self._handle_state,
            token=token,
            agent_id=agent_id,
            policy=policy,
            client=client,
            connect_timeout=connect_timeout,
        )

        self._subscriptions: List[Subscription] = []
        self._refresh_task: Optional[asyncio.Task] = None
        self._refreshed_version: int = 0
        self._opened: bool = False
        self._closed: bool = False

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        client: Optional[httpx.AsyncClient] = None,
    ) -> "MetricsSession":
        """Build a session from loaded configuration."""
        return cls(
            settings.stream.base_url,
            token=settings.stream.token,
            agent_id=settings.stream.agent_id,
            policy=ReconnectPolicy(
                base_delay=settings.reconnect.base_delay_seconds,
                max_delay=settings.reconnect.max_delay_seconds,
                max_attempts=settings.reconnect.max_attempts,
            ),
            max_points=settings.history.max_points,
            commit_interval=settings.history.commit_interval_seconds,
            refresh_interval=settings.history.refresh_interval_seconds,
            client=client,
            connect_timeout=settings.stream.connect_timeout_seconds,
        )

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    @property
    def is_open(self) -> bool:
        return self._opened and not self._closed

    async def open(self) -> None:
        """Start the connection and both timers."""
        if self._closed:
            raise RuntimeError("MetricsSession is closed")
        if self._opened:
            return
        self._opened = True

        self.history.start()
        self._refresh_task = asyncio.create_task(self._run_refresh(), name="latest_refresh")
        await self.connection.connect()
        logger.info("Metrics session opened")

    async def close(self) -> None:
        """Release the connection and both timers. Safe to call twice."""
        if self._closed:
            return
        self._closed = True

        try:
            await self.connection.close()
        finally:
            await self.history.stop()
            await self._stop_refresh()
            self._subscriptions.clear()

        logger.info("Metrics session closed")

    async def dispose(self) -> None:
        await self.close()

    async def __aenter__(self) -> "MetricsSession":
        await self.open()
        return self

    async def __aexit__(self, *args) -> None:
        await self.close()

    # -------------------------------------------------------------------------
    # Consumer contract
    # -------------------------------------------------------------------------

    def subscribe(
        self,
        on_sample: Optional[SampleCallback] = None,
        on_state: Optional[StateCallback] = None,
        on_refresh: Optional[RefreshCallback] = None,
    ) -> Subscription:
        """
        Register consumer callbacks.

        Args:
            on_sample: Called once per dispatched event with its samples
            on_state: Called on every connection state change
            on_refresh: Called once per refresh interval with the full
                latest-value map, only if something changed

        Returns:
            Subscription; call it (or .unsubscribe()) to detach
        """
        subscription = Subscription(self, on_sample, on_state, on_refresh)
        self._subscriptions.append(subscription)
        return subscription

    def get_latest(self, agent_id: int) -> Optional[Sample]:
        return self.cache.get(agent_id)

    def get_all_latest(self) -> Dict[int, Sample]:
        return self.cache.snapshot()

    def get_history(self, agent_id: int) -> List[HistoryPoint]:
        return self.history.get_history(agent_id)

    @property
    def status(self) -> ConnectionStatus:
        return self.connection.status

    async def force_reconnect(self) -> None:
        """User-initiated retry; resets the backoff counter."""
        if not self.is_open:
            raise RuntimeError("MetricsSession is not open")
        await self.connection.reconnect()

    def clear_history(self, agent_id: int) -> None:
        self.history.clear_history(agent_id)

    def clear_all(self) -> None:
        self.history.clear_all()

    def metrics(self) -> dict:
        """
        Get session metrics for observability.

        Returns:
            Dict with connection status, stream counters and history counters
        """
        return {
            "connection": self.connection.status.to_dict(),
            "stream": self.connection.metrics.to_dict(),
            "history": self.history.metrics(),
            "agents_cached": len(self.cache),
            "subscribers": len(self._subscriptions),
        }

    # -------------------------------------------------------------------------
    # Dispatch
    # -------------------------------------------------------------------------

    def _handle_event(self, event: StreamEvent) -> None:
        """Apply a decoded event to the cache and pending history."""
        if isinstance(event, InitEvent):
            self.cache.replace_all(event.samples)
            logger.info(f"Stream init: {len(event.samples)} agents")
        elif isinstance(event, MetricsEvent):
            self.cache.update_many(event.samples)
        else:
            return

        self.history.add_many(event.samples)
        self._notify_samples(event.samples)

    def _handle_state(self, status: ConnectionStatus) -> None:
        for subscription in list(self._subscriptions):
            if subscription.on_state is None:
                continue
            try:
                subscription.on_state(status)
            except Exception:
                logger.exception("on_state subscriber failed")

    def _notify_samples(self, samples: Sequence[Sample]) -> None:
        for subscription in list(self._subscriptions):
            if subscription.on_sample is None:
                continue
            try:
                subscription.on_sample(samples)
            except Exception:
                logger.exception("on_sample subscriber failed")

    # -------------------------------------------------------------------------
    # Refresh timer
    # -------------------------------------------------------------------------

    def refresh(self) -> bool:
        """
        Publish the latest-value map if it changed since the last refresh.

        Returns:
            True if subscribers were notified
        """
        version = self.cache.version
        if version == self._refreshed_version:
            return False
        self._refreshed_version = version

        snapshot = self.cache.snapshot()
        for subscription in list(self._subscriptions):
            if subscription.on_refresh is None:
                continue
            try:
                subscription.on_refresh(snapshot)
            except Exception:
                logger.exception("on_refresh subscriber failed")
        return True

    async def _run_refresh(self) -> None:
        while True:
            await asyncio.sleep(self.refresh_interval)
            self.refresh()

    async def _stop_refresh(self) -> None:
        task, self._refresh_task = self._refresh_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    def _unsubscribe(self, subscription: Subscription) -> None:
        try:
            self._subscriptions.remove(subscription)
        except ValueError:
            pass
