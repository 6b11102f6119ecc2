"""
History Aggregator
==================

Two-stage buffering that turns an irregular push stream into a regular,
bounded time series per agent.

Stage 1 (pending):
    Every incoming sample is projected to a HistoryPoint and merged over
    the agent's previous pending point, so a None series value keeps the
    last known value. Many pushes within one interval collapse into one
    pending point.

Stage 2 (commit):
    Once per commit interval, every agent with a pending update gets one
    point appended to its AgentHistory, stamped with the commit time.
    Agents without an update since the last tick are skipped; no
    synthetic points are produced.

Design Rules:
    - AgentHistory length never exceeds max_points (drops oldest)
    - Insertion order is query order
    - Pending points survive disconnects; only clear_* removes them
    - Tick reads a snapshot of pending updates taken when it fires
"""

import asyncio
import logging
import time
from collections import deque
from typing import Callable, Deque, Dict, Iterable, List, Optional, Set

from horizon_stream.models.history import HistoryPoint
from horizon_stream.models.sample import Sample


logger = logging.getLogger(__name__)


DEFAULT_MAX_POINTS = 60
DEFAULT_COMMIT_INTERVAL = 1.5


class AgentHistory:
    """
    Fixed-size ring buffer of HistoryPoint for one agent.

    Attributes:
        agent_id: Agent the history belongs to
        max_points: Capacity; the oldest point is evicted beyond it
    """

    def __init__(self, agent_id: int, max_points: int = DEFAULT_MAX_POINTS) -> None:
        if max_points < 1:
            raise ValueError("max_points must be >= 1")

        self.agent_id = agent_id
        self._points: Deque[HistoryPoint] = deque(maxlen=max_points)
        self._evicted_count: int = 0

    @property
    def max_points(self) -> int:
        return self._points.maxlen

    @property
    def evicted_count(self) -> int:
        """Number of points dropped from the head."""
        return self._evicted_count

    def __len__(self) -> int:
        return len(self._points)

    def append(self, point: HistoryPoint) -> Optional[HistoryPoint]:
        """
        Append a point at the tail.

        Returns:
            The evicted head point, or None if nothing was evicted
        """
        evicted = None
        if len(self._points) == self._points.maxlen:
            evicted = self._points[0]
            self._evicted_count += 1
        self._points.append(point)
        return evicted

    def points(self) -> List[HistoryPoint]:
        """Points oldest first."""
        return list(self._points)

    def latest(self) -> Optional[HistoryPoint]:
        return self._points[-1] if self._points else None


class HistoryAggregator:
    """
    Per-agent bounded history fed by a fixed-interval commit tick.

    Example:
        aggregator = HistoryAggregator(max_points=60, commit_interval=1.5)
        aggregator.start()

        aggregator.add(sample)          # any rate
        ...
        aggregator.get_history(1)       # one point per tick

        await aggregator.stop()
    """

    def __init__(
        self,
        max_points: int = DEFAULT_MAX_POINTS,
        commit_interval: float = DEFAULT_COMMIT_INTERVAL,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Initialize history aggregator.

        Args:
            max_points: Capacity of each agent's history. Must be >= 1.
            commit_interval: Seconds between commit ticks. Must be > 0.
            clock: Source of commit timestamps (UNIX seconds)
        """
        if max_points < 1:
            raise ValueError("max_points must be >= 1")
        if commit_interval <= 0:
            raise ValueError("commit_interval must be > 0")

        self.max_points = max_points
        self.commit_interval = commit_interval
        self._clock = clock

        self._histories: Dict[int, AgentHistory] = {}
        self._pending: Dict[int, HistoryPoint] = {}
        self._dirty: Set[int] = set()

        self._task: Optional[asyncio.Task] = None
        self._ticks: int = 0
        self._points_committed: int = 0
        self._samples_added: int = 0
        self._samples_skipped: int = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    # -------------------------------------------------------------------------
    # Stage 1: pending
    # -------------------------------------------------------------------------

    def add(self, sample: Sample) -> bool:
        """
        Queue a sample for the next commit tick.

        Offline samples are not charted and are skipped.

        Returns:
            True if the sample was queued
        """
        if not sample.online:
            self._samples_skipped += 1
            return False

        point = HistoryPoint.from_sample(sample)
        self._pending[sample.agent_id] = point.merged_over(self._pending.get(sample.agent_id))
        self._dirty.add(sample.agent_id)
        self._samples_added += 1
        return True

    def add_many(self, samples: Iterable[Sample]) -> int:
        return sum(1 for sample in samples if self.add(sample))

    def pending(self, agent_id: int) -> Optional[HistoryPoint]:
        """Latest merged pending point for an agent (committed or not)."""
        return self._pending.get(agent_id)

    # -------------------------------------------------------------------------
    # Stage 2: commit
    # -------------------------------------------------------------------------

    def tick(self) -> int:
        """
        Commit one point per agent with a pending update.

        Returns:
            Number of points committed
        """
        self._ticks += 1
        if not self._dirty:
            return 0

        now = self._clock()
        batch = {agent_id: self._pending[agent_id] for agent_id in self._dirty}
        self._dirty = set()

        for agent_id, point in batch.items():
            history = self._histories.get(agent_id)
            if history is None:
                history = AgentHistory(agent_id, self.max_points)
                self._histories[agent_id] = history
            history.append(point.stamped(now))

        self._points_committed += len(batch)
        logger.debug(f"History tick {self._ticks}: committed {len(batch)} points")
        return len(batch)

    def start(self) -> None:
        """Start the periodic commit task on the running loop."""
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="history_commit")
        logger.info(f"History commit timer started (interval={self.commit_interval}s)")

    async def stop(self) -> None:
        """Cancel the commit task and wait for it to unwind."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("History commit timer stopped")

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.commit_interval)
            self.tick()

    # -------------------------------------------------------------------------
    # Queries and maintenance
    # -------------------------------------------------------------------------

    def get_history(self, agent_id: int) -> List[HistoryPoint]:
        """Committed points for an agent, oldest first (empty if none)."""
        history = self._histories.get(agent_id)
        return history.points() if history else []

    def agent_ids(self) -> List[int]:
        return list(self._histories)

    def clear_history(self, agent_id: int) -> None:
        """Drop one agent's committed history and pending point."""
        self._histories.pop(agent_id, None)
        self._pending.pop(agent_id, None)
        self._dirty.discard(agent_id)

    def clear_all(self) -> None:
        self._histories.clear()
        self._pending.clear()
        self._dirty.clear()

    def metrics(self) -> dict:
        """
        Get aggregator metrics for observability.

        Returns:
            Dict with agent count, tick count and point counters
        """
        return {
            "agents": len(self._histories),
            "pending": len(self._dirty),
            "ticks": self._ticks,
            "points_committed": self._points_committed,
            "samples_added": self._samples_added,
            "samples_skipped_offline": self._samples_skipped,
            "max_points": self.max_points,
            "commit_interval": self.commit_interval,
        }
