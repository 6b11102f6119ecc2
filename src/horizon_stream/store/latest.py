"""
Latest Value Cache
==================

Mapping from agent id to its most recently observed sample.

Design Rules:
    - Reads never block and return the latest value or None
    - Every update for an agent overwrites the previous sample
    - No history is kept here (see HistoryAggregator)
    - Mutated only from the dispatch path on the event loop
"""

import logging
from typing import Dict, Iterable, List, Optional

from horizon_stream.models.sample import Sample


logger = logging.getLogger(__name__)


class LatestValueCache:
    """
    Latest sample per agent.

    Example:
        cache = LatestValueCache()
        cache.update(sample)
        cache.get(sample.agent_id).cpu_usage
    """

    def __init__(self) -> None:
        self._samples: Dict[int, Sample] = {}
        self._version: int = 0

    def __len__(self) -> int:
        return len(self._samples)

    def __contains__(self, agent_id: int) -> bool:
        return agent_id in self._samples

    @property
    def version(self) -> int:
        """Incremented on every mutation; lets readers detect change."""
        return self._version

    def get(self, agent_id: int) -> Optional[Sample]:
        return self._samples.get(agent_id)

    def agent_ids(self) -> List[int]:
        return list(self._samples)

    def snapshot(self) -> Dict[int, Sample]:
        """Shallow copy of the whole map."""
        return dict(self._samples)

    def update(self, sample: Sample) -> None:
        """Overwrite one agent's sample."""
        self._samples[sample.agent_id] = sample
        self._version += 1

    def update_many(self, samples: Iterable[Sample]) -> None:
        for sample in samples:
            self.update(sample)

    def replace_all(self, samples: Iterable[Sample]) -> None:
        """
        Re-seed the cache from a full snapshot.

        Agents missing from the snapshot are dropped.
        """
        self._samples = {sample.agent_id: sample for sample in samples}
        self._version += 1
        logger.debug(f"Latest cache re-seeded with {len(self._samples)} agents")

    def remove(self, agent_id: int) -> bool:
        if self._samples.pop(agent_id, None) is None:
            return False
        self._version += 1
        return True

    def clear(self) -> None:
        self._samples.clear()
        self._version += 1
