"""
Stream Events
=============

Typed events decoded from raw (event, data) frames.

Event names on the wire:
    heartbeat    - keep-alive, payload ignored
    init         - Sample or Sample[] (full re-seed)
    metrics      - Sample
    metrics-all  - Sample[]

The single-or-array shape of "init" is normalized here, so the
dispatcher only ever sees a tuple of samples.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, List, Optional, Tuple, Union

from pydantic import ValidationError

from horizon_stream.errors import DecodeError
from horizon_stream.models.sample import Sample
from horizon_stream.stream.parser import SSEFrame


logger = logging.getLogger(__name__)


HEARTBEAT = "heartbeat"
INIT = "init"
METRICS = "metrics"
METRICS_ALL = "metrics-all"


@dataclass(frozen=True, slots=True)
class HeartbeatEvent:
    """Keep-alive; carries no data."""


@dataclass(frozen=True, slots=True)
class InitEvent:
    """
    Full snapshot sent right after the stream opens.

    Attributes:
        samples: Every agent the stream covers
        rejected: Array elements dropped as invalid
    """

    samples: Tuple[Sample, ...]
    rejected: int = 0


@dataclass(frozen=True, slots=True)
class MetricsEvent:
    """
    Incremental update for one or more agents.

    Attributes:
        samples: Updated samples, in payload order
        batch: True if sent as "metrics-all"
        rejected: Array elements dropped as invalid
    """

    samples: Tuple[Sample, ...]
    batch: bool = False
    rejected: int = 0


StreamEvent = Union[HeartbeatEvent, InitEvent, MetricsEvent]


def decode_event(frame: SSEFrame) -> Optional[StreamEvent]:
    """
    Decode a raw frame into a typed event.

    Array payloads are validated element by element: an invalid element
    is counted in ``rejected`` and the rest are still delivered.

    Args:
        frame: Frame emitted by FrameParser

    Returns:
        Decoded event, or None for unrecognized event names

    Raises:
        DecodeError: If the payload is not valid JSON, has the wrong
            shape for its event name, or holds no valid sample
    """
    if frame.event == HEARTBEAT or not frame.data:
        return HeartbeatEvent()

    if frame.event not in (INIT, METRICS, METRICS_ALL):
        return None

    try:
        payload = json.loads(frame.data)
    except json.JSONDecodeError as e:
        raise DecodeError(f"Invalid JSON in '{frame.event}' event: {e}", frame.event) from e

    if frame.event == INIT:
        # A single object is accepted as a one-element snapshot
        items = payload if isinstance(payload, list) else [payload]
        samples, rejected = _validate_many(items, frame.event)
        return InitEvent(samples=samples, rejected=rejected)

    if frame.event == METRICS:
        return MetricsEvent(samples=(_validate_one(payload, frame.event),))

    if not isinstance(payload, list):
        raise DecodeError(f"'{frame.event}' payload must be an array", frame.event)
    samples, rejected = _validate_many(payload, frame.event)
    return MetricsEvent(samples=samples, batch=True, rejected=rejected)


def _validate_one(item: Any, event_type: str) -> Sample:
    try:
        return Sample.model_validate(item)
    except ValidationError as e:
        raise DecodeError(
            f"Invalid '{event_type}' payload: {e.error_count()} validation error(s)",
            event_type,
        ) from e


def _validate_many(items: List[Any], event_type: str) -> Tuple[Tuple[Sample, ...], int]:
    samples = []
    for index, item in enumerate(items):
        try:
            samples.append(Sample.model_validate(item))
        except ValidationError as e:
            logger.warning(
                f"Dropped '{event_type}' element {index}: "
                f"{e.error_count()} validation error(s)"
            )

    rejected = len(items) - len(samples)
    if items and not samples:
        raise DecodeError(f"No valid sample in '{event_type}' payload", event_type)
    return tuple(samples), rejected
