"""
Frame Parser
============

Incremental decoder for the text/event-stream framing.

Chunks arrive with arbitrary split points (mid-line, mid-field). The
parser keeps the unconsumed remainder and the partially built record
between calls, so the emitted (event, data) pairs do not depend on
how the stream was chunked.

Frame Syntax:
    event: metrics
    data: {"agentId": 1, "cpuUsage": 42.0}
    <blank line>

Rules:
    - "event" defaults to "message"; the last one in a record wins
    - multiple "data" lines are joined with a newline
    - lines with any other key, and ":" comment lines, are ignored
    - a blank line emits the record only if its data is non-empty
"""

import logging
from typing import Iterable, Iterator, List, NamedTuple, Optional


logger = logging.getLogger(__name__)


DEFAULT_EVENT = "message"


class SSEFrame(NamedTuple):
    """One decoded (event-type, data) record."""

    event: str
    data: str


class FrameParser:
    """
    Incremental event-stream frame parser.

    Example:
        parser = FrameParser()

        for chunk in ("event: met", "rics\\ndata: {}\\n", "\\n"):
            for frame in parser.feed(chunk):
                print(frame.event, frame.data)
    """

    def __init__(self) -> None:
        self._remainder: str = ""
        self._event: str = DEFAULT_EVENT
        self._data: List[str] = []
        self._frames_emitted: int = 0
        self._frames_discarded: int = 0

    @property
    def remainder(self) -> str:
        """Unconsumed text waiting for a line terminator."""
        return self._remainder

    @property
    def frames_emitted(self) -> int:
        return self._frames_emitted

    @property
    def frames_discarded(self) -> int:
        """Records closed with empty data (padding, comments)."""
        return self._frames_discarded

    def feed(self, chunk: str) -> List[SSEFrame]:
        """
        Consume a chunk and return every record it completes.

        Args:
            chunk: Next piece of decoded stream text

        Returns:
            Completed frames in stream order (possibly empty)
        """
        if not chunk:
            return []

        text = self._remainder + chunk
        lines = text.split("\n")
        self._remainder = lines.pop()

        frames: List[SSEFrame] = []
        for line in lines:
            frame = self._process_line(line.rstrip("\r"))
            if frame is not None:
                frames.append(frame)
        return frames

    def reset(self) -> None:
        """Drop any partial record. Called when a connection is replaced."""
        self._remainder = ""
        self._event = DEFAULT_EVENT
        self._data = []

    def _process_line(self, line: str) -> Optional[SSEFrame]:
        if line == "":
            return self._dispatch()

        if line.startswith(":"):
            return None

        key, sep, value = line.partition(":")
        if not sep:
            return None
        if value.startswith(" "):
            value = value[1:]

        if key == "event":
            self._event = value.strip() or DEFAULT_EVENT
        elif key == "data":
            self._data.append(value)
        return None

    def _dispatch(self) -> Optional[SSEFrame]:
        data = "\n".join(self._data)
        event = self._event
        self._event = DEFAULT_EVENT
        self._data = []

        if not data:
            self._frames_discarded += 1
            return None

        self._frames_emitted += 1
        return SSEFrame(event=event, data=data)


def iter_frames(chunks: Iterable[str]) -> Iterator[SSEFrame]:
    """Parse an iterable of chunks with a fresh parser."""
    parser = FrameParser()
    for chunk in chunks:
        yield from parser.feed(chunk)
