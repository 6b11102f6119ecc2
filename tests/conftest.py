"""
Test Configuration
==================

Pytest fixtures and helpers for horizon-stream.

The stream server is faked with httpx.MockTransport: each request pops
the next scripted response, and response bodies are produced chunk by
chunk so parser and read-loop behaviour can be exercised.
"""

import asyncio
import json
from collections import deque
from typing import Callable, Deque, Iterable, List, Optional

import httpx
import pytest


STREAM_HEADERS = {"content-type": "text/event-stream; charset=utf-8"}


def sse(event: str, payload) -> str:
    """Encode one event-stream record."""
    data = payload if isinstance(payload, str) else json.dumps(payload)
    return f"event: {event}\ndata: {data}\n\n"


class ChunkStream(httpx.AsyncByteStream):
    """Response body yielding scripted chunks."""

    def __init__(
        self,
        chunks: Iterable[str],
        hold: bool = False,
        error: Optional[Exception] = None,
    ) -> None:
        self.chunks = list(chunks)
        self.hold = hold
        self.error = error
        self.closed = False

    async def __aiter__(self):
        for chunk in self.chunks:
            yield chunk.encode("utf-8")
            await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        if self.hold:
            # Keep the stream open until the reader is cancelled
            await asyncio.Event().wait()

    async def aclose(self) -> None:
        self.closed = True


class FakeStreamServer:
    """
    Scripted metrics stream endpoint.

    Requests beyond the scripted responses get a 503.
    """

    def __init__(self) -> None:
        self.responses: Deque[Callable[[], httpx.Response]] = deque()
        self.requests: List[httpx.Request] = []
        self.streams: List[ChunkStream] = []

    def push(
        self,
        status: int = 200,
        chunks: Iterable[str] = (),
        hold: bool = False,
        error: Optional[Exception] = None,
    ) -> None:
        chunks = list(chunks)

        def build() -> httpx.Response:
            stream = ChunkStream(chunks, hold=hold, error=error)
            self.streams.append(stream)
            return httpx.Response(status, headers=STREAM_HEADERS, stream=stream)

        self.responses.append(build)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self.responses:
            return httpx.Response(503, headers=STREAM_HEADERS, stream=ChunkStream([]))
        return self.responses.popleft()()

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll predicate on the event loop until true or fail."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("Condition not met before timeout")
        await asyncio.sleep(0.005)


@pytest.fixture
def fake_server() -> FakeStreamServer:
    return FakeStreamServer()


@pytest.fixture
def sample_payload():
    """Provide a full wire sample for agent 1."""
    return {
        "agentId": 1,
        "agentName": "web-01",
        "agentIp": "10.0.0.11",
        "online": True,
        "cpuUsage": 42.0,
        "memoryUsed": 2147483648,
        "memoryTotal": 8589934592,
        "memoryUsage": 25.0,
        "diskUsed": 53687091200,
        "diskTotal": 107374182400,
        "diskUsage": 50.0,
        "networkRxBytes": 123456789,
        "networkTxBytes": 98765432,
        "networkRxRate": 2048.0,
        "networkTxRate": 1024.0,
        "loadAverage1m": 0.5,
        "loadAverage5m": 0.4,
        "loadAverage15m": 0.3,
        "processCount": 212,
        "uptimeSeconds": 86400,
        "temperature": 48.5,
        "disks": [
            {"device": "/dev/sda1", "mountpoint": "/", "totalBytes": 107374182400,
             "usedBytes": 53687091200, "usage": 50.0},
        ],
        "interfaces": [
            {"name": "eth0", "ips": ["10.0.0.11"], "sentBytes": 98765432,
             "recvBytes": 123456789, "sentRate": 1024.0, "recvRate": 2048.0},
        ],
        "nodeId": "node-a",
        "os": "linux",
        "platform": "ubuntu",
        "timestamp": "2026-10-19T10:00:00",
        "lastHeartbeat": "2026-10-19T09:59:58",
    }


@pytest.fixture
def make_sample():
    """Factory for minimal wire samples."""

    def _make(agent_id: int = 1, **fields) -> dict:
        payload = {"agentId": agent_id, "online": True}
        payload.update(fields)
        return payload

    return _make
