"""
Service API Tests
=================

Tests for the FastAPI endpoints. The lifespan is not run; a session
seeded through its dispatch handler is installed directly.
"""

import json

import pytest
from fastapi.testclient import TestClient

from horizon_stream import main
from horizon_stream.session import MetricsSession
from horizon_stream.stream.events import decode_event
from horizon_stream.stream.parser import SSEFrame


def _seed(session: MetricsSession, event: str, payload) -> None:
    session._handle_event(decode_event(SSEFrame(event, json.dumps(payload))))


@pytest.fixture
def session(monkeypatch, sample_payload, make_sample):
    seeded = MetricsSession("http://monitor.test/api", clock=lambda: 1000.0)
    _seed(seeded, "init", [sample_payload, make_sample(2, cpuUsage=7.5)])
    seeded.history.tick()
    monkeypatch.setattr(main, "_session", seeded)
    return seeded


@pytest.fixture
def client():
    return TestClient(main.app)


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_root_reports_stream_url(client, session):
    body = client.get("/").json()
    assert body["service"] == "horizon-stream"
    assert body["stream_url"] == "http://monitor.test/api/metrics/stream"


def test_agents(client, session):
    response = client.get("/agents")

    assert response.status_code == 200
    by_id = {agent["agentId"]: agent for agent in response.json()}
    assert set(by_id) == {1, 2}
    assert by_id[1]["cpuUsage"] == 42.0
    assert by_id[1]["loadAverage1m"] == 0.5


def test_agent_latest(client, session):
    response = client.get("/agents/2/latest")
    assert response.status_code == 200
    assert response.json()["cpuUsage"] == 7.5


def test_agent_latest_unknown(client, session):
    response = client.get("/agents/99/latest")
    assert response.status_code == 404


def test_agent_history(client, session):
    body = client.get("/agents/1/history").json()

    assert body["agent_id"] == 1
    assert body["max_points"] == 60
    assert len(body["history"]) == 1
    point = body["history"][0]
    assert point["timestamp"] == 1000.0
    assert point["cpu_usage"] == 42.0


def test_clear_agent_history(client, session):
    response = client.delete("/agents/1/history")

    assert response.status_code == 200
    assert response.json() == {"agent_id": 1, "cleared": True}
    assert session.get_history(1) == []
    assert len(session.get_history(2)) == 1


def test_ready_while_disconnected(client, session):
    response = client.get("/ready")
    assert response.status_code == 503
    assert response.json()["status"] == "not_ready"


def test_metrics(client, session):
    body = client.get("/metrics").json()
    assert body["agents_cached"] == 2
    assert body["history"]["points_committed"] == 2
    assert body["connection"]["state"] == "DISCONNECTED"


def test_reconnect_requires_open_session(client, session):
    response = client.post("/reconnect")
    assert response.status_code == 409


@pytest.mark.parametrize("method, path", [
    ("get", "/ready"),
    ("get", "/metrics"),
    ("get", "/agents"),
    ("get", "/agents/1/latest"),
    ("get", "/agents/1/history"),
    ("delete", "/agents/1/history"),
    ("post", "/reconnect"),
])
def test_no_session(client, monkeypatch, method, path):
    monkeypatch.setattr(main, "_session", None)
    response = getattr(client, method)(path)
    assert response.status_code == 503
