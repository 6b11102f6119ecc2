"""
Event Decoding Tests
====================

Typed decoding of frames, including init normalization.
"""

import pytest

from horizon_stream.errors import DecodeError
from horizon_stream.stream.events import (
    HeartbeatEvent,
    InitEvent,
    MetricsEvent,
    decode_event,
)
from horizon_stream.stream.parser import SSEFrame


class TestDecodeEvent:
    """Tests for decode_event."""

    def test_heartbeat(self):
        assert isinstance(decode_event(SSEFrame("heartbeat", "ping")), HeartbeatEvent)

    def test_init_array(self):
        event = decode_event(SSEFrame("init", '[{"agentId":1},{"agentId":2}]'))
        assert isinstance(event, InitEvent)
        assert [s.agent_id for s in event.samples] == [1, 2]

    def test_init_single_object_normalized(self):
        event = decode_event(SSEFrame("init", '{"agentId":5,"cpuUsage":1.5}'))
        assert isinstance(event, InitEvent)
        assert len(event.samples) == 1
        assert event.samples[0].agent_id == 5
        assert event.samples[0].cpu_usage == 1.5

    def test_metrics(self):
        event = decode_event(SSEFrame("metrics", '{"agentId":1,"cpuUsage":42.0}'))
        assert isinstance(event, MetricsEvent)
        assert event.batch is False
        assert event.samples[0].cpu_usage == 42.0

    def test_metrics_all(self):
        event = decode_event(SSEFrame("metrics-all", '[{"agentId":1},{"agentId":3}]'))
        assert isinstance(event, MetricsEvent)
        assert event.batch is True
        assert [s.agent_id for s in event.samples] == [1, 3]

    def test_unknown_event_returns_none(self):
        assert decode_event(SSEFrame("message", '{"agentId":1}')) is None
        assert decode_event(SSEFrame("alerts", "{}")) is None

    def test_invalid_json_raises(self):
        with pytest.raises(DecodeError) as excinfo:
            decode_event(SSEFrame("metrics", "{not json"))
        assert excinfo.value.event_type == "metrics"

    def test_sample_without_agent_id_raises(self):
        with pytest.raises(DecodeError):
            decode_event(SSEFrame("metrics", '{"cpuUsage": 3}'))

    def test_metrics_all_requires_array(self):
        with pytest.raises(DecodeError):
            decode_event(SSEFrame("metrics-all", '{"agentId": 1}'))

    def test_metrics_all_keeps_valid_elements(self):
        payload = (
            '[{"agentId":1,"cpuUsage":10},'
            ' {"cpuUsage":20},'
            ' {"agentId":3,"interfaces":[{"name":"docker0","ips":null,"recvRate":5.0}]}]'
        )
        event = decode_event(SSEFrame("metrics-all", payload))

        assert [s.agent_id for s in event.samples] == [1, 3]
        assert event.rejected == 1
        assert event.samples[1].interfaces[0].ips == []

    def test_init_keeps_valid_elements(self):
        event = decode_event(SSEFrame("init", '[{"agentId":1}, "garbage", {"agentId":2}]'))
        assert isinstance(event, InitEvent)
        assert [s.agent_id for s in event.samples] == [1, 2]
        assert event.rejected == 1

    def test_batch_without_valid_elements_raises(self):
        with pytest.raises(DecodeError):
            decode_event(SSEFrame("metrics-all", '[{"cpuUsage": 1}, {"cpuUsage": 2}]'))

    def test_empty_init_is_valid(self):
        event = decode_event(SSEFrame("init", "[]"))
        assert event.samples == ()
        assert event.rejected == 0

    def test_interface_without_addresses(self):
        payload = '{"agentId":1,"interfaces":[{"name":"lo"},{"name":"tun0","ips":null}]}'
        event = decode_event(SSEFrame("metrics", payload))
        assert [i.name for i in event.samples[0].interfaces] == ["lo", "tun0"]
