"""
Model Tests
===========

Wire parsing of samples and history point projection/merging.
"""

from horizon_stream.models.history import HistoryPoint, InterfaceRate
from horizon_stream.models.sample import Sample
from horizon_stream.models.state import ConnectionState, ConnectionStatus


class TestSample:
    """Tests for the Sample wire model."""

    def test_full_payload(self, sample_payload):
        sample = Sample.model_validate(sample_payload)
        assert sample.agent_id == 1
        assert sample.agent_name == "web-01"
        assert sample.cpu_usage == 42.0
        assert sample.load_average_1m == 0.5
        assert sample.load_average_15m == 0.3
        assert sample.process_count == 212
        assert sample.disks[0].device == "/dev/sda1"
        assert sample.disks[0].usage == 50.0
        assert sample.interfaces[0].name == "eth0"
        assert sample.interfaces[0].recv_rate == 2048.0

    def test_absent_fields_stay_none(self):
        sample = Sample.model_validate({"agentId": 2, "cpuUsage": None})
        assert sample.cpu_usage is None
        assert sample.memory_usage is None
        assert sample.network_rx_rate is None
        assert sample.disks is None
        assert sample.interfaces is None

    def test_online_defaults_to_true(self):
        assert Sample.model_validate({"agentId": 2}).online is True
        assert Sample.model_validate({"agentId": 2, "online": False}).online is False

    def test_unknown_fields_ignored(self):
        sample = Sample.model_validate({"agentId": 3, "gpuUsage": 99.0})
        assert sample.agent_id == 3
        assert not hasattr(sample, "gpu_usage")

    def test_dump_uses_wire_names(self, sample_payload):
        dumped = Sample.model_validate(sample_payload).model_dump(by_alias=True)
        assert dumped["agentId"] == 1
        assert dumped["loadAverage1m"] == 0.5
        assert dumped["interfaces"][0]["recvRate"] == 2048.0

    def test_null_interface_ips(self):
        sample = Sample.model_validate({
            "agentId": 2,
            "interfaces": [{"name": "docker0", "ips": None, "sentRate": 0.0, "recvRate": 12.5}],
        })
        assert sample.interfaces[0].ips == []
        assert sample.interfaces[0].recv_rate == 12.5

    def test_sparse_interface_entry(self):
        sample = Sample.model_validate({"agentId": 2, "interfaces": [{"name": "lo"}]})
        iface = sample.interfaces[0]
        assert iface.name == "lo"
        assert iface.ips == []
        assert iface.sent_rate is None

    def test_invalid_sub_entry_skipped(self):
        sample = Sample.model_validate({
            "agentId": 2,
            "cpuUsage": 7.0,
            "disks": ["/dev/sda1", {"device": "/dev/sdb1", "usage": 10.0}],
            "interfaces": [{"name": "eth0", "ips": "10.0.0.2"}, {"name": "eth1"}],
        })
        assert sample.cpu_usage == 7.0
        assert [d.device for d in sample.disks] == ["/dev/sdb1"]
        assert [i.name for i in sample.interfaces] == ["eth1"]

    def test_negative_counters_accepted(self):
        sample = Sample.model_validate({
            "agentId": 2,
            "disks": [{"device": "/dev/sda1", "usedBytes": -1}],
            "interfaces": [{"name": "eth0", "sentBytes": -5}],
        })
        assert sample.disks[0].used_bytes == -1
        assert sample.interfaces[0].sent_bytes == -5


class TestHistoryPoint:
    """Tests for HistoryPoint projection and carry-forward merge."""

    def test_from_sample(self, sample_payload):
        point = HistoryPoint.from_sample(Sample.model_validate(sample_payload))
        assert point.cpu_usage == 42.0
        assert point.memory_usage == 25.0
        assert point.disk_usage == 50.0
        assert point.network_rx_rate == 2048.0
        assert point.network_tx_rate == 1024.0
        assert point.temperature == 48.5
        assert point.interface_rates == {"eth0": InterfaceRate(rx_rate=2048.0, tx_rate=1024.0)}

    def test_from_sample_skips_unnamed_interfaces(self):
        sample = Sample.model_validate({
            "agentId": 2,
            "interfaces": [{"recvRate": 1.0}, {"name": "eth0", "recvRate": 2.0}],
        })
        point = HistoryPoint.from_sample(sample)
        assert list(point.interface_rates) == ["eth0"]

    def test_merge_fills_missing_values(self):
        previous = HistoryPoint(cpu_usage=10.0, network_rx_rate=500.0, network_tx_rate=250.0)
        current = HistoryPoint(cpu_usage=20.0, network_rx_rate=None, network_tx_rate=0.0)

        merged = current.merged_over(previous)

        assert merged.cpu_usage == 20.0
        assert merged.network_rx_rate == 500.0
        assert merged.network_tx_rate == 0.0

    def test_merge_interfaces_by_name(self):
        previous = HistoryPoint(interface_rates={
            "eth0": InterfaceRate(rx_rate=1.0, tx_rate=2.0),
            "eth1": InterfaceRate(rx_rate=3.0, tx_rate=4.0),
        })
        current = HistoryPoint(interface_rates={
            "eth0": InterfaceRate(rx_rate=None, tx_rate=9.0),
        })

        merged = current.merged_over(previous)

        assert merged.interface_rates["eth0"] == InterfaceRate(rx_rate=1.0, tx_rate=9.0)
        assert merged.interface_rates["eth1"] == InterfaceRate(rx_rate=3.0, tx_rate=4.0)

    def test_merge_without_previous(self):
        point = HistoryPoint(cpu_usage=1.0)
        assert point.merged_over(None) is point

    def test_stamped(self):
        assert HistoryPoint(cpu_usage=1.0).stamped(123.0).timestamp == 123.0


class TestConnectionStatus:
    """Tests for the connection state table."""

    def test_default_is_disconnected(self):
        status = ConnectionStatus()
        assert status.state is ConnectionState.DISCONNECTED
        assert not status.connected
        assert not status.in_flight

    def test_connected_cannot_jump_to_connecting(self):
        status = ConnectionStatus(ConnectionState.CONNECTED)
        assert status.in_flight
        assert not status.can_transition(ConnectionState.CONNECTING)
        assert status.can_transition(ConnectionState.DISCONNECTED)

    def test_to_dict(self):
        status = ConnectionStatus(ConnectionState.RECONNECTING, attempt=1, delay=1.0)
        assert status.to_dict() == {
            "state": "RECONNECTING",
            "attempt": 1,
            "delay": 1.0,
            "error": None,
        }
