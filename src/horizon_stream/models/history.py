"""
History Point Model
===================

Reduced, fixed-shape projection of a Sample used for charting.

A HistoryPoint carries only the handful of scalar series the UI plots,
plus an optional per-interface rate breakdown keyed by interface name.
Its timestamp is the commit time of the sampling tick, not the time the
sample was produced, so a history is a regular grid.
"""

from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from horizon_stream.models.sample import Sample


class InterfaceRate(BaseModel):
    """Receive/transmit rate for one interface."""

    model_config = ConfigDict(frozen=True)

    rx_rate: Optional[float] = None
    tx_rate: Optional[float] = None

    def merged_over(self, previous: Optional["InterfaceRate"]) -> "InterfaceRate":
        """Fill missing rates from a previous reading."""
        if previous is None:
            return self
        return InterfaceRate(
            rx_rate=self.rx_rate if self.rx_rate is not None else previous.rx_rate,
            tx_rate=self.tx_rate if self.tx_rate is not None else previous.tx_rate,
        )


# Scalar series carried on every point
SERIES_FIELDS = (
    "cpu_usage",
    "memory_usage",
    "disk_usage",
    "network_rx_rate",
    "network_tx_rate",
    "temperature",
)


class HistoryPoint(BaseModel):
    """
    One committed point of an agent's history.

    Attributes:
        timestamp: Commit time (UNIX seconds)
        cpu_usage: CPU percentage
        memory_usage: Memory percentage
        disk_usage: Disk percentage
        network_rx_rate: Receive rate (bytes/s)
        network_tx_rate: Transmit rate (bytes/s)
        temperature: Temperature (°C)
        interface_rates: Per-interface rates keyed by interface name
    """

    model_config = ConfigDict(frozen=True)

    timestamp: float = Field(default=0.0, ge=0.0)
    cpu_usage: Optional[float] = None
    memory_usage: Optional[float] = None
    disk_usage: Optional[float] = None
    network_rx_rate: Optional[float] = None
    network_tx_rate: Optional[float] = None
    temperature: Optional[float] = None
    interface_rates: Dict[str, InterfaceRate] = Field(default_factory=dict)

    @classmethod
    def from_sample(cls, sample: Sample) -> "HistoryPoint":
        """Project a sample onto the charted series (timestamp unset)."""
        rates = {
            iface.name: InterfaceRate(rx_rate=iface.recv_rate, tx_rate=iface.sent_rate)
            for iface in sample.interfaces or ()
            if iface.name
        }
        return cls(
            cpu_usage=sample.cpu_usage,
            memory_usage=sample.memory_usage,
            disk_usage=sample.disk_usage,
            network_rx_rate=sample.network_rx_rate,
            network_tx_rate=sample.network_tx_rate,
            temperature=sample.temperature,
            interface_rates=rates,
        )

    def merged_over(self, previous: Optional["HistoryPoint"]) -> "HistoryPoint":
        """
        Fill missing series from a previous pending point.

        A None scalar in self falls back to the value in previous.
        Interfaces absent from self are carried over as-is.
        """
        if previous is None:
            return self

        updates = {
            name: getattr(previous, name)
            for name in SERIES_FIELDS
            if getattr(self, name) is None
        }

        rates = dict(previous.interface_rates)
        for name, rate in self.interface_rates.items():
            rates[name] = rate.merged_over(previous.interface_rates.get(name))
        updates["interface_rates"] = rates

        return self.model_copy(update=updates)

    def stamped(self, timestamp: float) -> "HistoryPoint":
        """Return a copy stamped with the commit time."""
        return self.model_copy(update={"timestamp": timestamp})
