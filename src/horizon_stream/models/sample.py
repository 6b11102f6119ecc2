"""
Sample Schema
=============

Pydantic models for metric samples received over the metrics stream.

Wire Contract (camelCase JSON, every numeric field nullable):
    {
        "agentId": 1,
        "online": true,
        "cpuUsage": 42.0,
        "memoryUsed": 2147483648, "memoryTotal": 8589934592, "memoryUsage": 25.0,
        "networkRxRate": 1024.0, "networkTxRate": 512.0,
        "disks": [{"device": "/dev/sda1", "mountpoint": "/", ...}],
        "interfaces": [{"name": "eth0", "ips": ["10.0.0.2"], ...}],
        ...
    }

Absence is not zero: a null or missing numeric field stays None and
is never coerced to 0. Unknown keys are ignored so the server can
add fields without breaking older clients.

Example:
    from horizon_stream.models.sample import Sample

    sample = Sample.model_validate_json(raw)
    print(sample.agent_id, sample.cpu_usage)
"""

import logging
from typing import Any, List, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidationInfo,
    field_validator,
)
from pydantic.alias_generators import to_camel


logger = logging.getLogger(__name__)


class WireModel(BaseModel):
    """Base for camelCase wire models."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )


class DiskInfo(WireModel):
    """One mounted filesystem, identified by its device name."""

    device: Optional[str] = Field(default=None, description="Block device name")
    mountpoint: Optional[str] = Field(default=None, description="Mount path")
    total_bytes: Optional[int] = None
    used_bytes: Optional[int] = None
    usage: Optional[float] = Field(default=None, description="Used percentage")


class NetworkInterface(WireModel):
    """One network interface, identified by its name."""

    name: Optional[str] = Field(default=None, description="Interface name, e.g. eth0")
    ips: List[str] = Field(default_factory=list)
    sent_bytes: Optional[int] = None
    recv_bytes: Optional[int] = None
    sent_rate: Optional[float] = Field(default=None, description="Bytes/s sent")
    recv_rate: Optional[float] = Field(default=None, description="Bytes/s received")

    @field_validator("ips", mode="before")
    @classmethod
    def _null_ips(cls, value: Any) -> Any:
        # Agents send a nil slice as null for interfaces without addresses
        return [] if value is None else value


# Sub-metric lists whose entries are validated one by one
_ENTRY_MODELS = {
    "disks": DiskInfo,
    "interfaces": NetworkInterface,
}


class Sample(WireModel):
    """
    One metrics snapshot for an agent, as received over the wire.

    A malformed disk or interface entry is dropped on its own; it never
    invalidates the rest of the sample.

    Attributes:
        agent_id: Agent identifier (stable for the session)
        online: Whether the agent was reachable when sampled
        cpu_usage: CPU utilisation percentage
        network_rx_rate: Receive rate in bytes/s (None if unknown)
        network_tx_rate: Transmit rate in bytes/s (None if unknown)
        disks: Per-device disk usage, keyed by device name
        interfaces: Per-interface counters, keyed by interface name
    """

    agent_id: int = Field(..., description="Agent identifier")
    agent_name: Optional[str] = None
    agent_ip: Optional[str] = None
    online: bool = Field(default=True, description="Agent reachability")

    cpu_usage: Optional[float] = None

    memory_used: Optional[float] = None
    memory_total: Optional[float] = None
    memory_usage: Optional[float] = None

    disk_used: Optional[float] = None
    disk_total: Optional[float] = None
    disk_usage: Optional[float] = None

    network_rx_bytes: Optional[float] = None
    network_tx_bytes: Optional[float] = None
    network_rx_rate: Optional[float] = None
    network_tx_rate: Optional[float] = None

    # to_camel would produce "loadAverage1M"
    load_average_1m: Optional[float] = Field(default=None, alias="loadAverage1m")
    load_average_5m: Optional[float] = Field(default=None, alias="loadAverage5m")
    load_average_15m: Optional[float] = Field(default=None, alias="loadAverage15m")

    process_count: Optional[int] = None
    uptime_seconds: Optional[float] = None
    temperature: Optional[float] = None

    disks: Optional[List[DiskInfo]] = None
    interfaces: Optional[List[NetworkInterface]] = None

    node_id: Optional[str] = None
    os: Optional[str] = None
    platform: Optional[str] = None
    timestamp: Optional[str] = None
    last_heartbeat: Optional[str] = None

    @field_validator("disks", "interfaces", mode="before")
    @classmethod
    def _drop_invalid_entries(cls, value: Any, info: ValidationInfo) -> Any:
        if not isinstance(value, list):
            return value

        model = _ENTRY_MODELS[info.field_name]
        entries = []
        for raw in value:
            try:
                entries.append(model.model_validate(raw))
            except ValidationError as e:
                logger.debug(f"Skipped invalid {info.field_name} entry: {e.error_count()} error(s)")
        return entries

