"""Typed telemetry models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


CPU_ALERT_MESSAGE = "High CPU usage!"
MEMORY_ALERT_MESSAGE = "Memory critically low!"
DISK_ALERT_MESSAGE = "Disk space critically low!"


@dataclass(frozen=True)
class CpuMetrics:
    usage_percent: float
    frequency_mhz: float | None = None
    cores: int = 0
    temperature_c: float | None = None
    uptime_s: float = 0.0
    name: str = ""


@dataclass(frozen=True)
class MemoryMetrics:
    total: int
    used: int
    available: int
    percentage: float


@dataclass(frozen=True)
class DiskMetrics:
    name: str
    mount_point: str
    total: int
    used: int
    available: int
    percentage: float

    @property
    def key(self) -> str:
        return f"{self.name}{self.mount_point}"


@dataclass(frozen=True)
class GpuMetrics:
    usage_percent: float | None = None
    vram_used: int | None = None
    temperature_c: float | None = None
    vendor: str | None = None


@dataclass(frozen=True)
class NetworkInterfaceInfo:
    name: str
    status: str
    bytes_received: int
    bytes_transmitted: int
    packets_received: int = 0
    packets_transmitted: int = 0
    errors: int = 0
    drops: int = 0
    ip_addresses: tuple[str, ...] = ()
    last_updated_unix: float = 0.0


@dataclass(frozen=True)
class NetworkInfo:
    interfaces: tuple[NetworkInterfaceInfo, ...] = ()


@dataclass(frozen=True)
class MetricSnapshot:
    cpu: CpuMetrics
    memory: MemoryMetrics
    disks: tuple[DiskMetrics, ...]
    gpu: GpuMetrics
    timestamp: datetime
    network_interfaces: tuple[NetworkInterfaceInfo, ...] = field(default=())
