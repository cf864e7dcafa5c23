"""Cross-platform telemetry provider and its async adapter."""

from __future__ import annotations

import asyncio
import platform
import socket
import time
from concurrent.futures import Executor
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Any, Callable, Protocol, TypeVar

import psutil

from .errors import ProviderError
from .models import (
    CPU_ALERT_MESSAGE,
    DISK_ALERT_MESSAGE,
    MEMORY_ALERT_MESSAGE,
    CpuMetrics,
    DiskMetrics,
    GpuMetrics,
    MemoryMetrics,
    MetricSnapshot,
    NetworkInfo,
    NetworkInterfaceInfo,
)

T = TypeVar("T")


class _GpuAdapter:
    def poll(self) -> GpuMetrics:
        return GpuMetrics()


class _NvmlGpuAdapter(_GpuAdapter):
    def __init__(self) -> None:
        import pynvml  # type: ignore

        self._nvml = pynvml
        pynvml.nvmlInit()

    def poll(self) -> GpuMetrics:
        nvml = self._nvml
        if nvml.nvmlDeviceGetCount() < 1:
            return GpuMetrics(vendor="nvidia")

        h = nvml.nvmlDeviceGetHandleByIndex(0)
        util = nvml.nvmlDeviceGetUtilizationRates(h)
        temp = nvml.nvmlDeviceGetTemperature(h, nvml.NVML_TEMPERATURE_GPU)
        try:
            vram_used = int(nvml.nvmlDeviceGetMemoryInfo(h).used)
        except Exception:
            vram_used = None
        return GpuMetrics(
            usage_percent=float(util.gpu),
            vram_used=vram_used,
            temperature_c=float(temp),
            vendor="nvidia",
        )


def _build_gpu_adapter() -> _GpuAdapter:
    try:
        return _NvmlGpuAdapter()
    except Exception:
        return _GpuAdapter()


def _cpu_temp_c() -> float | None:
    try:
        temps = psutil.sensors_temperatures()
    except Exception:
        return None
    if not temps:
        return None

    for name in ("coretemp", "cpu_thermal", "k10temp", "acpitz"):
        entries = temps.get(name)
        if entries:
            val = entries[0].current
            return float(val) if val is not None else None

    for _name, entries in temps.items():
        if entries and entries[0].current is not None:
            return float(entries[0].current)
    return None


def _collect_disks() -> tuple[DiskMetrics, ...]:
    disks: list[DiskMetrics] = []
    for part in psutil.disk_partitions(all=False):
        try:
            usage = psutil.disk_usage(part.mountpoint)
        except (PermissionError, OSError):
            continue
        disks.append(
            DiskMetrics(
                name=part.device,
                mount_point=part.mountpoint,
                total=int(usage.total),
                used=int(usage.used),
                available=int(usage.free),
                percentage=float(usage.percent),
            )
        )
    return tuple(disks)


def _collect_interfaces() -> tuple[NetworkInterfaceInfo, ...]:
    now = time.time()
    counters = psutil.net_io_counters(pernic=True) or {}
    try:
        stats = psutil.net_if_stats()
    except Exception:
        stats = {}
    try:
        addrs = psutil.net_if_addrs()
    except Exception:
        addrs = {}

    interfaces: list[NetworkInterfaceInfo] = []
    for name, io in sorted(counters.items()):
        st = stats.get(name)
        if st is not None:
            status = "Connected" if st.isup else "Disconnected"
        else:
            status = "Connected" if (io.bytes_recv > 0 or io.bytes_sent > 0) else "Disconnected"
        ips = tuple(
            a.address for a in addrs.get(name, []) if a.family in (socket.AF_INET, socket.AF_INET6)
        )
        interfaces.append(
            NetworkInterfaceInfo(
                name=name,
                status=status,
                bytes_received=int(io.bytes_recv),
                bytes_transmitted=int(io.bytes_sent),
                packets_received=int(io.packets_recv),
                packets_transmitted=int(io.packets_sent),
                errors=int(io.errin + io.errout),
                drops=int(io.dropin + io.dropout),
                ip_addresses=ips,
                last_updated_unix=now,
            )
        )
    return tuple(interfaces)


class TelemetryProvider:
    """Point-in-time resource reads backed by psutil (and NVML when present)."""

    def __init__(self) -> None:
        self._gpu = _build_gpu_adapter()
        self._cpu_name = platform.processor() or platform.machine()
        # Prime non-blocking CPU measurement.
        psutil.cpu_percent(interval=None)
        self._last_cpu_percent: float | None = None

    def poll(self) -> MetricSnapshot:
        freq = psutil.cpu_freq()
        self._last_cpu_percent = float(psutil.cpu_percent(interval=None))
        cpu = CpuMetrics(
            usage_percent=self._last_cpu_percent,
            frequency_mhz=(float(freq.current) if freq else None),
            cores=int(psutil.cpu_count(logical=True) or 0),
            temperature_c=_cpu_temp_c(),
            uptime_s=max(0.0, time.time() - psutil.boot_time()),
            name=self._cpu_name,
        )

        vm = psutil.virtual_memory()
        memory = MemoryMetrics(
            total=int(vm.total),
            used=int(vm.used),
            available=int(vm.available),
            percentage=float(vm.percent),
        )

        return MetricSnapshot(
            cpu=cpu,
            memory=memory,
            disks=_collect_disks(),
            gpu=self._gpu.poll(),
            timestamp=datetime.now(timezone.utc),
            network_interfaces=_collect_interfaces(),
        )

    def poll_network(self) -> NetworkInfo:
        return NetworkInfo(interfaces=_collect_interfaces())

    def check_alerts(self, cpu_threshold: float, ram_threshold: float, disk_threshold: float) -> list[str]:
        """Return every breached threshold message, highest priority first.

        CPU is judged on the reading taken by the latest ``poll``.
        """
        messages: list[str] = []
        cpu = self._last_cpu_percent
        if cpu is None:
            cpu = float(psutil.cpu_percent(interval=None))
        if cpu > cpu_threshold:
            messages.append(CPU_ALERT_MESSAGE)
        if float(psutil.virtual_memory().percent) > ram_threshold:
            messages.append(MEMORY_ALERT_MESSAGE)
        if any(d.percentage > disk_threshold for d in _collect_disks()):
            messages.append(DISK_ALERT_MESSAGE)
        return messages


class MetricsSource(Protocol):
    def poll(self) -> MetricSnapshot: ...

    def poll_network(self) -> NetworkInfo: ...

    def check_alerts(self, cpu_threshold: float, ram_threshold: float, disk_threshold: float) -> list[str]: ...


class SnapshotProviderAdapter:
    """Awaitable facade over a blocking metrics source.

    Calls run in the loop's executor so the event loop only suspends at this
    boundary. Failures surface as ``ProviderError``; no timeout is applied.
    """

    def __init__(self, source: MetricsSource | None = None, executor: Executor | None = None) -> None:
        self._source = source
        self._executor = executor

    @property
    def source(self) -> MetricsSource:
        if self._source is None:
            self._source = TelemetryProvider()
        return self._source

    async def fetch_snapshot(self) -> MetricSnapshot:
        return await self._call("fetch_snapshot", lambda: self.source.poll())

    async def fetch_network_info(self) -> NetworkInfo:
        return await self._call("fetch_network_info", lambda: self.source.poll_network())

    async def check_alerts(self, cpu_threshold: float, ram_threshold: float, disk_threshold: float) -> list[str]:
        return await self._call(
            "check_alerts",
            lambda: list(self.source.check_alerts(cpu_threshold, ram_threshold, disk_threshold)),
        )

    async def _call(self, name: str, fn: Callable[[], T]) -> T:
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(self._executor, fn)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            raise ProviderError(f"{name} failed: {exc}") from exc


def describe(snapshot: MetricSnapshot) -> dict[str, Any]:
    """Plain dict view of a snapshot for JSON output."""
    data = asdict(snapshot)
    data["timestamp"] = snapshot.timestamp.isoformat()
    return data
