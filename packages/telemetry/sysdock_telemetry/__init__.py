"""System telemetry models and providers for SysDock."""

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
try:  # pragma: no cover - optional at import time for minimal test environments
    from .provider import SnapshotProviderAdapter, TelemetryProvider
except Exception:  # pragma: no cover
    SnapshotProviderAdapter = None  # type: ignore[assignment,misc]
    TelemetryProvider = None  # type: ignore[assignment,misc]

__all__ = [
    "CPU_ALERT_MESSAGE",
    "DISK_ALERT_MESSAGE",
    "MEMORY_ALERT_MESSAGE",
    "CpuMetrics",
    "DiskMetrics",
    "GpuMetrics",
    "MemoryMetrics",
    "MetricSnapshot",
    "NetworkInfo",
    "NetworkInterfaceInfo",
    "ProviderError",
]

if TelemetryProvider is not None:
    __all__.extend(["SnapshotProviderAdapter", "TelemetryProvider"])
