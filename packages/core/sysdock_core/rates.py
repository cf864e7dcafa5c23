"""Per-second rates derived from cumulative counters."""

from __future__ import annotations

from dataclasses import dataclass

from sysdock_telemetry.models import NetworkInterfaceInfo

from .logging_setup import get_logger


MIN_ELAPSED_S = 0.5

logger = get_logger("rates")


@dataclass(frozen=True)
class RateSample:
    interface_key: str
    rx_bytes_per_sec: float
    tx_bytes_per_sec: float
    rx_packets_per_sec: float
    tx_packets_per_sec: float
    sampled_at: float


@dataclass
class _Baseline:
    value: float
    timestamp: float


class RateCalculator:
    """Differences successive counter readings per key.

    The first reading for a key yields 0.0. A counter that goes backwards
    (reset, interface replaced) yields 0.0 for that tick and the new reading
    becomes the baseline.
    """

    def __init__(self) -> None:
        self._baselines: dict[str, _Baseline] = {}

    def update(self, key: str, value: float, now: float) -> float:
        prev = self._baselines.get(key)
        self._baselines[key] = _Baseline(value=float(value), timestamp=float(now))
        if prev is None:
            return 0.0

        dt = max(MIN_ELAPSED_S, now - prev.timestamp)
        delta = float(value) - prev.value
        if delta < 0:
            logger.debug(
                "counter went backwards for %s (%s -> %s)",
                key,
                prev.value,
                value,
                extra={"event": "counter_anomaly"},
            )
            return 0.0
        return delta / dt

    def sample_interface(self, iface: NetworkInterfaceInfo, now: float) -> RateSample | None:
        """Update all counters of one interface; None on its first observation."""
        seen = self.has(f"{iface.name}:rx_bytes")
        rx = self.update(f"{iface.name}:rx_bytes", iface.bytes_received, now)
        tx = self.update(f"{iface.name}:tx_bytes", iface.bytes_transmitted, now)
        rx_p = self.update(f"{iface.name}:rx_packets", iface.packets_received, now)
        tx_p = self.update(f"{iface.name}:tx_packets", iface.packets_transmitted, now)
        if not seen:
            return None
        return RateSample(
            interface_key=iface.name,
            rx_bytes_per_sec=rx,
            tx_bytes_per_sec=tx,
            rx_packets_per_sec=rx_p,
            tx_packets_per_sec=tx_p,
            sampled_at=now,
        )

    def has(self, key: str) -> bool:
        return key in self._baselines

    def baseline(self, key: str) -> float | None:
        entry = self._baselines.get(key)
        return None if entry is None else entry.value

    def keys(self) -> list[str]:
        return list(self._baselines)

    def forget(self, key: str) -> None:
        self._baselines.pop(key, None)

    def forget_entity(self, entity: str) -> None:
        prefix = f"{entity}:"
        for key in [k for k in self._baselines if k.startswith(prefix)]:
            del self._baselines[key]
