"""Throttled performance log recorded from polled snapshots, with CSV/JSON export."""

from __future__ import annotations

import csv
import json
from collections import deque
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Deque

from sysdock_telemetry.models import MetricSnapshot

from .logging_setup import get_logger


CSV_HEADER = (
    "Timestamp",
    "CPU Usage (%)",
    "Memory Usage (GB)",
    "Memory Total (GB)",
    "Disk Usage (GB)",
    "Disk Total (GB)",
)
_GB = 1024**3

logger = get_logger("perf_log")


@dataclass(frozen=True)
class PerformanceLogEntry:
    timestamp: str
    cpu_usage: float
    memory_usage: int
    memory_total: int
    disk_usage: int
    disk_total: int

    @classmethod
    def from_snapshot(cls, snap: MetricSnapshot) -> "PerformanceLogEntry":
        return cls(
            timestamp=snap.timestamp.isoformat(),
            cpu_usage=snap.cpu.usage_percent,
            memory_usage=snap.memory.used,
            memory_total=snap.memory.total,
            disk_usage=sum(d.used for d in snap.disks),
            disk_total=sum(d.total for d in snap.disks),
        )


class PerformanceLogRecorder:
    def __init__(self, interval_s: float = 5.0, max_entries: int = 1000) -> None:
        self.interval_s = interval_s
        self._entries: Deque[PerformanceLogEntry] = deque(maxlen=max(1, max_entries))
        self._active = False
        self._last_recorded: float | None = None

    @property
    def is_active(self) -> bool:
        return self._active

    def start(self, interval_s: float | None = None) -> None:
        if interval_s is not None:
            self.interval_s = max(1.0, float(interval_s))
        self._active = True
        self._last_recorded = None
        logger.info("performance logging started", extra={"event": "perf_log_started"})

    def stop(self) -> None:
        if self._active:
            logger.info("performance logging stopped", extra={"event": "perf_log_stopped"})
        self._active = False

    def offer(self, snap: MetricSnapshot) -> PerformanceLogEntry | None:
        """Record ``snap`` if logging is on and the interval has elapsed."""
        if not self._active:
            return None
        ts = snap.timestamp.timestamp()
        if self._last_recorded is not None and ts - self._last_recorded < self.interval_s:
            return None
        entry = PerformanceLogEntry.from_snapshot(snap)
        self._entries.append(entry)
        self._last_recorded = ts
        return entry

    def entries(self) -> list[PerformanceLogEntry]:
        return list(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def export_csv(self, path: Path) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8", newline="") as fh:
            writer = csv.writer(fh, lineterminator="\n")
            writer.writerow(CSV_HEADER)
            for e in self._entries:
                writer.writerow(
                    [
                        e.timestamp,
                        f"{e.cpu_usage:.2f}",
                        f"{e.memory_usage / _GB:.2f}",
                        f"{e.memory_total / _GB:.2f}",
                        f"{e.disk_usage / _GB:.2f}",
                        f"{e.disk_total / _GB:.2f}",
                    ]
                )
        return path

    def export_json(self, path: Path) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps([asdict(e) for e in self._entries], indent=2), encoding="utf-8")
        return path
