"""Fixed-capacity rolling windows of samples for charting."""

from __future__ import annotations

from collections import deque
from typing import Deque, Iterable, Iterator


DEFAULT_CAPACITY = 60


class HistoryBuffer:
    """FIFO that always holds exactly ``capacity`` values."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self._values: Deque[float] = deque([0.0] * capacity, maxlen=capacity)

    def push(self, value: float) -> tuple[float, ...]:
        self._values.append(float(value))
        return self.values()

    def seed(self, value: float) -> tuple[float, ...]:
        self._values = deque([float(value)] * self.capacity, maxlen=self.capacity)
        return self.values()

    def clear(self) -> None:
        self.seed(0.0)

    def values(self) -> tuple[float, ...]:
        return tuple(self._values)

    @property
    def latest(self) -> float:
        return self._values[-1]

    def __len__(self) -> int:
        return len(self._values)

    def __iter__(self) -> Iterator[float]:
        return iter(tuple(self._values))


HistoryKey = tuple[str, str]


class HistoryRegistry:
    """One buffer per (metric, entity) pair.

    Entities that vanish from a snapshot keep their buffer so a reappearing
    disk or interface resumes where it left off. ``sweep`` drops keys of the
    given metrics that went unrecorded for more than ``max_idle_polls``
    consecutive sweeps; metrics that are not swept never age.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        self.capacity = capacity
        self._buffers: dict[HistoryKey, HistoryBuffer] = {}
        self._idle: dict[HistoryKey, int] = {}
        self._touched: set[HistoryKey] = set()

    def record(self, metric: str, entity: str, value: float) -> tuple[float, ...]:
        key = (metric, entity)
        self._touched.add(key)
        buf = self._buffers.get(key)
        if buf is None:
            buf = HistoryBuffer(self.capacity)
            self._buffers[key] = buf
            self._idle[key] = 0
            return buf.seed(value)
        return buf.push(value)

    def get(self, metric: str, entity: str = "") -> HistoryBuffer | None:
        return self._buffers.get((metric, entity))

    def values(self, metric: str, entity: str = "") -> tuple[float, ...]:
        buf = self.get(metric, entity)
        return buf.values() if buf is not None else tuple([0.0] * self.capacity)

    def series(self, metric: str) -> dict[str, tuple[float, ...]]:
        return {entity: buf.values() for (m, entity), buf in self._buffers.items() if m == metric}

    def keys(self) -> list[HistoryKey]:
        return list(self._buffers)

    def sweep(self, max_idle_polls: int, metrics: Iterable[str]) -> list[HistoryKey]:
        scope = set(metrics)
        stale: list[HistoryKey] = []
        for key in [k for k in self._buffers if k[0] in scope]:
            if key in self._touched:
                self._idle[key] = 0
                self._touched.discard(key)
                continue
            self._idle[key] = self._idle.get(key, 0) + 1
            if max_idle_polls > 0 and self._idle[key] > max_idle_polls:
                stale.append(key)
        for key in stale:
            self._buffers.pop(key, None)
            self._idle.pop(key, None)
        return stale

    def __len__(self) -> int:
        return len(self._buffers)
