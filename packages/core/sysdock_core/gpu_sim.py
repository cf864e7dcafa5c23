"""Cosmetic GPU usage used when no real reading is available."""

from __future__ import annotations

import math

from .view_state import GPU_SIM_TICK_SLOT, StateStore


def simulated_gpu_usage(tick: int, gpu_index: int = 0) -> int:
    if gpu_index == 0:
        base, amplitude, phase = 60, 40, tick / 8
    else:
        base, amplitude, phase = 30, 20, tick / 10 + 2
    # Half-up rounding, not round()'s half-to-even.
    return int(math.floor(base + amplitude * math.sin(phase) + 0.5))


class GpuSimulator:
    def __init__(self, store: StateStore | None = None) -> None:
        self.store = store
        self.tick = int(store.get(GPU_SIM_TICK_SLOT, 0) or 0) if store is not None else 0

    def next_usage(self, gpu_index: int = 0) -> float:
        self.tick += 1
        return float(simulated_gpu_usage(self.tick, gpu_index))

    def flush(self) -> None:
        if self.store is not None:
            self.store.set(GPU_SIM_TICK_SLOT, self.tick)
