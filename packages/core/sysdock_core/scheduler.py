"""Category-scoped polling sessions driving history, rates, and alerts."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Protocol

from sysdock_telemetry.errors import ProviderError
from sysdock_telemetry.models import MetricSnapshot, NetworkInfo

from .alerts import AlertEngine
from .config import AppConfig
from .gpu_sim import GpuSimulator
from .history import HistoryRegistry
from .logging_setup import get_logger
from .models import Category, SessionState
from .perf_log import PerformanceLogRecorder
from .rates import RateCalculator


CATEGORY_METRICS: dict[Category, tuple[str, ...]] = {
    Category.CPU: ("cpu.usage", "cpu.frequency", "cpu.temperature"),
    Category.MEMORY: ("memory.percentage", "memory.used"),
    Category.DISKS: ("disk.percentage", "disk.used"),
    Category.GPU: ("gpu.usage", "gpu.temperature", "gpu.vram_used"),
    Category.NETWORK: (
        "network.rx_bytes_per_sec",
        "network.tx_bytes_per_sec",
        "network.rx_packets_per_sec",
        "network.tx_packets_per_sec",
    ),
}
DEGRADED_AFTER_FAILURES = 3
_MAX_EVENTS = 1000

logger = get_logger("scheduler")


class SnapshotSource(Protocol):
    async def fetch_snapshot(self) -> MetricSnapshot: ...

    async def fetch_network_info(self) -> NetworkInfo: ...

    async def check_alerts(self, cpu_threshold: float, ram_threshold: float, disk_threshold: float) -> list[str]: ...


@dataclass
class PollingSession:
    category: Category
    token: int
    interval_ms: int
    network_interval_ms: int
    state: SessionState = SessionState.IDLE
    last_snapshot: MetricSnapshot | None = None
    last_network: NetworkInfo | None = None
    snapshot_failures: int = 0
    network_failures: int = 0
    tasks: list[asyncio.Task] = field(default_factory=list, repr=False)

    @property
    def is_polling(self) -> bool:
        return self.state == SessionState.ACTIVE

    @property
    def polls_network(self) -> bool:
        return self.category == Category.NETWORK

    @property
    def consecutive_failures(self) -> int:
        return max(self.snapshot_failures, self.network_failures)


SessionListener = Callable[[PollingSession], None]


class PollingScheduler:
    """Runs one polling session at a time for the visible category.

    Every tick fetches a snapshot (alerts and ``last_snapshot`` always stay
    current) but only the active category's metrics are written to history.
    The network timer runs only while the network category is active.

    Tearing a session down cancels its timers and advances the session token;
    any fetch that resolves afterwards is dropped without touching history,
    rates, or alerts. Histories of inactive categories are left as they were.
    """

    def __init__(
        self,
        adapter: SnapshotSource,
        alerts: AlertEngine,
        history: HistoryRegistry | None = None,
        rates: RateCalculator | None = None,
        interval_ms: int = 1000,
        network_interval_ms: int = 2000,
        alert_authority: str = "local",
        gpu_simulator: GpuSimulator | None = None,
        perf_log: PerformanceLogRecorder | None = None,
        max_idle_polls: int = 0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.adapter = adapter
        self.alerts = alerts
        self.history = history or HistoryRegistry()
        self.rates = rates or RateCalculator()
        self.interval_ms = interval_ms
        self.network_interval_ms = network_interval_ms
        self.alert_authority = alert_authority
        self.gpu_simulator = gpu_simulator
        self.perf_log = perf_log
        self.max_idle_polls = max_idle_polls
        self._clock = clock

        self._token = 0
        self._session: PollingSession | None = None
        self._listeners: list[SessionListener] = []
        self._events: list[dict[str, Any]] = []
        self._handlers: dict[Category, Callable[[MetricSnapshot], None]] = {
            Category.CPU: self._record_cpu,
            Category.MEMORY: self._record_memory,
            Category.DISKS: self._record_disks,
            Category.GPU: self._record_gpu,
        }

    @classmethod
    def from_config(
        cls,
        cfg: AppConfig,
        adapter: SnapshotSource,
        alerts: AlertEngine,
        **kwargs: Any,
    ) -> "PollingScheduler":
        return cls(
            adapter,
            alerts,
            history=kwargs.pop("history", None) or HistoryRegistry(cfg.history.capacity),
            interval_ms=cfg.polling.interval_ms,
            network_interval_ms=cfg.polling.network_interval_ms,
            alert_authority=cfg.alerts.authority,
            max_idle_polls=cfg.retention.max_idle_polls,
            **kwargs,
        )

    @property
    def session(self) -> PollingSession | None:
        return self._session

    @property
    def is_polling(self) -> bool:
        return self._session is not None and self._session.is_polling

    def add_listener(self, listener: SessionListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    def recent_events(self, limit: int = 200) -> list[dict[str, Any]]:
        return self._events[-limit:]

    def _log_event(self, event: str, **fields: Any) -> None:
        row = {
            "ts_utc": datetime.now(timezone.utc).isoformat(),
            "event": event,
            "token": self._token,
        }
        row.update(fields)
        self._events.append(row)
        if len(self._events) > _MAX_EVENTS:
            self._events = self._events[-_MAX_EVENTS:]

    # Session lifecycle

    def activate(self, category: Category | str, start_timers: bool = True) -> PollingSession:
        """Tear down the current session and start polling ``category``.

        Must be called from a running event loop when ``start_timers`` is set.
        """
        category = Category.parse(category)
        loop = asyncio.get_running_loop() if start_timers else None
        self.deactivate()

        self._token += 1
        session = PollingSession(
            category=category,
            token=self._token,
            interval_ms=self.interval_ms,
            network_interval_ms=self.network_interval_ms,
        )
        session.state = SessionState.ACTIVE
        self._session = session

        if loop is not None:
            session.tasks.append(loop.create_task(self._run_timer(session, self.interval_ms, self.tick)))
            if session.polls_network:
                session.tasks.append(
                    loop.create_task(self._run_timer(session, self.network_interval_ms, self.tick_network))
                )

        self._log_event("session_start", category=category.value)
        logger.debug(
            "polling %s", category.value, extra={"event": "session_start", "category": category.value, "token": session.token}
        )
        return session

    def deactivate(self) -> None:
        session = self._session
        if session is None:
            return
        self._token += 1
        for task in session.tasks:
            task.cancel()
        session.tasks.clear()
        session.state = SessionState.CLOSED
        self._session = None
        self._log_event("session_stop", category=session.category.value)

    def is_current(self, session: PollingSession) -> bool:
        return (
            session is self._session
            and session.token == self._token
            and session.state == SessionState.ACTIVE
        )

    async def _run_timer(
        self,
        session: PollingSession,
        interval_ms: int,
        tick: Callable[[PollingSession], Awaitable[bool]],
    ) -> None:
        loop = asyncio.get_running_loop()
        interval_s = interval_ms / 1000.0
        deadline = loop.time()
        while self.is_current(session):
            try:
                await tick(session)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("tick failed", extra={"event": "tick_failed", "category": session.category.value})
            deadline += interval_s
            now = loop.time()
            while deadline <= now:
                deadline += interval_s
            await asyncio.sleep(deadline - now)

    # Ticks

    async def tick(self, session: PollingSession | None = None) -> bool:
        """Fetch one snapshot for ``session``; True when it was applied."""
        session = session or self._session
        if session is None or not self.is_current(session):
            return False

        try:
            snap = await self.adapter.fetch_snapshot()
        except ProviderError as exc:
            self._record_failure(session, "snapshot", exc)
            return False
        if not self.is_current(session):
            self._discard_stale(session, "snapshot")
            return False

        session.snapshot_failures = 0
        session.last_snapshot = snap
        handler = self._handlers.get(session.category)
        if handler is not None:
            handler(snap)
            self._sweep(session.category)
        if self.perf_log is not None:
            self.perf_log.offer(snap)

        if not await self._evaluate_alerts(session, snap):
            return False
        self._notify(session)
        return True

    async def tick_network(self, session: PollingSession | None = None) -> bool:
        session = session or self._session
        if session is None or not self.is_current(session) or not session.polls_network:
            return False

        try:
            info = await self.adapter.fetch_network_info()
        except ProviderError as exc:
            self._record_failure(session, "network", exc)
            return False
        if not self.is_current(session):
            self._discard_stale(session, "network")
            return False

        session.network_failures = 0
        session.last_network = info
        now = self._clock()
        for iface in info.interfaces:
            sample = self.rates.sample_interface(iface, now)
            values = (
                (sample.rx_bytes_per_sec, sample.tx_bytes_per_sec, sample.rx_packets_per_sec, sample.tx_packets_per_sec)
                if sample is not None
                else (0.0, 0.0, 0.0, 0.0)
            )
            for metric, value in zip(CATEGORY_METRICS[Category.NETWORK], values):
                self.history.record(metric, iface.name, value)
        for _metric, entity in self._sweep(Category.NETWORK):
            self.rates.forget_entity(entity)
        self._notify(session)
        return True

    async def _evaluate_alerts(self, session: PollingSession, snap: MetricSnapshot) -> bool:
        if self.alert_authority != "provider":
            self.alerts.observe(snap)
            return True

        thresholds = {r.metric: r.threshold for r in self.alerts.rules}
        try:
            messages = await self.adapter.check_alerts(
                thresholds.get("cpu.usage", 90.0),
                thresholds.get("memory.percentage", 90.0),
                thresholds.get("disk.percentage", 95.0),
            )
        except ProviderError as exc:
            self._record_failure(session, "snapshot", exc)
            return False
        if not self.is_current(session):
            self._discard_stale(session, "alerts")
            return False
        self.alerts.observe_messages(messages)
        return True

    # Category routing

    def _record_cpu(self, snap: MetricSnapshot) -> None:
        cpu = snap.cpu
        self.history.record("cpu.usage", "", cpu.usage_percent)
        if cpu.frequency_mhz is not None:
            self.history.record("cpu.frequency", "", cpu.frequency_mhz)
        if cpu.temperature_c is not None:
            self.history.record("cpu.temperature", "", cpu.temperature_c)

    def _record_memory(self, snap: MetricSnapshot) -> None:
        self.history.record("memory.percentage", "", snap.memory.percentage)
        self.history.record("memory.used", "", float(snap.memory.used))

    def _record_disks(self, snap: MetricSnapshot) -> None:
        for disk in snap.disks:
            self.history.record("disk.percentage", disk.key, disk.percentage)
            self.history.record("disk.used", disk.key, float(disk.used))

    def _record_gpu(self, snap: MetricSnapshot) -> None:
        gpu = snap.gpu
        usage = gpu.usage_percent
        if usage is None and self.gpu_simulator is not None:
            usage = self.gpu_simulator.next_usage()
        if usage is not None:
            self.history.record("gpu.usage", "", usage)
        if gpu.temperature_c is not None:
            self.history.record("gpu.temperature", "", gpu.temperature_c)
        if gpu.vram_used is not None:
            self.history.record("gpu.vram_used", "", float(gpu.vram_used))

    def _sweep(self, category: Category) -> list[tuple[str, str]]:
        stale = self.history.sweep(self.max_idle_polls, CATEGORY_METRICS[category])
        if stale:
            self._log_event("history_swept", keys=len(stale))
        return stale

    # Outcomes

    def _record_failure(self, session: PollingSession, timer: str, exc: Exception) -> None:
        """Count a failed provider call against the ``snapshot`` or ``network`` timer."""
        if not self.is_current(session):
            self._discard_stale(session, "failure")
            return
        if timer == "network":
            session.network_failures += 1
            failures = session.network_failures
        else:
            session.snapshot_failures += 1
            failures = session.snapshot_failures
        self._log_event("tick_skipped", timer=timer, error=str(exc), failures=failures)
        logger.debug("%s provider call failed: %s", timer, exc, extra={"event": "tick_skipped"})
        if failures == DEGRADED_AFTER_FAILURES:
            logger.warning(
                "%s provider failed %d times in a row",
                timer,
                failures,
                extra={"event": "provider_degraded", "failures": failures},
            )

    def _discard_stale(self, session: PollingSession, what: str) -> None:
        self._log_event("stale_session_write", what=what, session_token=session.token)
        logger.debug(
            "dropping %s result for closed session", what, extra={"event": "stale_session_write", "token": session.token}
        )

    def _notify(self, session: PollingSession) -> None:
        for listener in list(self._listeners):
            listener(session)
