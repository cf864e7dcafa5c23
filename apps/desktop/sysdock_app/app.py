"""Dashboard runtime: wires the telemetry engine to a polling view's lifecycle."""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import Callable

from sysdock_core import (
    AlertEngine,
    AppConfig,
    Category,
    GpuSimulator,
    NotificationCenter,
    NotificationEntry,
    PerformanceLogRecorder,
    PollingScheduler,
    PollingSession,
    StateStore,
    ViewStateSynchronizer,
    build_rules,
    load_config,
)
from sysdock_core.alerts import ActiveAlert
from sysdock_core.logging_setup import get_logger, install_crash_hooks
from sysdock_telemetry import SnapshotProviderAdapter


_GB = 1024**3


class DashboardRuntime:
    """Owns the engine objects for one dashboard window.

    ``mount``/``unmount`` mirror the performance view appearing and going
    away; everything created here is torn down in ``shutdown``.
    """

    def __init__(
        self,
        config: AppConfig | None = None,
        store: StateStore | None = None,
        adapter: SnapshotProviderAdapter | None = None,
    ) -> None:
        self.config = config or load_config()
        self.logger = get_logger()
        self.store = store if store is not None else StateStore.default()
        self.view_state = ViewStateSynchronizer(self.store)

        alerts_cfg = self.config.alerts
        self.notifications = NotificationCenter(limit=alerts_cfg.notification_limit)
        self.alerts = AlertEngine(
            build_rules(alerts_cfg.cpu_threshold, alerts_cfg.memory_threshold, alerts_cfg.disk_threshold),
            self.notifications,
            hysteresis=alerts_cfg.hysteresis_percent,
        )
        self.gpu_sim = GpuSimulator(self.store) if self.config.gpu.simulate_when_unavailable else None
        self.perf_log = PerformanceLogRecorder(self.config.perf_log.interval_s, self.config.perf_log.max_entries)
        self.adapter = adapter or SnapshotProviderAdapter()
        self.scheduler = PollingScheduler.from_config(
            self.config,
            self.adapter,
            self.alerts,
            gpu_simulator=self.gpu_sim,
            perf_log=self.perf_log,
        )
        self._unsubscribe_alerts = self.alerts.subscribe(self._on_alert)

    @property
    def mounted(self) -> bool:
        return self.scheduler.is_polling

    def mount(self, requested: Category | str | None = None, start_timers: bool = True) -> PollingSession:
        category = self.view_state.enter(requested)
        if self.store.logs_auto_start and not self.perf_log.is_active:
            self.perf_log.start()
        return self.scheduler.activate(category, start_timers=start_timers)

    def select_category(self, category: Category | str, start_timers: bool = True) -> PollingSession:
        """Manual tab switch: persisted as the new default."""
        selected = self.view_state.select(category)
        return self.scheduler.activate(selected, start_timers=start_timers)

    def navigate_to(self, category: Category | str, start_timers: bool = True) -> PollingSession:
        """One-off jump (e.g. from an alert); the stored default is untouched."""
        return self.mount(category, start_timers=start_timers)

    def unmount(self) -> None:
        self.scheduler.deactivate()
        self.view_state.leave()
        if self.gpu_sim is not None:
            self.gpu_sim.flush()

    def open_notifications(self) -> list[NotificationEntry]:
        self.notifications.mark_all_read()
        return self.notifications.entries()

    def shutdown(self) -> None:
        self.unmount()
        self.perf_log.stop()
        self.alerts.reset()
        self._unsubscribe_alerts()
        self.alerts.close()
        self.store.save()

    def _on_alert(self, alert: ActiveAlert | None) -> None:
        if alert is not None:
            self.logger.warning(alert.message, extra={"event": "alert_active"})

    def status_line(self, session: PollingSession) -> str:
        snap = session.last_snapshot
        if snap is None:
            return f"[{session.category.value}] waiting for data"

        parts = [
            f"[{session.category.value}]",
            f"CPU {snap.cpu.usage_percent:05.1f}%  {self._fmt_temp(snap.cpu.temperature_c)}",
            f"RAM {snap.memory.used / _GB:04.1f}/{snap.memory.total / _GB:04.1f} GB",
            f"GPU {self._fmt_percent(snap.gpu.usage_percent)}",
        ]
        if session.category == Category.NETWORK:
            rx = sum(v[-1] for v in self.scheduler.history.series("network.rx_bytes_per_sec").values())
            tx = sum(v[-1] for v in self.scheduler.history.series("network.tx_bytes_per_sec").values())
            parts.append(f"NET Down {rx / 1024:07.1f} Up {tx / 1024:07.1f} KB/s")
        active = self.alerts.active
        if active is not None:
            parts.append(f"! {active.message}")
        unread = self.notifications.unread_count
        if unread:
            parts.append(f"({unread} unread)")
        return "  ".join(parts)

    @staticmethod
    def _fmt_temp(value: float | None) -> str:
        return "N/A" if value is None else f"{value:04.1f} C"

    @staticmethod
    def _fmt_percent(value: float | None) -> str:
        return "N/A" if value is None else f"{value:05.1f}%"


async def _run(
    runtime: DashboardRuntime,
    category: str | None,
    seconds: float | None,
    emit: Callable[[str], None],
) -> None:
    def _on_update(session: PollingSession) -> None:
        emit(runtime.status_line(session))

    remove = runtime.scheduler.add_listener(_on_update)
    try:
        runtime.mount(category)
        if seconds is None:
            await asyncio.Event().wait()
        else:
            await asyncio.sleep(seconds)
    finally:
        remove()
        runtime.unmount()


def run_headless(
    category: str | None = None,
    seconds: float | None = None,
    record_perf: bool = False,
    export_perf: Path | None = None,
) -> int:
    """Poll until ``seconds`` elapse or Ctrl+C; logging is set up by the CLI."""
    config = load_config()
    install_crash_hooks()
    logger = get_logger()

    runtime = DashboardRuntime(config=config)
    if record_perf:
        runtime.perf_log.start()

    def _emit(line: str) -> None:
        sys.stdout.write(line + "\n")
        sys.stdout.flush()

    try:
        asyncio.run(_run(runtime, category, seconds, _emit))
    except KeyboardInterrupt:
        pass
    finally:
        if export_perf is not None:
            if export_perf.suffix.lower() == ".json":
                runtime.perf_log.export_json(export_perf)
            else:
                runtime.perf_log.export_csv(export_perf)
            logger.info("performance log exported to %s", export_perf, extra={"event": "perf_log_exported"})
        runtime.shutdown()
    logger.info("runtime shutdown", extra={"event": "shutdown"})
    return 0
