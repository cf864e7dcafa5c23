"""Persistent app settings schema and load/save helpers."""

from __future__ import annotations

import json
import os
import platform
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any


CONFIG_VERSION = 2
ALERT_AUTHORITIES = ("local", "provider")


@dataclass
class PollingConfig:
    interval_ms: int = 1000
    network_interval_ms: int = 2000


@dataclass
class HistoryConfig:
    capacity: int = 60


@dataclass
class AlertsConfig:
    cpu_threshold: float = 90.0
    memory_threshold: float = 90.0
    disk_threshold: float = 95.0
    hysteresis_percent: float = 0.0
    authority: str = "local"
    notification_limit: int = 10


@dataclass
class RetentionConfig:
    max_idle_polls: int = 0


@dataclass
class GpuConfig:
    simulate_when_unavailable: bool = True


@dataclass
class PerfLogConfig:
    interval_s: float = 5.0
    max_entries: int = 1000


@dataclass
class DiagnosticsConfig:
    keep_log_files: int = 7


@dataclass
class AppConfig:
    config_version: int = CONFIG_VERSION
    polling: PollingConfig = field(default_factory=PollingConfig)
    history: HistoryConfig = field(default_factory=HistoryConfig)
    alerts: AlertsConfig = field(default_factory=AlertsConfig)
    retention: RetentionConfig = field(default_factory=RetentionConfig)
    gpu: GpuConfig = field(default_factory=GpuConfig)
    perf_log: PerfLogConfig = field(default_factory=PerfLogConfig)
    diagnostics: DiagnosticsConfig = field(default_factory=DiagnosticsConfig)


def config_root() -> Path:
    system = platform.system()
    if system == "Windows":
        base = Path(os.environ.get("APPDATA", Path.home() / "AppData" / "Roaming"))
        return base / "SysDock"
    if system == "Darwin":
        return Path.home() / "Library" / "Application Support" / "SysDock"
    return Path.home() / ".config" / "sysdock"


def config_path() -> Path:
    return config_root() / "config.json"


def _merge(dataclass_type, raw: dict[str, Any]):
    defaults = dataclass_type()  # type: ignore[misc]
    for k, v in (raw or {}).items():
        if hasattr(defaults, k):
            setattr(defaults, k, v)
    return defaults


def _clamp(value: Any, low: float, high: float, fallback: float) -> float:
    try:
        v = float(value)
    except (TypeError, ValueError):
        return fallback
    return max(low, min(high, v))


def _normalize_polling(cfg: AppConfig) -> None:
    cfg.polling.interval_ms = int(_clamp(cfg.polling.interval_ms, 1000, 2000, 1000))
    cfg.polling.network_interval_ms = int(_clamp(cfg.polling.network_interval_ms, 1000, 5000, 2000))


def _normalize_alerts(cfg: AppConfig) -> None:
    a = cfg.alerts
    a.cpu_threshold = _clamp(a.cpu_threshold, 1.0, 100.0, 90.0)
    a.memory_threshold = _clamp(a.memory_threshold, 1.0, 100.0, 90.0)
    a.disk_threshold = _clamp(a.disk_threshold, 1.0, 100.0, 95.0)
    a.hysteresis_percent = _clamp(a.hysteresis_percent, 0.0, 50.0, 0.0)
    a.notification_limit = int(_clamp(a.notification_limit, 1, 100, 10))
    if a.authority not in ALERT_AUTHORITIES:
        a.authority = "local"


def _normalize_misc(cfg: AppConfig) -> None:
    cfg.history.capacity = int(_clamp(cfg.history.capacity, 2, 3600, 60))
    cfg.retention.max_idle_polls = int(_clamp(cfg.retention.max_idle_polls, 0, 1_000_000, 0))
    cfg.gpu.simulate_when_unavailable = bool(cfg.gpu.simulate_when_unavailable)
    cfg.perf_log.interval_s = _clamp(cfg.perf_log.interval_s, 1.0, 3600.0, 5.0)
    cfg.perf_log.max_entries = int(_clamp(cfg.perf_log.max_entries, 1, 100_000, 1000))
    cfg.diagnostics.keep_log_files = int(_clamp(cfg.diagnostics.keep_log_files, 2, 90, 7))


def _migrate(raw: dict[str, Any]) -> dict[str, Any]:
    version = int(raw.get("config_version", 1))
    data = dict(raw)

    if version < 2:
        # v2 splits alert thresholds out of "monitoring" and adds retention/perf_log.
        monitoring = dict(data.pop("monitoring", {}) or {})
        alerts = dict(data.get("alerts", {}) or {})
        for key in ("cpu_threshold", "memory_threshold", "disk_threshold"):
            if key in monitoring:
                alerts.setdefault(key, monitoring[key])
        if "update_interval_s" in monitoring:
            polling = dict(data.get("polling", {}) or {})
            polling.setdefault("interval_ms", int(float(monitoring["update_interval_s"]) * 1000))
            data["polling"] = polling
        data["alerts"] = alerts
        data.setdefault("retention", {})
        data.setdefault("perf_log", {})
        data["config_version"] = 2

    return data


def load_config(path: Path | None = None) -> AppConfig:
    path = path or config_path()
    if not path.exists():
        return AppConfig()

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except Exception:
        return AppConfig()
    if not isinstance(raw, dict):
        return AppConfig()

    data = _migrate(raw)
    cfg = AppConfig(
        config_version=int(data.get("config_version", CONFIG_VERSION)),
        polling=_merge(PollingConfig, data.get("polling", {})),
        history=_merge(HistoryConfig, data.get("history", {})),
        alerts=_merge(AlertsConfig, data.get("alerts", {})),
        retention=_merge(RetentionConfig, data.get("retention", {})),
        gpu=_merge(GpuConfig, data.get("gpu", {})),
        perf_log=_merge(PerfLogConfig, data.get("perf_log", {})),
        diagnostics=_merge(DiagnosticsConfig, data.get("diagnostics", {})),
    )

    _normalize_polling(cfg)
    _normalize_alerts(cfg)
    _normalize_misc(cfg)
    return cfg


def save_config(cfg: AppConfig, path: Path | None = None) -> Path:
    cfg.config_version = CONFIG_VERSION
    path = path or config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(asdict(cfg), indent=2, sort_keys=True), encoding="utf-8")
    return path
