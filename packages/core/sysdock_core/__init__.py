"""Core telemetry engine: polling, rolling history, rates, alerts, and view state."""

from .alerts import ActiveAlert, AlertEngine, AlertRule, build_rules, evaluate
from .config import AppConfig, load_config, save_config
from .gpu_sim import GpuSimulator, simulated_gpu_usage
from .history import HistoryBuffer, HistoryRegistry
from .models import DEFAULT_CATEGORY, Category, SessionState
from .notifications import NotificationCenter, NotificationEntry, Severity, severity_for_message
from .perf_log import PerformanceLogEntry, PerformanceLogRecorder
from .rates import RateCalculator, RateSample
from .scheduler import CATEGORY_METRICS, PollingScheduler, PollingSession
from .view_state import StateStore, ViewStateSynchronizer

__all__ = [
    "ActiveAlert",
    "AlertEngine",
    "AlertRule",
    "AppConfig",
    "CATEGORY_METRICS",
    "Category",
    "DEFAULT_CATEGORY",
    "GpuSimulator",
    "HistoryBuffer",
    "HistoryRegistry",
    "NotificationCenter",
    "NotificationEntry",
    "PerformanceLogEntry",
    "PerformanceLogRecorder",
    "PollingScheduler",
    "PollingSession",
    "RateCalculator",
    "RateSample",
    "SessionState",
    "Severity",
    "StateStore",
    "ViewStateSynchronizer",
    "build_rules",
    "evaluate",
    "load_config",
    "save_config",
    "severity_for_message",
    "simulated_gpu_usage",
]
