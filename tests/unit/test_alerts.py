import sys
import unittest
from datetime import datetime, timezone
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(ROOT / "packages" / "telemetry"))
sys.path.insert(0, str(ROOT / "packages" / "core"))

from sysdock_core.alerts import AlertEngine, AlertRule, build_rules, evaluate
from sysdock_core.notifications import NotificationCenter, Severity
from sysdock_telemetry.models import CpuMetrics, DiskMetrics, GpuMetrics, MemoryMetrics, MetricSnapshot


def _snapshot(cpu: float = 10.0, mem: float = 20.0, disks: tuple[float, ...] = (30.0,)) -> MetricSnapshot:
    return MetricSnapshot(
        cpu=CpuMetrics(usage_percent=cpu),
        memory=MemoryMetrics(total=100, used=int(mem), available=100 - int(mem), percentage=mem),
        disks=tuple(
            DiskMetrics(name=f"disk{i}", mount_point=f"/mnt/{i}", total=100, used=int(p), available=100 - int(p), percentage=p)
            for i, p in enumerate(disks)
        ),
        gpu=GpuMetrics(),
        timestamp=datetime(2026, 1, 1, tzinfo=timezone.utc),
    )


class EvaluateTests(unittest.TestCase):
    def test_cpu_takes_priority(self):
        alert = evaluate(_snapshot(cpu=95, mem=95, disks=(99,)), build_rules())
        self.assertIsNotNone(alert)
        self.assertEqual(alert.message, "High CPU usage!")
        self.assertEqual(alert.severity, Severity.WARNING)

    def test_memory_before_disk(self):
        alert = evaluate(_snapshot(mem=91, disks=(99,)), build_rules())
        self.assertEqual(alert.message, "Memory critically low!")
        self.assertEqual(alert.severity, Severity.CRITICAL)

    def test_any_disk_matches(self):
        alert = evaluate(_snapshot(disks=(10.0, 96.5, 97.0)), build_rules())
        self.assertEqual(alert.message, "Disk space critically low!")
        self.assertEqual(alert.value, 97.0)

    def test_threshold_is_strict(self):
        self.assertIsNone(evaluate(_snapshot(cpu=90, mem=90, disks=(95,)), build_rules()))

    def test_custom_thresholds(self):
        alert = evaluate(_snapshot(cpu=60), build_rules(cpu_threshold=50))
        self.assertEqual(alert.threshold, 50)

    def test_bad_comparator(self):
        with self.assertRaises(ValueError):
            AlertRule("cpu.usage", "!=", 1.0, "x", Severity.INFO)


class AlertEngineTests(unittest.TestCase):
    def test_alert_clears_when_below_threshold(self):
        engine = AlertEngine()
        engine.observe(_snapshot(cpu=99))
        self.assertEqual(engine.active.message, "High CPU usage!")
        self.assertIsNone(engine.observe(_snapshot(cpu=10)))
        self.assertIsNone(engine.active)

    def test_oscillation_without_hysteresis(self):
        engine = AlertEngine()
        states = [engine.observe(_snapshot(cpu=v)) is not None for v in (91, 89, 91, 89)]
        self.assertEqual(states, [True, False, True, False])

    def test_hysteresis_holds_inside_band(self):
        engine = AlertEngine(hysteresis=5.0)
        engine.observe(_snapshot(cpu=91))
        self.assertIsNotNone(engine.observe(_snapshot(cpu=87)))
        self.assertIsNone(engine.observe(_snapshot(cpu=84)))

    def test_higher_priority_alert_replaces_held_one(self):
        engine = AlertEngine(hysteresis=5.0)
        engine.observe(_snapshot(mem=92))
        alert = engine.observe(_snapshot(cpu=95, mem=88))
        self.assertEqual(alert.message, "High CPU usage!")

    def test_listeners_fire_on_change_only(self):
        engine = AlertEngine()
        seen = []
        unsubscribe = engine.subscribe(seen.append)
        engine.observe(_snapshot(cpu=99))
        engine.observe(_snapshot(cpu=98))
        engine.observe(_snapshot(cpu=1))
        self.assertEqual([a.message if a else None for a in seen], ["High CPU usage!", None])
        unsubscribe()
        engine.observe(_snapshot(cpu=99))
        self.assertEqual(len(seen), 2)

    def test_new_alerts_feed_notifications(self):
        center = NotificationCenter()
        engine = AlertEngine(notifications=center)
        engine.observe(_snapshot(cpu=99))
        engine.observe(_snapshot(cpu=99))
        engine.observe(_snapshot(mem=95))
        self.assertEqual([e.message for e in center.entries()], ["Memory critically low!", "High CPU usage!"])

    def test_dismissed_notification_returns_when_alert_recurs(self):
        center = NotificationCenter()
        engine = AlertEngine(notifications=center)
        engine.observe(_snapshot(cpu=99))
        center.dismiss(center.entries()[0].id)
        engine.observe(_snapshot(cpu=99))
        self.assertEqual(len(center), 0)
        engine.observe(_snapshot(cpu=10))
        engine.observe(_snapshot(cpu=99))
        self.assertEqual([e.message for e in center.entries()], ["High CPU usage!"])

    def test_provider_messages(self):
        engine = AlertEngine()
        alert = engine.observe_messages(["Disk space critically low!", "High CPU usage!"])
        self.assertEqual(alert.message, "Disk space critically low!")
        self.assertEqual(alert.metric, "disk.percentage")
        self.assertIsNone(alert.value)
        self.assertIsNone(engine.observe_messages([]))

    def test_raised_at_kept_while_alert_persists(self):
        times = iter(datetime(2026, 1, 1, 0, 0, s, tzinfo=timezone.utc) for s in range(1, 10))
        engine = AlertEngine(clock=lambda: next(times))
        first = engine.observe(_snapshot(cpu=99))
        second = engine.observe(_snapshot(cpu=97))
        self.assertEqual(second.raised_at, first.raised_at)
        self.assertEqual(second.value, 97.0)

        engine.observe(_snapshot(cpu=10))
        third = engine.observe(_snapshot(cpu=99))
        self.assertGreater(third.raised_at, first.raised_at)

    def test_provider_messages_keep_raised_at(self):
        times = iter(datetime(2026, 1, 1, 0, 0, s, tzinfo=timezone.utc) for s in range(1, 10))
        engine = AlertEngine(clock=lambda: next(times))
        first = engine.observe_messages(["High CPU usage!"])
        again = engine.observe_messages(["High CPU usage!", "Memory critically low!"])
        self.assertEqual(again.raised_at, first.raised_at)

    def test_close_drops_listeners(self):
        engine = AlertEngine()
        seen = []
        engine.subscribe(seen.append)
        engine.close()
        engine.observe(_snapshot(cpu=99))
        self.assertEqual(seen, [])


if __name__ == "__main__":
    unittest.main()
