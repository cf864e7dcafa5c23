import sys
import unittest
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(ROOT / "packages" / "telemetry"))
sys.path.insert(0, str(ROOT / "packages" / "core"))

from sysdock_core.history import HistoryBuffer, HistoryRegistry


class HistoryBufferTests(unittest.TestCase):
    def test_fixed_length_and_order(self):
        buf = HistoryBuffer(60)
        pushed = []
        for i in range(150):
            pushed.append(float(i))
            out = buf.push(i)
            self.assertEqual(len(out), 60)
            self.assertEqual(len(buf), 60)
        self.assertEqual(buf.values(), tuple(pushed[-60:]))
        self.assertEqual(buf.latest, 149.0)

    def test_short_sequence_keeps_tail_in_order(self):
        buf = HistoryBuffer(5)
        buf.push(1)
        buf.push(2)
        self.assertEqual(buf.values(), (0.0, 0.0, 0.0, 1.0, 2.0))

    def test_seed_and_clear(self):
        buf = HistoryBuffer(4)
        self.assertEqual(buf.seed(42), (42.0,) * 4)
        buf.push(7)
        self.assertEqual(buf.values(), (42.0, 42.0, 42.0, 7.0))
        buf.clear()
        self.assertEqual(buf.values(), (0.0,) * 4)

    def test_rejects_zero_capacity(self):
        with self.assertRaises(ValueError):
            HistoryBuffer(0)


class HistoryRegistryTests(unittest.TestCase):
    def test_first_record_seeds_entity(self):
        reg = HistoryRegistry(capacity=3)
        self.assertEqual(reg.record("disk.percentage", "/dev/sda1/", 55.0), (55.0, 55.0, 55.0))
        self.assertEqual(reg.record("disk.percentage", "/dev/sda1/", 56.0), (55.0, 55.0, 56.0))

    def test_entities_are_separate(self):
        reg = HistoryRegistry(capacity=3)
        reg.record("network.rx_bytes_per_sec", "eth0", 1.0)
        reg.record("network.rx_bytes_per_sec", "wlan0", 9.0)
        series = reg.series("network.rx_bytes_per_sec")
        self.assertEqual(set(series), {"eth0", "wlan0"})
        self.assertEqual(series["wlan0"], (9.0, 9.0, 9.0))

    def test_missing_buffer_reads_as_zeros(self):
        reg = HistoryRegistry(capacity=3)
        self.assertIsNone(reg.get("cpu.usage"))
        self.assertEqual(reg.values("cpu.usage"), (0.0, 0.0, 0.0))

    def test_vanished_entity_keeps_buffer_without_sweep_limit(self):
        reg = HistoryRegistry(capacity=3)
        reg.record("disk.percentage", "a", 1.0)
        for _ in range(10):
            reg.record("disk.percentage", "b", 2.0)
            self.assertEqual(reg.sweep(0, ["disk.percentage"]), [])
        self.assertIsNotNone(reg.get("disk.percentage", "a"))

    def test_sweep_drops_idle_keys_in_scope_only(self):
        reg = HistoryRegistry(capacity=3)
        reg.record("disk.percentage", "gone", 1.0)
        reg.record("cpu.usage", "", 5.0)
        # First sweep consumes the record; idle count then climbs 1, 2, 3.
        reg.sweep(2, ["disk.percentage"])
        reg.sweep(2, ["disk.percentage"])
        reg.sweep(2, ["disk.percentage"])
        self.assertIsNotNone(reg.get("disk.percentage", "gone"))
        stale = reg.sweep(2, ["disk.percentage"])
        self.assertEqual(stale, [("disk.percentage", "gone")])
        self.assertIsNone(reg.get("disk.percentage", "gone"))
        self.assertIsNotNone(reg.get("cpu.usage"))


if __name__ == "__main__":
    unittest.main()
