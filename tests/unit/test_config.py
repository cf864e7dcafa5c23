import json
import sys
import tempfile
import unittest
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(ROOT / "packages" / "core"))

from sysdock_core.config import CONFIG_VERSION, AppConfig, load_config, save_config


class ConfigTests(unittest.TestCase):
    def test_load_default_when_missing(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "missing.json"
            cfg = load_config(path)
            self.assertIsInstance(cfg, AppConfig)
            self.assertEqual(cfg.polling.interval_ms, 1000)
            self.assertEqual(cfg.polling.network_interval_ms, 2000)
            self.assertEqual(cfg.history.capacity, 60)
            self.assertEqual(cfg.alerts.authority, "local")
            self.assertEqual(cfg.retention.max_idle_polls, 0)

    def test_save_and_reload(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "config.json"
            cfg = load_config(path)
            cfg.alerts.cpu_threshold = 75.0
            cfg.alerts.authority = "provider"
            cfg.history.capacity = 120
            save_config(cfg, path)
            reloaded = load_config(path)
            self.assertEqual(reloaded.alerts.cpu_threshold, 75.0)
            self.assertEqual(reloaded.alerts.authority, "provider")
            self.assertEqual(reloaded.history.capacity, 120)
            self.assertEqual(reloaded.config_version, CONFIG_VERSION)

    def test_out_of_range_values_are_clamped(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "config.json"
            raw = {
                "config_version": CONFIG_VERSION,
                "polling": {"interval_ms": 50, "network_interval_ms": 99999},
                "alerts": {"cpu_threshold": 250, "memory_threshold": "nope", "authority": "both"},
                "history": {"capacity": 0},
            }
            path.write_text(json.dumps(raw), encoding="utf-8")
            cfg = load_config(path)
            self.assertEqual(cfg.polling.interval_ms, 1000)
            self.assertEqual(cfg.polling.network_interval_ms, 5000)
            self.assertEqual(cfg.alerts.cpu_threshold, 100.0)
            self.assertEqual(cfg.alerts.memory_threshold, 90.0)
            self.assertEqual(cfg.alerts.authority, "local")
            self.assertEqual(cfg.history.capacity, 2)

    def test_invalid_json_falls_back_to_defaults(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "config.json"
            path.write_text("[1, 2", encoding="utf-8")
            self.assertEqual(load_config(path), AppConfig())

    def test_migrate_v1_shape(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "config.json"
            old = {
                "monitoring": {"cpu_threshold": 80, "disk_threshold": 97, "update_interval_s": 1.5},
                "history": {"capacity": 30},
            }
            path.write_text(json.dumps(old), encoding="utf-8")
            cfg = load_config(path)
            self.assertEqual(cfg.config_version, 2)
            self.assertEqual(cfg.alerts.cpu_threshold, 80.0)
            self.assertEqual(cfg.alerts.memory_threshold, 90.0)
            self.assertEqual(cfg.alerts.disk_threshold, 97.0)
            self.assertEqual(cfg.polling.interval_ms, 1500)
            self.assertEqual(cfg.history.capacity, 30)


if __name__ == "__main__":
    unittest.main()
