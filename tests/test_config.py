import os
import sys
import unittest
import yaml

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from config import YamlConfig
from settings_schema import AnalyticsSettings, validate_settings


class ConfigTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.path = "test_analytics_settings.yaml"
        if os.path.exists(self.path):
            os.remove(self.path)

    def tearDown(self) -> None:
        if os.path.exists(self.path):
            os.remove(self.path)

    def test_defaults_when_missing(self) -> None:
        settings = YamlConfig(self.path).settings()
        self.assertEqual(settings, AnalyticsSettings())
        self.assertEqual(settings.pin_limit, 5)
        self.assertEqual(settings.evolution_weeks, 4)
        self.assertEqual(settings.history_limit_max, 20)

    def test_save_and_load(self) -> None:
        cfg = YamlConfig(self.path)
        cfg.save({"pin_limit": 3, "load_unit": "lb"})
        with open(self.path, "r", encoding="utf-8") as f:
            self.assertEqual(yaml.safe_load(f)["pin_limit"], 3)
        settings = cfg.settings()
        self.assertEqual(settings.pin_limit, 3)
        self.assertEqual(settings.load_unit, "lb")
        self.assertEqual(settings.sleep_weeks, 8)

    def test_invalid_values_rejected(self) -> None:
        with self.assertRaises(ValueError):
            validate_settings({"sleep_weeks": 0})
        with self.assertRaises(ValueError):
            YamlConfig(self.path).save({"pin_limit": "many"})
        self.assertFalse(os.path.exists(self.path))

    def test_env_override(self) -> None:
        os.environ["FITLOG_SETTINGS"] = self.path
        try:
            self.assertEqual(YamlConfig().path, self.path)
        finally:
            del os.environ["FITLOG_SETTINGS"]


if __name__ == "__main__":
    unittest.main()
