import os
import yaml

from settings_schema import AnalyticsSettings, validate_settings

APP_VERSION = "1.0.0"


class YamlConfig:
    """Load and save analytics settings to a YAML file."""

    def __init__(self, path: str | None = None) -> None:
        self.path = path or os.environ.get("FITLOG_SETTINGS", "settings.yaml")

    def load(self) -> dict:
        if not os.path.exists(self.path):
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            return yaml.safe_load(f) or {}

    def save(self, data: dict) -> None:
        validate_settings(data)
        with open(self.path, "w", encoding="utf-8") as f:
            yaml.safe_dump(dict(data), f)

    def settings(self) -> AnalyticsSettings:
        """Return validated settings, defaults filled in for missing keys."""
        return validate_settings(self.load())
