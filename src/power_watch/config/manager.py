"""Configuration loading and validation."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

from power_watch.config.schema import AppConfig

logger = logging.getLogger(__name__)


class ConfigManager:
    """Loads config from an optional YAML file plus command-line overrides."""

    def __init__(self, config_path: Path | None = None) -> None:
        self._config_path = config_path

    def load(self, overrides: dict[str, Any] | None = None) -> AppConfig:
        """Load configuration from the YAML file, then apply overrides."""
        from_file = self._load_yaml(self._config_path) if self._config_path else {}
        merged = self._deep_merge(from_file, overrides or {})
        config = AppConfig.model_validate(merged)
        logger.debug("Configuration loaded from %s", self._config_path or "defaults")
        return config

    @staticmethod
    def _load_yaml(path: Path) -> dict[str, Any]:
        if not path.exists():
            return {}
        with open(path) as f:
            data = yaml.safe_load(f)
        return data if isinstance(data, dict) else {}

    @staticmethod
    def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
        """Recursively merge override into base, returning a new dict."""
        result = dict(base)
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = ConfigManager._deep_merge(result[key], value)
            else:
                result[key] = value
        return result
