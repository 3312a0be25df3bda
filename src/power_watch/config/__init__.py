"""Configuration management for Power Watch."""

from power_watch.config.schema import AppConfig
from power_watch.config.manager import ConfigManager

__all__ = ["AppConfig", "ConfigManager"]
