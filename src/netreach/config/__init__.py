"""Configuration loading."""

from netreach.config.config_manager import ConfigError, ConfigManager

__all__ = ["ConfigManager", "ConfigError"]
