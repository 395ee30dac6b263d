"""Configuration manager for loading and validating config files."""

import logging
from pathlib import Path
from typing import Any, Dict, Optional, TypeVar, Union

import yaml

T = TypeVar("T")


logger = logging.getLogger(__name__)

RADIO_PROVIDERS = ("modemmanager", "static", "none")


class ConfigError(Exception):
    """Raised when configuration is invalid."""


class ConfigManager:
    """Manages loading and accessing configuration from YAML files."""

    def __init__(self, user_config_path: str) -> None:
        """Initialize the configuration manager.

        Args:
            user_config_path: Path to user config file (required)

        Raises:
            ConfigError: If config file doesn't exist or is invalid
        """
        self._config: Dict[str, Any] = {}
        self._user_config_path = user_config_path
        self._load_config()

    def _load_yaml_file(self, path: Path) -> Dict[str, Any]:
        """Load a YAML file and return its contents.

        Args:
            path: Path to YAML file

        Returns:
            Dictionary containing the YAML contents

        Raises:
            ConfigError: If file cannot be read or parsed
        """
        try:
            with open(path, "r", encoding="utf-8") as f:
                content = yaml.safe_load(f)
                return content if content is not None else {}
        except FileNotFoundError as e:
            raise ConfigError(f"Config file not found: {path}") from e
        except yaml.YAMLError as e:
            raise ConfigError(f"Failed to parse YAML file {path}: {e}") from e
        except OSError as e:
            raise ConfigError(f"Failed to load config file {path}: {e}") from e

    def _validate_config(self) -> None:  # pylint: disable=too-many-branches
        """Validate the loaded configuration.

        Raises:
            ConfigError: If configuration is invalid
        """
        if not isinstance(self._config, dict):
            raise ConfigError("Configuration must be a dictionary")

        required_sections = ["target", "monitor"]
        for section in required_sections:
            if section not in self._config:
                raise ConfigError(f"Missing required config section: {section}")
            # An empty section loads as None
            if self._config[section] is None:
                self._config[section] = {}

        # Target: hostname, address, or neither (default route)
        target = self._config["target"]
        if not isinstance(target, dict):
            raise ConfigError("'target' section must be a dictionary")
        if target.get("hostname") and target.get("address"):
            raise ConfigError("Target 'hostname' and 'address' are mutually exclusive")
        for key in ("hostname", "address"):
            if key in target and target[key] is not None and not isinstance(target[key], str):
                raise ConfigError(f"Target '{key}' must be a string")

        monitor = self._config["monitor"]
        if not isinstance(monitor, dict):
            raise ConfigError("'monitor' section must be a dictionary")

        mobile_device = monitor.get("mobile_device", "auto")
        if mobile_device != "auto" and not isinstance(mobile_device, bool):
            raise ConfigError("'mobile_device' must be 'auto', true or false")

        if "poll_interval" in monitor:
            value = monitor["poll_interval"]
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ConfigError("'poll_interval' must be a number")
            if value <= 0:
                raise ConfigError("'poll_interval' must be positive")

        if "radio" in self._config:
            radio = self._config["radio"]
            if not isinstance(radio, dict):
                raise ConfigError("'radio' section must be a dictionary")
            provider = radio.get("provider", "none")
            if provider not in RADIO_PROVIDERS:
                raise ConfigError(f"'radio.provider' must be one of: {', '.join(RADIO_PROVIDERS)}")

        if "web" in self._config:
            web = self._config["web"]
            if not isinstance(web, dict):
                raise ConfigError("'web' section must be a dictionary")
            port = web.get("port", 7575)
            if isinstance(port, bool) or not isinstance(port, int) or not 0 < port < 65536:
                raise ConfigError("'web.port' must be an integer between 1 and 65535")

    def _load_config(self) -> None:
        """Load configuration from user config file.

        Raises:
            ConfigError: If config file doesn't exist or is invalid
        """
        config_path = Path(self._user_config_path)

        # Check if file exists first
        if not config_path.exists():
            raise ConfigError(
                f"Configuration file not found: {config_path}\n"
                f"Please create a config file. See config.yml.example for reference."
            )

        logger.info("Loading configuration from: %s", config_path)
        self._config = self._load_yaml_file(config_path)

        # Validate the configuration
        self._validate_config()
        logger.info("Configuration loaded and validated successfully")

    def get(self, key: str, default: Optional[T] = None) -> Union[Any, T]:
        """Get a configuration value by key.

        Supports dot notation for nested values (e.g., 'monitor.poll_interval')

        Args:
            key: Configuration key (supports dot notation)
            default: Default value if key not found

        Returns:
            Configuration value or default (type matches default when provided)
        """
        keys = key.split(".")
        value: Any = self._config

        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default  # type: ignore[return-value]

        return value

    def get_target_config(self) -> Dict[str, Any]:
        """Get target configuration.

        Returns:
            Target configuration dictionary
        """
        return self.get("target", {})

    def get_monitor_config(self) -> Dict[str, Any]:
        """Get monitor configuration.

        Returns:
            Monitor configuration dictionary
        """
        return self.get("monitor", {})

    def get_mobile_device(self) -> Optional[bool]:
        """Get the mobile device override.

        Returns:
            True/False if configured, None for platform detection ("auto")
        """
        value = self.get("monitor.mobile_device", "auto")
        return None if value == "auto" else bool(value)

    def to_dict(self) -> Dict[str, Any]:
        """Get the entire configuration as a dictionary.

        Returns:
            Complete configuration dictionary
        """
        return self._config.copy()
