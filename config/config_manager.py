"""
Configuration manager for the timer engine.

This module provides configuration loading from YAML with validation and
environment variable substitution, and turns the result into a
TimerEngineConfig.
"""

import logging
import os
import re
from typing import Any

import yaml
from pydantic import ValidationError

logger = logging.getLogger(__name__)


class ConfigValidationError(Exception):
    """Raised when configuration validation fails."""

    def __init__(self, message: str, path: str = ""):
        self.message = message
        self.path = path
        super().__init__(f"Configuration validation error at '{path}': {message}")


class ConfigManager:
    """
    Configuration manager for the timer engine.

    Loads a YAML file, substitutes ``${VAR}`` and ``${VAR:default}``
    references from the environment and validates the known sections.
    """

    def __init__(self, config_path: str = "config.yaml"):
        """
        Initialize configuration manager.

        Args:
            config_path: Path to main configuration file
        """
        self.config_path = config_path
        self.config_data: dict[str, Any] = {}

    def load_config(self, validate: bool = True) -> dict[str, Any]:
        """
        Load configuration from file.

        Args:
            validate: Whether to validate configuration after loading

        Returns:
            Configuration dictionary

        Raises:
            FileNotFoundError: If the file does not exist
            ConfigValidationError: If parsing or validation fails
        """
        if not os.path.exists(self.config_path):
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

        try:
            with open(self.config_path) as f:
                self.config_data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigValidationError(
                f"Invalid YAML in config file: {e}", self.config_path
            )

        if not isinstance(self.config_data, dict):
            raise ConfigValidationError(
                "Top level of the configuration must be a mapping", self.config_path
            )

        self.config_data = self._substitute_env_vars(self.config_data)

        if validate:
            self._validate_config()

        logger.info(f"Configuration loaded from: {self.config_path}")
        return self.config_data

    def load_engine_config(self):
        """Load the file and validate it into a TimerEngineConfig.

        Raises:
            ConfigValidationError: If the data does not match the schema.
        """
        from supervisor.timer_engine_config import TimerEngineConfig

        data = self.load_config()
        try:
            return TimerEngineConfig(**data)
        except ValidationError as e:
            logger.error(f"Error validating configuration: {e}")
            raise ConfigValidationError(str(e), self.config_path)

    def _substitute_env_vars(self, config: Any) -> Any:
        """
        Recursively substitute environment variables in configuration.

        Supports ${VAR_NAME} and ${VAR_NAME:default_value} syntax.
        """
        if isinstance(config, dict):
            return {
                key: self._substitute_env_vars(value) for key, value in config.items()
            }
        elif isinstance(config, list):
            return [self._substitute_env_vars(item) for item in config]
        elif isinstance(config, str):
            pattern = r"\$\{([^}]+)\}"

            def replace_env_var(match):
                var_spec = match.group(1)
                if ":" in var_spec:
                    var_name, default_value = var_spec.split(":", 1)
                else:
                    var_name, default_value = var_spec, ""

                return os.getenv(var_name, default_value)

            return re.sub(pattern, replace_env_var, config)
        else:
            return config

    def _validate_config(self):
        """Validate configuration structure and values."""
        errors = []

        for section in ("logging", "scheduler", "audio", "persistence"):
            value = self.config_data.get(section)
            if value is not None and not isinstance(value, dict):
                errors.append(f"{section} must be a mapping")

        clock = self.get_config("scheduler.clock", "instant")
        if clock not in ("instant", "wall"):
            errors.append(f"scheduler.clock must be 'instant' or 'wall', got '{clock}'")

        tick_ms = self.get_config("scheduler.tick_ms", 50)
        if isinstance(tick_ms, str) and tick_ms.isdigit():
            tick_ms = int(tick_ms)
            self.set_config("scheduler.tick_ms", tick_ms)
        if not isinstance(tick_ms, int) or tick_ms <= 0:
            errors.append("scheduler.tick_ms must be a positive integer")

        sounds = self.get_config("audio.sounds", {}) or {}
        if not isinstance(sounds, dict):
            errors.append("audio.sounds must map sound ids to asset paths")

        if errors:
            raise ConfigValidationError(
                f"Configuration validation failed: {'; '.join(errors)}", self.config_path
            )

    def get_config(self, path: str, default: Any = None) -> Any:
        """
        Get configuration value by dot-separated path.

        Args:
            path: Dot-separated configuration path (e.g., "scheduler.clock")
            default: Default value if path not found

        Returns:
            Configuration value or default
        """
        keys = path.split(".")
        current = self.config_data

        for key in keys:
            if isinstance(current, dict) and key in current:
                current = current[key]
            else:
                return default

        return current

    def set_config(self, path: str, value: Any):
        """
        Set configuration value by dot-separated path.

        Args:
            path: Dot-separated configuration path
            value: Value to set
        """
        keys = path.split(".")
        current = self.config_data

        for key in keys[:-1]:
            if key not in current:
                current[key] = {}
            current = current[key]

        current[keys[-1]] = value
