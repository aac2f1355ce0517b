"""Configuration loading and management."""

import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import ValidationError

from .config_models import SystemConfig

DEFAULT_CONFIG_PATH = Path("config/blereplay.yml")


class ConfigurationError(Exception):
    """Raised when configuration loading or validation fails."""


def load_config(config_path: Optional[Path] = None) -> SystemConfig:
    """
    Load and validate system configuration.

    Args:
        config_path: Path to the configuration file. Defaults to config/blereplay.yml

    Returns:
        Validated SystemConfig instance

    Raises:
        ConfigurationError: If configuration loading or validation fails
    """
    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH

    # Load configuration from YAML file if it exists
    config_data: dict = {}
    if config_path.exists():
        try:
            with open(config_path) as f:
                config_data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Failed to parse YAML config: {e}") from e
        except OSError as e:
            raise ConfigurationError(f"Failed to read config file: {e}") from e

    if not isinstance(config_data, dict):
        raise ConfigurationError(f"Config file {config_path} must contain a mapping")

    # Environment variables win over the file
    _merge(config_data, _load_env_overrides())

    try:
        return SystemConfig(**config_data)
    except ValidationError as e:
        raise ConfigurationError(f"Configuration validation failed: {e}") from e


def _merge(target: dict, overrides: dict) -> None:
    """Recursively merge overrides into target in place."""
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(target.get(key), dict):
            _merge(target[key], value)
        else:
            target[key] = value


def _load_env_overrides() -> dict:
    """Load configuration overrides from environment variables."""
    overrides: dict = {}

    env_mappings = {
        "BLEREPLAY_LOG_LEVEL": ("logging", "level"),
        "BLEREPLAY_LOG_DIR": ("paths", "log_dir"),
        "BLEREPLAY_SCENARIO_DIR": ("paths", "scenario_dir"),
        "BLEREPLAY_OUTPUT_FORMAT": ("output", "format"),
        "BLEREPLAY_REALTIME": ("playback", "realtime"),
    }

    for env_var, config_path in env_mappings.items():
        value = os.getenv(env_var)
        if value is not None:
            # Navigate nested dictionary structure
            current = overrides
            for key in config_path[:-1]:
                if key not in current:
                    current[key] = {}
                current = current[key]
            current[config_path[-1]] = value

    return overrides


def create_example_config(output_path: Path = Path("config/blereplay.yml.example")) -> None:
    """Create an example configuration file."""
    example_config = {
        "paths": {
            "log_dir": "logs",
            "scenario_dir": "scenarios"
        },
        "logging": {
            "level": "INFO",
            "log_to_file": False
        },
        "playback": {
            "realtime": True,
            "validate_on_load": True,
            "value_preview_length": 20
        },
        "output": {
            "format": "text",
            "color": True
        }
    }

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w") as f:
        yaml.dump(example_config, f, default_flow_style=False, sort_keys=False)
