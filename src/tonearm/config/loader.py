"""YAML configuration loader with inheritance support.

Supports:
- Loading YAML config files
- Config inheritance via 'extends' key
- Deep merging of nested config
- TONEARM_CONFIG environment variable pointing at a config file
"""

import os
from pathlib import Path
from typing import Any

import yaml

from . import (
    BufferConfig,
    DecoderConfig,
    HttpConfig,
    LoggingConfig,
    OutputConfig,
    TonearmConfig,
)

CONFIG_ENV_VAR = "TONEARM_CONFIG"


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two dictionaries.

    Values from override take precedence. Nested dicts are merged recursively.
    """
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_yaml_with_inheritance(path: Path) -> dict[str, Any]:
    """Load YAML file with inheritance support.

    If the file contains an 'extends' key, the base config is loaded first
    and merged with the current config.
    """
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path) as f:
        config = yaml.safe_load(f) or {}

    if "extends" in config:
        base_name = config.pop("extends")
        base_path = path.parent / base_name
        base_config = load_yaml_with_inheritance(base_path)
        config = deep_merge(base_config, config)

    return config


def dict_to_config(data: dict[str, Any]) -> TonearmConfig:
    """Convert raw dict to typed TonearmConfig dataclass."""
    section = data.get("tonearm", {}) or {}

    # YAML yields None for empty sections
    def safe_get(key: str) -> dict[str, Any]:
        value = section.get(key, {})
        return value if value is not None else {}

    http = dict(safe_get("http"))
    http["headers"] = {str(k): str(v) for k, v in (http.get("headers") or {}).items()}

    return TonearmConfig(
        buffer=BufferConfig(**safe_get("buffer")),
        output=OutputConfig(**safe_get("output")),
        http=HttpConfig(**http),
        decoder=DecoderConfig(**safe_get("decoder")),
        logging=LoggingConfig(**safe_get("logging")),
    )


class YAMLConfigLoader:
    """YAML configuration loader implementation."""

    def __init__(self, config_dir: Path | None = None) -> None:
        """Initialize loader with optional config directory.

        Args:
            config_dir: Directory containing config files.
                        Defaults to 'config' relative to project root.
        """
        if config_dir is None:
            config_dir = Path(__file__).parent.parent.parent.parent / "config"
        self._config_dir = config_dir

    def load(self, path: Path) -> TonearmConfig:
        """Load configuration from file path.

        Args:
            path: Path to YAML config file

        Returns:
            Parsed TonearmConfig
        """
        raw_config = load_yaml_with_inheritance(path)
        return dict_to_config(raw_config)

    def load_profile(self, profile: str) -> TonearmConfig:
        """Load configuration by profile name.

        Args:
            profile: Profile name (e.g., 'default', 'dev')

        Returns:
            Parsed TonearmConfig for the profile
        """
        config_path = self._config_dir / f"{profile}.yaml"
        return self.load(config_path)

    def get_config_dir(self) -> Path:
        """Get the configuration directory path."""
        return self._config_dir


def load_config(path: str | Path | None = None, profile: str | None = None) -> TonearmConfig:
    """Load tonearm configuration.

    Resolution order: explicit path, profile name, $TONEARM_CONFIG,
    then built-in defaults.

    Args:
        path: Direct path to config file (takes precedence)
        profile: Profile name if path not given

    Returns:
        Parsed TonearmConfig

    Examples:
        >>> config = load_config(profile="dev")
        >>> config = load_config(path="/path/to/config.yaml")
    """
    loader = YAMLConfigLoader()

    if path is not None:
        return loader.load(Path(path))
    if profile is not None:
        return loader.load_profile(profile)

    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return loader.load(Path(env_path).expanduser())

    return TonearmConfig()


__all__ = [
    "CONFIG_ENV_VAR",
    "YAMLConfigLoader",
    "deep_merge",
    "dict_to_config",
    "load_config",
    "load_yaml_with_inheritance",
]
