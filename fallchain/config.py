"""
Configuration management for fallchain.

Loads and validates $FALLCHAIN_HOME/config.yaml (default home:
~/.config/fallchain). Environment variables override file values:

    FALLCHAIN_REQUIRED_PLATFORM
    FALLCHAIN_DEFAULT_TIMEOUT
    FALLCHAIN_LOG_LEVEL
"""

import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Optional

import yaml

from fallchain.errors import ConfigurationError


DEFAULT_HOME = "~/.config/fallchain"

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
_LOG_FORMATS = ("pretty", "structured")


class ConfigError(ConfigurationError):
    """Configuration validation error."""
    pass


def get_fallchain_home() -> Path:
    """Return the fallchain home directory ($FALLCHAIN_HOME or the default)."""
    home = os.environ.get("FALLCHAIN_HOME")
    if home:
        return Path(home).expanduser()
    return Path(DEFAULT_HOME).expanduser()


@dataclass
class FallchainConfig:
    """
    fallchain settings.

    Attributes:
        required_platform: Platform every operation requires (None = any)
        default_timeout: Per-implementation timeout in seconds (None = none)
        definitions: Path to the YAML operation definitions file
        log_level: Logging level name
        log_format: "pretty" or "structured"
        log_file: Optional log file path (JSON lines)
    """
    required_platform: Optional[str] = None
    default_timeout: Optional[float] = None
    definitions: Optional[str] = None
    log_level: str = "INFO"
    log_format: str = "pretty"
    log_file: Optional[str] = None

    def __post_init__(self):
        self.log_level = str(self.log_level).upper()
        if self.log_level not in _LOG_LEVELS:
            raise ConfigError(f"Invalid log_level: {self.log_level}")
        if self.log_format not in _LOG_FORMATS:
            raise ConfigError(
                f"Invalid log_format: {self.log_format} (expected one of {', '.join(_LOG_FORMATS)})"
            )
        if self.default_timeout is not None:
            try:
                self.default_timeout = float(self.default_timeout)
            except (TypeError, ValueError):
                raise ConfigError(f"default_timeout must be a number, got {self.default_timeout!r}")
            if self.default_timeout <= 0:
                raise ConfigError("default_timeout must be positive")

    @property
    def definitions_path(self) -> Optional[Path]:
        """Definitions path, resolved relative to the fallchain home."""
        if not self.definitions:
            return None
        path = Path(self.definitions).expanduser()
        if not path.is_absolute():
            path = get_fallchain_home() / path
        return path

    @property
    def log_file_path(self) -> Optional[Path]:
        if not self.log_file:
            return None
        return Path(self.log_file).expanduser()

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FallchainConfig":
        known = set(cls.__dataclass_fields__)
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"Unknown config keys: {', '.join(unknown)}")
        return cls(**data)


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    overrides = {
        "required_platform": os.environ.get("FALLCHAIN_REQUIRED_PLATFORM"),
        "default_timeout": os.environ.get("FALLCHAIN_DEFAULT_TIMEOUT"),
        "log_level": os.environ.get("FALLCHAIN_LOG_LEVEL"),
    }
    for key, value in overrides.items():
        if value:
            data[key] = value
    return data


def load_config(config_path: Optional[Path] = None) -> FallchainConfig:
    """
    Load fallchain configuration from YAML file.

    Args:
        config_path: Path to config file. Defaults to $FALLCHAIN_HOME/config.yaml

    Returns:
        FallchainConfig instance

    Raises:
        FileNotFoundError: If the config file does not exist
        ConfigError: If the config is invalid
    """
    if config_path is None:
        config_path = get_fallchain_home() / "config.yaml"

    if not config_path.exists():
        raise FileNotFoundError(f"fallchain config.yaml not found at {config_path}")

    try:
        with open(config_path, "r") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML syntax in {config_path}: {e}")

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file must contain a mapping: {config_path}")

    return FallchainConfig.from_dict(_apply_env_overrides(data))


def default_config_dict() -> dict[str, Any]:
    """Default contents written by `fallchain init`."""
    return {
        "required_platform": None,
        "default_timeout": 30,
        "definitions": "operations.yaml",
        "log_level": "INFO",
        "log_format": "pretty",
        "log_file": None,
    }
