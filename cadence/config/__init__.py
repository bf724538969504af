"""
Configuration management for Cadence.

Server settings are read from a TOML file. The packaged `defaults.toml` is
used when no file is given; command-line flags override whatever the file
says (see `cadence.__main__`).

Example file:

    [server]
    host = "0.0.0.0"
    port = 30001
    web_port = 9000
    read_timeout = 5.0

    [logging]
    level = "DEBUG"

    [engine]
    volume = 70
"""

from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

from cadence.core import CoreError

logger = logging.getLogger(__name__)

# Path to the config directory
CONFIG_DIR = Path(__file__).parent

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class ConfigError(CoreError):
    """Raised when a configuration file cannot be read or has invalid values."""


@dataclass(frozen=True)
class ServerConfig:
    """Settings for one daemon instance."""

    host: str = "127.0.0.1"
    port: int = 30001
    web_port: int | None = None
    read_timeout: float | None = None
    log_level: str = "INFO"
    engine_volume: int = 50

    def with_overrides(self, **overrides: Any) -> ServerConfig:
        """Return a copy with every non-None override applied."""
        changes = {key: value for key, value in overrides.items() if value is not None}
        return replace(self, **changes) if changes else self


# TOML (section, key) -> ServerConfig field
_KEY_MAP: dict[tuple[str, str], str] = {
    ("server", "host"): "host",
    ("server", "port"): "port",
    ("server", "web_port"): "web_port",
    ("server", "read_timeout"): "read_timeout",
    ("logging", "level"): "log_level",
    ("engine", "volume"): "engine_volume",
}


def _check_port(name: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"{name} must be an integer, got {value!r}")
    if not 0 <= value <= 65535:
        raise ConfigError(f"{name} must be between 0 and 65535, got {value}")
    return value


def _validate(name: str, value: Any) -> Any:
    """Type-check a single setting. Raises ConfigError."""
    if name == "host":
        if not isinstance(value, str) or not value:
            raise ConfigError(f"host must be a non-empty string, got {value!r}")
        return value
    if name in ("port", "web_port"):
        return _check_port(name, value)
    if name == "read_timeout":
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
            raise ConfigError(f"read_timeout must be a positive number, got {value!r}")
        return float(value)
    if name == "log_level":
        if not isinstance(value, str) or value.upper() not in LOG_LEVELS:
            raise ConfigError(f"logging level must be one of {', '.join(LOG_LEVELS)}, got {value!r}")
        return value.upper()
    if name == "engine_volume":
        if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= 100:
            raise ConfigError(f"engine volume must be an integer 0..100, got {value!r}")
        return value
    raise ConfigError(f"Unknown setting {name}")


def parse_config(data: dict[str, Any]) -> ServerConfig:
    """
    Build a ServerConfig from parsed TOML data.

    Unknown sections and keys are ignored with a warning.

    Raises:
        ConfigError: If a known key has a value of the wrong type or range.
    """
    values: dict[str, Any] = {}
    for section, table in data.items():
        if not isinstance(table, dict):
            logger.warning("Ignoring unknown top-level config key %r", section)
            continue
        for key, value in table.items():
            name = _KEY_MAP.get((section, key))
            if name is None:
                logger.warning("Ignoring unknown config key %s.%s", section, key)
                continue
            values[name] = _validate(name, value)

    return ServerConfig(**values)


def load_config(config_path: Path | None = None) -> ServerConfig:
    """
    Load server configuration from a TOML file.

    Args:
        config_path: Path to the file. If None, uses the packaged defaults.

    Returns:
        Loaded ServerConfig instance.

    Raises:
        ConfigError: If the file is missing, not valid TOML, or has bad values.
    """
    if config_path is None:
        config_path = CONFIG_DIR / "defaults.toml"

    logger.debug("Loading config from %s", config_path)

    try:
        with config_path.open("rb") as f:
            data = tomllib.load(f)
    except OSError as e:
        raise ConfigError(f"Can't read config file {config_path}: {e}") from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML in {config_path}: {e}") from e

    return parse_config(data)
