"""
Tests for configuration loading and command line handling.
"""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from cadence.__main__ import build_config, main, parse_args
from cadence.config import ConfigError, ServerConfig, load_config, parse_config

# -----------------------------------------------------------------------------
# Config File Tests
# -----------------------------------------------------------------------------


class TestLoadConfig:
    """Tests for load_config and parse_config."""

    def test_packaged_defaults(self) -> None:
        """The packaged file matches the dataclass defaults."""
        assert load_config() == ServerConfig()

    def test_full_file(self, tmp_path: Path) -> None:
        """Every known key is read."""
        path = tmp_path / "cadence.toml"
        path.write_text(
            "[server]\n"
            'host = "0.0.0.0"\n'
            "port = 4000\n"
            "web_port = 9000\n"
            "read_timeout = 5\n"
            "[logging]\n"
            'level = "debug"\n'
            "[engine]\n"
            "volume = 70\n"
        )

        config = load_config(path)

        assert config == ServerConfig(
            host="0.0.0.0",
            port=4000,
            web_port=9000,
            read_timeout=5.0,
            log_level="DEBUG",
            engine_volume=70,
        )

    def test_partial_file(self, tmp_path: Path) -> None:
        """Missing keys keep their defaults."""
        path = tmp_path / "cadence.toml"
        path.write_text("[server]\nport = 4001\n")
        config = load_config(path)
        assert config.port == 4001
        assert config.host == "127.0.0.1"
        assert config.web_port is None

    def test_unknown_keys_warn(self, caplog: pytest.LogCaptureFixture) -> None:
        """Unknown keys are ignored with a warning."""
        with caplog.at_level(logging.WARNING, logger="cadence.config"):
            config = parse_config({"server": {"colour": "blue"}, "stray": 1})
        assert config == ServerConfig()
        assert "server.colour" in caplog.text
        assert "stray" in caplog.text

    @pytest.mark.parametrize(
        "data",
        [
            {"server": {"port": "30001"}},
            {"server": {"port": 70000}},
            {"server": {"port": True}},
            {"server": {"host": ""}},
            {"server": {"read_timeout": 0}},
            {"logging": {"level": "LOUD"}},
            {"engine": {"volume": 101}},
        ],
    )
    def test_bad_values(self, data: dict) -> None:
        """Wrong types and ranges are rejected."""
        with pytest.raises(ConfigError):
            parse_config(data)

    def test_missing_file(self, tmp_path: Path) -> None:
        """A missing file is a config error."""
        with pytest.raises(ConfigError, match="Can't read config file"):
            load_config(tmp_path / "nope.toml")

    def test_invalid_toml(self, tmp_path: Path) -> None:
        """Broken TOML is a config error."""
        path = tmp_path / "broken.toml"
        path.write_text("[server\nport = \n")
        with pytest.raises(ConfigError, match="Invalid TOML"):
            load_config(path)

    def test_with_overrides(self) -> None:
        """None overrides leave values alone."""
        config = ServerConfig().with_overrides(port=5000, host=None)
        assert config.port == 5000
        assert config.host == "127.0.0.1"


# -----------------------------------------------------------------------------
# Command Line Tests
# -----------------------------------------------------------------------------


class TestCommandLine:
    """Tests for argument parsing in cadence.__main__."""

    def test_defaults(self) -> None:
        """No flags means the packaged configuration."""
        args = parse_args([])
        assert args.verbose is False
        assert build_config(args) == ServerConfig()

    def test_flags_override_file(self, tmp_path: Path) -> None:
        """Command line values win over the config file."""
        path = tmp_path / "cadence.toml"
        path.write_text("[server]\nport = 4000\nweb_port = 9000\n")

        args = parse_args(["-c", str(path), "-p", "4100", "--host", "0.0.0.0", "--read-timeout", "2.5"])
        config = build_config(args)

        assert config.port == 4100
        assert config.host == "0.0.0.0"
        assert config.web_port == 9000
        assert config.read_timeout == 2.5

    def test_main_reports_config_error(self, tmp_path: Path) -> None:
        """A bad config file makes main() return 1 without starting."""
        assert main(["-c", str(tmp_path / "missing.toml")]) == 1
