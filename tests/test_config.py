"""Tests for configuration loading and validation."""

from __future__ import annotations

import os
from pathlib import Path
from unittest.mock import patch

import pytest
import yaml

from portfolio_feed.config import ApiConfig, DaemonConfig, load_config


def _write_config(data: dict, path: Path) -> Path:
    """Write a config dict to a YAML file."""
    config_path = path / "config.yaml"
    with open(config_path, "w") as f:
        yaml.dump(data, f)
    return config_path


def _env_without_token() -> dict:
    env = os.environ.copy()
    env.pop("FREQTRADE_API_TOKEN", None)
    return env


class TestConfigLoading:
    """Test YAML config loading and Pydantic validation."""

    def test_load_minimal_config(self, tmp_path: Path) -> None:
        """Minimal valid config: just the API token."""
        path = _write_config({"api": {"token": "tok123"}}, tmp_path)
        with patch.dict(os.environ, _env_without_token(), clear=True):
            config = load_config(path)

        assert config.api.token == "tok123"
        assert config.api.base_url == "https://freqtrade.crypto-pilot.dev"
        assert config.stream.transport == "sse"

    def test_defaults_applied(self, tmp_path: Path) -> None:
        """Optional sections get defaults."""
        path = _write_config({"api": {"token": "tok"}}, tmp_path)
        config = load_config(path)

        assert config.reporting.periodic_interval_minutes == 60
        assert config.reporting.log_level == "INFO"
        assert config.reporting.log_format == "text"
        assert config.connection.reconnect_delay_seconds == 2
        assert config.connection.max_reconnect_delay_seconds == 30
        assert config.connection.max_reconnect_attempts == 5
        assert config.connection.fallback_retry_seconds == 60
        assert config.connection.connection_cooldown_seconds == 3

    def test_full_config(self, tmp_path: Path) -> None:
        """Fully specified config."""
        data = {
            "api": {
                "base_url": "https://bots.example.com/",
                "token": "tok",
                "timeout_seconds": 5,
            },
            "stream": {"transport": "websocket", "ws_url": "wss://bots.example.com/ws"},
            "reporting": {
                "periodic_interval_minutes": 30,
                "log_level": "debug",
                "log_format": "json",
                "log_file": "logs/feed.log",
            },
            "connection": {
                "reconnect_delay_seconds": 1,
                "max_reconnect_attempts": 3,
            },
        }
        path = _write_config(data, tmp_path)
        config = load_config(path)

        assert config.api.base_url == "https://bots.example.com"
        assert config.api.timeout_seconds == 5
        assert config.stream.transport == "websocket"
        assert config.reporting.log_level == "DEBUG"
        assert config.reporting.log_file == "logs/feed.log"
        assert config.connection.max_reconnect_attempts == 3

    def test_base_url_normalization(self) -> None:
        """Hosts without a scheme get https:// added."""
        api = ApiConfig(base_url="bots.example.com/", token="tok")
        assert api.base_url == "https://bots.example.com"

    def test_missing_file_raises(self) -> None:
        """Non-existent file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            load_config("/nonexistent/path.yaml")

    def test_missing_api_raises(self, tmp_path: Path) -> None:
        """Config without api section raises validation error."""
        path = _write_config({"reporting": {}}, tmp_path)
        with pytest.raises(Exception):  # Pydantic ValidationError
            load_config(path)

    def test_unknown_transport_raises(self, tmp_path: Path) -> None:
        data = {"api": {"token": "tok"}, "stream": {"transport": "carrier-pigeon"}}
        path = _write_config(data, tmp_path)
        with pytest.raises(Exception):
            load_config(path)


class TestStreamUrl:
    def test_sse_url_from_base(self) -> None:
        config = DaemonConfig(api={"base_url": "https://api.test", "token": "t"})
        assert config.stream_url() == "https://api.test/api/stream"

    def test_custom_path_gets_slash(self) -> None:
        config = DaemonConfig(
            api={"base_url": "https://api.test", "token": "t"},
            stream={"path": "events"},
        )
        assert config.stream_url() == "https://api.test/events"

    def test_websocket_url_derived_from_base(self) -> None:
        config = DaemonConfig(
            api={"base_url": "http://localhost:3001", "token": "t"},
            stream={"transport": "websocket", "path": "/ws"},
        )
        assert config.stream_url() == "ws://localhost:3001/ws"

    def test_explicit_ws_url_wins(self) -> None:
        config = DaemonConfig(
            api={"base_url": "https://api.test", "token": "t"},
            stream={"transport": "websocket", "ws_url": "feed.test:9000"},
        )
        assert config.stream_url() == "ws://feed.test:9000"


class TestEnvVarConfig:
    """Test environment variable support for the API token."""

    def test_env_var_overrides_yaml(self, tmp_path: Path) -> None:
        """Env var takes precedence over YAML value."""
        path = _write_config({"api": {"token": "yaml-token"}}, tmp_path)
        with patch.dict(os.environ, {"FREQTRADE_API_TOKEN": "env-token"}):
            config = load_config(path)
        assert config.api.token == "env-token"

    def test_env_var_without_yaml_value(self, tmp_path: Path) -> None:
        """Env var works when YAML has an empty api section."""
        path = _write_config({"api": {}}, tmp_path)
        with patch.dict(os.environ, {"FREQTRADE_API_TOKEN": "env-token"}):
            config = load_config(path)
        assert config.api.token == "env-token"

    def test_missing_token_raises(self, tmp_path: Path) -> None:
        """Missing token from both env and YAML raises error."""
        path = _write_config({"api": {}}, tmp_path)
        with patch.dict(os.environ, _env_without_token(), clear=True):
            with pytest.raises(Exception, match="token is required"):
                load_config(path)
