"""Configuration models and YAML loader.

The API token can be provided via the ``FREQTRADE_API_TOKEN`` environment
variable. The value in the YAML file is used as fallback — the env var
always takes precedence.
"""

import os
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, field_validator, model_validator

DEFAULT_API_BASE = "https://freqtrade.crypto-pilot.dev"


class ApiConfig(BaseModel):
    base_url: str = DEFAULT_API_BASE
    token: str = ""
    timeout_seconds: float = 10.0

    @model_validator(mode="before")
    @classmethod
    def _resolve_env_vars(cls, values: dict) -> dict:  # type: ignore[override]
        """Override token from env var if set."""
        values = dict(values or {})
        env_token = os.environ.get("FREQTRADE_API_TOKEN")
        if env_token:
            values["token"] = env_token
        return values

    @field_validator("base_url")
    @classmethod
    def normalize_base_url(cls, v: str) -> str:
        v = v.strip().rstrip("/")
        if not v.startswith(("http://", "https://")):
            v = f"https://{v}"
        return v

    @model_validator(mode="after")
    def _check_token(self) -> "ApiConfig":
        if not self.token:
            raise ValueError(
                "token is required — set FREQTRADE_API_TOKEN env var "
                "or provide it in the YAML config"
            )
        return self


class StreamConfig(BaseModel):
    transport: Literal["sse", "websocket"] = "sse"
    path: str = "/api/stream"
    ws_url: str | None = None  # derived from api.base_url when unset

    @field_validator("path")
    @classmethod
    def normalize_path(cls, v: str) -> str:
        v = v.strip()
        return v if v.startswith("/") else f"/{v}"

    @field_validator("ws_url")
    @classmethod
    def normalize_ws_url(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        if not v.startswith(("ws://", "wss://")):
            v = f"ws://{v}"
        return v


class ConnectionConfig(BaseModel):
    reconnect_delay_seconds: float = 2
    max_reconnect_delay_seconds: float = 30
    max_reconnect_attempts: int = 5
    fallback_retry_seconds: float = 60
    connection_cooldown_seconds: float = 3
    ping_interval_seconds: int = 30


class ReportingConfig(BaseModel):
    periodic_interval_minutes: int = 60
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["text", "json"] = "text"
    log_file: str | None = None

    @field_validator("log_level", mode="before")
    @classmethod
    def upper_level(cls, v: str) -> str:
        return v.upper() if isinstance(v, str) else v


class DaemonConfig(BaseModel):
    api: ApiConfig
    stream: StreamConfig = StreamConfig()
    connection: ConnectionConfig = ConnectionConfig()
    reporting: ReportingConfig = ReportingConfig()

    def stream_url(self) -> str:
        """Full URL of the live stream for the configured transport."""
        if self.stream.transport == "websocket":
            if self.stream.ws_url:
                return self.stream.ws_url
            base = self.api.base_url.replace("https://", "wss://", 1)
            base = base.replace("http://", "ws://", 1)
            return f"{base}{self.stream.path}"
        return f"{self.api.base_url}{self.stream.path}"


def load_config(path: str | Path) -> DaemonConfig:
    """Load and validate daemon configuration from a YAML file."""
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    return DaemonConfig(**raw)
