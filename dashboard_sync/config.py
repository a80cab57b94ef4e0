"""Configuration models and YAML loader.

Endpoint URLs can be provided via environment variables ``BOT_API_URL`` and
``BOT_WS_URL``.  Values in the YAML file are used as fallback; env vars
always take precedence.  Leaving the WebSocket URL unset runs the session in
pull-only mode.
"""

import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator


class ApiConfig(BaseModel):
    base_url: str = "http://localhost:5000"
    ws_url: Optional[str] = None  # e.g. "ws://localhost:5000/ws"
    request_timeout_seconds: float = Field(default=10.0, gt=0)

    @model_validator(mode="before")
    @classmethod
    def _resolve_env_vars(cls, values: dict) -> dict:  # type: ignore[override]
        """Override base_url / ws_url from env vars if set."""
        values = dict(values or {})
        env_api = os.environ.get("BOT_API_URL")
        env_ws = os.environ.get("BOT_WS_URL")
        if env_api:
            values["base_url"] = env_api
        if env_ws:
            values["ws_url"] = env_ws
        return values

    @field_validator("base_url")
    @classmethod
    def normalize_http_url(cls, v: str) -> str:
        v = v.strip().rstrip("/")
        if not v.startswith(("http://", "https://")):
            v = f"http://{v}"
        return v

    @field_validator("ws_url")
    @classmethod
    def normalize_ws_url(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        if not v:
            return None
        if not v.startswith(("ws://", "wss://")):
            v = f"ws://{v}"
        return v


class ConnectionConfig(BaseModel):
    reconnect_delay_seconds: float = Field(default=5, ge=0)
    max_reconnect_attempts: int = Field(default=5, ge=0)
    ping_interval_seconds: float = 30
    open_timeout_seconds: float = 10


class PollingConfig(BaseModel):
    interval_seconds: float = Field(default=30, ge=1, le=3600)
    recent_logs_limit: int = Field(default=50, ge=1)
    post_action_refresh_delay_seconds: float = Field(default=1.0, ge=0)


class LogConfig(BaseModel):
    capacity: int = Field(default=50, ge=1)
    level: str = "INFO"


class ReportingConfig(BaseModel):
    interval_seconds: int = 60  # 0 disables the periodic status line


class SessionConfig(BaseModel):
    api: ApiConfig = Field(default_factory=ApiConfig)
    connection: ConnectionConfig = ConnectionConfig()
    polling: PollingConfig = PollingConfig()
    logs: LogConfig = LogConfig()
    reporting: ReportingConfig = ReportingConfig()


def load_config(path: str | Path) -> SessionConfig:
    """Load and validate session configuration from a YAML file."""
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    return SessionConfig(**raw)
