"""
Base Tool Server Utilities

Provides shared functionality for the tool server including:
- Configuration management
- Common data structures
"""

import os
from dataclasses import dataclass, field
from typing import Any, Dict, List

DEFAULT_GEOCODING_URL = "https://geocoding-api.open-meteo.com/v1/search"
DEFAULT_FORECAST_URL = "https://api.open-meteo.com/v1/forecast"


@dataclass
class ToolResult:
    """Standard result structure returned by tool handlers."""
    content: List[Dict[str, Any]] = field(default_factory=list)

    @classmethod
    def text(cls, text: str) -> "ToolResult":
        return cls(content=[{"type": "text", "text": text}])

    def to_dict(self) -> Dict[str, Any]:
        return {"content": list(self.content)}


@dataclass(frozen=True)
class ServerSettings:
    """Runtime settings, read from the environment once at startup."""
    service_name: str = "tool-server"
    service_version: str = "1.0.0"
    host: str = "127.0.0.1"
    port: int = 3000
    heartbeat_interval_ms: int = 30000
    completion_delay_ms: int = 1000
    geocoding_url: str = DEFAULT_GEOCODING_URL
    forecast_url: str = DEFAULT_FORECAST_URL
    weather_timeout_s: float = 10.0
    environment: str = "development"
    log_level: str = "INFO"
    otlp_endpoint: str = ""
    enable_tracing: bool = True

    def __post_init__(self):
        if self.heartbeat_interval_ms <= 0:
            raise ValueError("heartbeat_interval_ms must be positive")
        if self.completion_delay_ms < 0:
            raise ValueError("completion_delay_ms must not be negative")

    @classmethod
    def from_env(cls) -> "ServerSettings":
        return cls(
            service_name=get_env_or_default("MCP_SERVICE_NAME", "tool-server"),
            host=get_env_or_default("MCP_HOST", "127.0.0.1"),
            port=int(get_env_or_default("MCP_PORT", "3000")),
            heartbeat_interval_ms=int(get_env_or_default("HEARTBEAT_INTERVAL_MS", "30000")),
            completion_delay_ms=int(get_env_or_default("COMPLETION_DELAY_MS", "1000")),
            geocoding_url=get_env_or_default("WEATHER_GEOCODING_URL", DEFAULT_GEOCODING_URL),
            forecast_url=get_env_or_default("WEATHER_FORECAST_URL", DEFAULT_FORECAST_URL),
            weather_timeout_s=float(get_env_or_default("WEATHER_TIMEOUT_S", "10")),
            environment=get_env_or_default("ENV", "development"),
            log_level=get_env_or_default("LOG_LEVEL", "INFO"),
            otlp_endpoint=get_env_or_default("OTEL_EXPORTER_OTLP_ENDPOINT", ""),
            enable_tracing=get_env_or_default("ENABLE_TRACING", "true").lower() == "true",
        )


def get_env_or_default(key: str, default: str) -> str:
    """Get environment variable or return default."""
    return os.environ.get(key, default)
