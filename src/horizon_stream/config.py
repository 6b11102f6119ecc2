"""
Horizon Stream Configuration
============================

This module handles configuration loading for the metrics stream client.

Configuration Sources (in order of precedence):
    1. Environment variables (highest priority)
    2. config.yaml file
    3. Default values (lowest priority)

Environment Variable Mapping:
    HORIZON_BASE_URL             -> stream.base_url
    HORIZON_TOKEN                -> stream.token
    HORIZON_AGENT_ID             -> stream.agent_id
    HORIZON_RECONNECT_BASE_DELAY -> reconnect.base_delay_seconds
    HORIZON_RECONNECT_MAX_DELAY  -> reconnect.max_delay_seconds
    HORIZON_MAX_RECONNECTS       -> reconnect.max_attempts
    HORIZON_HISTORY_MAX_POINTS   -> history.max_points
    HORIZON_COMMIT_INTERVAL      -> history.commit_interval_seconds
    HORIZON_REFRESH_INTERVAL     -> history.refresh_interval_seconds
    HORIZON_PORT                 -> server.port
    HORIZON_LOG_LEVEL            -> logging.level
    PORT                         -> server.port (container platforms)

Example:
    from horizon_stream.config import settings

    print(settings.stream.base_url)
    print(settings.history.max_points)
"""

import os
import logging
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, model_validator


logger = logging.getLogger(__name__)


# =============================================================================
# Configuration Models
# =============================================================================

class StreamConfig(BaseModel):
    """Metrics stream endpoint configuration."""

    base_url: str = Field(
        default="http://localhost:8080/api",
        description="API base URL; /metrics/stream[/{agentId}] is appended",
    )
    token: Optional[str] = Field(
        default=None,
        description="Bearer token sent in the Authorization header",
    )
    agent_id: Optional[int] = Field(
        default=None,
        ge=0,
        description="Scope the stream to a single agent (None = all agents)",
    )
    connect_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Handshake timeout; reads on the open stream never time out",
    )


class ReconnectConfig(BaseModel):
    """Exponential backoff configuration."""

    base_delay_seconds: float = Field(
        default=1.0,
        gt=0,
        description="Delay before the first reconnect attempt",
    )
    max_delay_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Upper bound on any backoff delay",
    )
    max_attempts: int = Field(
        default=10,
        ge=0,
        description="Reconnect attempts before giving up",
    )

    @model_validator(mode="after")
    def _check_delays(self) -> "ReconnectConfig":
        if self.max_delay_seconds < self.base_delay_seconds:
            raise ValueError("max_delay_seconds must be >= base_delay_seconds")
        return self


class HistoryConfig(BaseModel):
    """History aggregation configuration."""

    max_points: int = Field(
        default=60,
        ge=1,
        description="Points kept per agent (oldest dropped first)",
    )
    commit_interval_seconds: float = Field(
        default=1.5,
        gt=0,
        description="Seconds between history commit ticks",
    )
    refresh_interval_seconds: float = Field(
        default=2.0,
        gt=0,
        description="Seconds between latest-value refresh notifications",
    )


class ServerConfig(BaseModel):
    """Server configuration."""

    host: str = Field(default="0.0.0.0", description="Bind host")
    port: int = Field(default=8002, ge=1, le=65535, description="Bind port")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="text", description="Log format: json or text")


class Settings(BaseModel):
    """
    Main settings class for horizon-stream.

    Loads configuration from YAML file and environment variables.
    Environment variables take precedence over file values.
    """

    stream: StreamConfig = Field(default_factory=StreamConfig)
    reconnect: ReconnectConfig = Field(default_factory=ReconnectConfig)
    history: HistoryConfig = Field(default_factory=HistoryConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# =============================================================================
# Configuration Loading
# =============================================================================

def load_config(config_path: Optional[str] = None) -> Settings:
    """
    Load configuration from YAML file and environment variables.

    Priority (highest to lowest):
        1. Environment variables
        2. YAML config file
        3. Default values

    Args:
        config_path: Path to config.yaml. If None, searches common locations.

    Returns:
        Settings: Loaded configuration
    """
    if config_path is None:
        search_paths = [
            Path("config.yaml"),
            Path("config.yml"),
            Path(__file__).parent.parent.parent / "config.yaml",
        ]
        for path in search_paths:
            if path.exists():
                config_path = str(path)
                break

    config_data = {}
    if config_path and Path(config_path).exists():
        logger.info(f"Loading config from: {config_path}")
        with open(config_path, "r") as f:
            config_data = yaml.safe_load(f) or {}
    else:
        logger.debug("No config file found, using defaults and environment variables")

    _apply_env_overrides(config_data)

    return Settings.model_validate(config_data)


def _apply_env_overrides(config_data: dict) -> None:
    """Apply environment variable overrides to config data."""

    # Stream settings
    if env_url := os.environ.get("HORIZON_BASE_URL"):
        config_data.setdefault("stream", {})["base_url"] = env_url
    if env_token := os.environ.get("HORIZON_TOKEN"):
        config_data.setdefault("stream", {})["token"] = env_token
    if env_agent := os.environ.get("HORIZON_AGENT_ID"):
        config_data.setdefault("stream", {})["agent_id"] = int(env_agent)

    # Reconnect settings
    if env_base := os.environ.get("HORIZON_RECONNECT_BASE_DELAY"):
        config_data.setdefault("reconnect", {})["base_delay_seconds"] = float(env_base)
    if env_max := os.environ.get("HORIZON_RECONNECT_MAX_DELAY"):
        config_data.setdefault("reconnect", {})["max_delay_seconds"] = float(env_max)
    if env_attempts := os.environ.get("HORIZON_MAX_RECONNECTS"):
        config_data.setdefault("reconnect", {})["max_attempts"] = int(env_attempts)

    # History settings
    if env_points := os.environ.get("HORIZON_HISTORY_MAX_POINTS"):
        config_data.setdefault("history", {})["max_points"] = int(env_points)
    if env_commit := os.environ.get("HORIZON_COMMIT_INTERVAL"):
        config_data.setdefault("history", {})["commit_interval_seconds"] = float(env_commit)
    if env_refresh := os.environ.get("HORIZON_REFRESH_INTERVAL"):
        config_data.setdefault("history", {})["refresh_interval_seconds"] = float(env_refresh)

    # Server settings (container platforms use PORT)
    if env_port := os.environ.get("PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)
    elif env_port := os.environ.get("HORIZON_PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)

    # Logging settings
    if env_log := os.environ.get("HORIZON_LOG_LEVEL"):
        config_data.setdefault("logging", {})["level"] = env_log


def setup_logging(settings: Settings) -> None:
    """Configure logging based on settings."""
    log_level = getattr(logging, settings.logging.level.upper(), logging.INFO)

    if settings.logging.format == "json":
        log_format = '{"time": "%(asctime)s", "level": "%(levelname)s", "module": "%(name)s", "message": "%(message)s"}'
    else:
        log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=log_level,
        format=log_format,
        datefmt="%Y-%m-%dT%H:%M:%S",
    )

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(max(log_level, logging.WARNING))


# =============================================================================
# Global Settings Instance
# =============================================================================

# Global settings instance - loaded on import
settings = load_config()
