"""Configuration management for the load probe."""

import os
from typing import Optional

import yaml
from pydantic import BaseModel, Field


class ProbeConfig(BaseModel):
    """Main configuration for the probe service."""

    # Persistence
    state_path: str = Field(default="data/loadprobe-state.json", description="JSON file backing the key-value store")
    max_log_entries: int = Field(default=600, ge=1, description="Maximum number of outcomes kept in the timing log")

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")

    # Browser settings
    browser_headless: bool = Field(default=True, description="Run browser in headless mode")
    downloads_directory: Optional[str] = Field(default=None, description="Where probe downloads are saved (temp dir if unset)")

    # Probe timing
    probe_timeout_seconds: float = Field(default=320.0, gt=0, description="Hard upper bound on a single probe")
    download_grace_seconds: float = Field(default=5.0, ge=0, description="Wait after page load for a late download")

    # Scheduling
    min_interval_seconds: float = Field(default=10.0, gt=0, description="Smallest accepted probe interval")
    heartbeat_seconds: float = Field(default=30.0, gt=0, description="Keep-alive tick while the schedule is armed")

    # Command API
    api_host: str = Field(default="127.0.0.1", description="Bind address for the command API")
    api_port: int = Field(default=8765, description="Port for the command API")


def load_config(config_path: Optional[str] = None) -> ProbeConfig:
    """Load configuration from file or environment variables."""
    if config_path is None:
        config_path = os.getenv("LOADPROBE_CONFIG", "config/loadprobe.yaml")

    config_data = {}

    # Load from file if exists
    if os.path.exists(config_path):
        with open(config_path, "r") as f:
            config_data = yaml.safe_load(f) or {}

    # Override with environment variables
    env_overrides = {
        "state_path": os.getenv("LOADPROBE_STATE_PATH"),
        "log_level": os.getenv("LOG_LEVEL"),
        "browser_headless": os.getenv("BROWSER_HEADLESS"),
        "probe_timeout_seconds": os.getenv("PROBE_TIMEOUT_SECONDS"),
        "download_grace_seconds": os.getenv("DOWNLOAD_GRACE_SECONDS"),
        "api_host": os.getenv("LOADPROBE_HOST"),
        "api_port": os.getenv("LOADPROBE_PORT"),
    }

    # Filter out None values and convert types
    for key, value in env_overrides.items():
        if value is not None:
            if key in ["probe_timeout_seconds", "download_grace_seconds"]:
                value = float(value)
            elif key in ["api_port"]:
                value = int(value)
            elif key in ["browser_headless"]:
                value = value.lower() in ("true", "1", "yes")
            config_data[key] = value

    return ProbeConfig(**config_data)


def get_config() -> ProbeConfig:
    """Get the global configuration instance."""
    return load_config()
