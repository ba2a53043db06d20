"""Configuration — reads all settings from environment variables."""

import os

from pagesnap.env_utils import ConfigError, get_env, get_env_float, get_env_int, get_env_millis

# Target page
URL: str = os.getenv("URL", "").strip()
USERNAME: str = get_env("USERNAME")
PASSWORD: str = get_env("PASSWORD")

# Scheduling (env values are milliseconds)
UPDATE_TIME_MARGIN_SECONDS: float = get_env_millis("UPDATE_TIME_MARGIN", 10000)
POST_LOAD_DELAY_SECONDS: float = get_env_millis("POST_LOAD_DELAY", 2000)
RENDER_TIMEOUT_SECONDS: float = get_env_float("RENDER_TIMEOUT_SECONDS", 120.0)

# Browser
WIDTH: int = get_env_int("WIDTH", 800)
HEIGHT: int = get_env_int("HEIGHT", 600)
BROWSER_DATA_DIR: str = os.getenv("BROWSER_DATA_DIR", "./data/")
ANIMATION_PLAYBACK_RATE: int = get_env_int("ANIMATION_PLAYBACK_RATE", 20)

# Server
PORT: int = get_env_int("PORT", 8000)
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()


def validate() -> None:
    """Refuse to start without a target URL."""
    if not URL:
        raise ConfigError("URL env var required")
    if WIDTH <= 0 or HEIGHT <= 0:
        raise ConfigError(f"Viewport must be positive, got {WIDTH}x{HEIGHT}")
    if UPDATE_TIME_MARGIN_SECONDS < 0:
        raise ConfigError("UPDATE_TIME_MARGIN must not be negative")
    if POST_LOAD_DELAY_SECONDS < 0:
        raise ConfigError("POST_LOAD_DELAY must not be negative")
