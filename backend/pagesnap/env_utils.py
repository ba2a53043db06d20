"""Environment helpers with optional Docker secret file support."""

from __future__ import annotations

from pathlib import Path
import os


class ConfigError(RuntimeError):
    """Raised when required configuration is missing or malformed."""


def get_env(name: str, default: str = "") -> str:
    """Resolve environment value with optional *_FILE fallback."""
    value = os.getenv(name)
    if value is not None and value != "":
        return value

    file_path = (os.getenv(f"{name}_FILE") or "").strip()
    if file_path:
        try:
            secret = Path(file_path).read_text(encoding="utf-8").strip()
            if secret:
                return secret
        except OSError:
            return default

    return default


def get_env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw.strip(), 10)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from exc


def get_env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw.strip())
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from exc


def get_env_millis(name: str, default_ms: int) -> float:
    """Read a millisecond env value and return it as seconds."""
    return get_env_int(name, default_ms) / 1000.0
