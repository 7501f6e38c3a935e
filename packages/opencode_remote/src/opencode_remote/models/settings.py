"""Pydantic models for application settings."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel

DEFAULT_CONFIG_FILE = "~/.config/opencode-remote/config.json"


class Settings(BaseModel, frozen=True):
    """Runtime tunables loaded from environment variables."""

    config_file: Path = Path(DEFAULT_CONFIG_FILE).expanduser()
    poll_interval: float = 3.5
    reconnect_delay: float = 2.0
    connect_timeout: float = 8.0
    read_timeout: float = 120.0
    health_timeout: float = 12.0
    message_limit: int = 100
    prompt_settle_delay: float = 0.4
    log_level: str = "WARNING"


def _positive_float(name: str, default: str) -> float:
    """Read a strictly positive float from the environment."""
    raw = os.getenv(name, default)
    try:
        value = float(raw)
    except ValueError:
        msg = f"{name} must be a number, got {raw!r}"
        raise ValueError(msg) from None
    if value <= 0:
        msg = f"{name} must be greater than zero, got {raw!r}"
        raise ValueError(msg)
    return value


def _non_negative_float(name: str, default: str) -> float:
    """Read a float >= 0 from the environment."""
    raw = os.getenv(name, default)
    try:
        value = float(raw)
    except ValueError:
        msg = f"{name} must be a number, got {raw!r}"
        raise ValueError(msg) from None
    if value < 0:
        msg = f"{name} must not be negative, got {raw!r}"
        raise ValueError(msg)
    return value


def load_settings() -> Settings:
    """Load settings from environment variables with defaults."""
    load_dotenv()

    limit_raw = os.getenv("OPENCODE_REMOTE_MESSAGE_LIMIT", "100")
    try:
        message_limit = int(limit_raw)
    except ValueError:
        msg = f"OPENCODE_REMOTE_MESSAGE_LIMIT must be an integer, got {limit_raw!r}"
        raise ValueError(msg) from None
    if message_limit < 1:
        msg = "OPENCODE_REMOTE_MESSAGE_LIMIT must be at least 1"
        raise ValueError(msg)

    level_raw = os.getenv("OPENCODE_REMOTE_LOG_LEVEL", "WARNING")
    log_level = level_raw.strip().upper()
    if log_level not in logging.getLevelNamesMapping():
        msg = f"OPENCODE_REMOTE_LOG_LEVEL must be a logging level name, got {level_raw!r}"
        raise ValueError(msg)

    return Settings(
        config_file=Path(
            os.getenv("OPENCODE_REMOTE_CONFIG_FILE", DEFAULT_CONFIG_FILE)
        ).expanduser(),
        poll_interval=_positive_float("OPENCODE_REMOTE_POLL_INTERVAL", "3.5"),
        reconnect_delay=_positive_float("OPENCODE_REMOTE_RECONNECT_DELAY", "2.0"),
        connect_timeout=_positive_float("OPENCODE_REMOTE_CONNECT_TIMEOUT", "8"),
        read_timeout=_positive_float("OPENCODE_REMOTE_READ_TIMEOUT", "120"),
        health_timeout=_positive_float("OPENCODE_REMOTE_HEALTH_TIMEOUT", "12"),
        message_limit=message_limit,
        prompt_settle_delay=_non_negative_float("OPENCODE_REMOTE_PROMPT_SETTLE_DELAY", "0.4"),
        log_level=log_level,
    )
