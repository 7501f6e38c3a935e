"""Persistence for the server connection configuration."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Protocol

from pydantic import ValidationError

from opencode_remote.models.config import ServerConfig

logger = logging.getLogger(__name__)


class ConfigStore(Protocol):
    """Loads and saves the ``ServerConfig``."""

    def load(self) -> ServerConfig: ...

    def save(self, config: ServerConfig) -> None: ...


class MemoryConfigStore:
    """In-process store; nothing survives a restart."""

    def __init__(self, config: ServerConfig | None = None) -> None:
        self._config = config or ServerConfig()

    def load(self) -> ServerConfig:
        """Return the held config."""
        return self._config

    def save(self, config: ServerConfig) -> None:
        """Replace the held config."""
        self._config = config


class JsonConfigStore:
    """Stores the config as a JSON file readable only by the owner."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path).expanduser()

    @property
    def path(self) -> Path:
        """Return the backing file path."""
        return self._path

    def load(self) -> ServerConfig:
        """Load the config, falling back to defaults when missing or unreadable."""
        if not self._path.exists():
            return ServerConfig()
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
            return ServerConfig.model_validate(data)
        except (OSError, json.JSONDecodeError, ValidationError) as exc:
            logger.warning("Ignoring unreadable config file %s: %s", self._path, exc)
            return ServerConfig()

    def save(self, config: ServerConfig) -> None:
        """Write the config, creating parent directories as needed."""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(config.model_dump(), indent=2)
        fd = os.open(self._path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(payload)
        logger.debug("Saved server config for %s to %s", config.redacted(), self._path)
