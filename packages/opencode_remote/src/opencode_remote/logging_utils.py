"""Logging helpers that tag records with the server being synchronized."""

from __future__ import annotations

import logging
from contextvars import ContextVar

PACKAGE_LOGGER = "opencode_remote"
LOG_FORMAT = "%(asctime)s %(name)s - %(levelname)s - %(server)s - %(message)s"

_server_ctx: ContextVar[str | None] = ContextVar("opencode_remote_server", default=None)


def get_server_context() -> str | None:
    """Return the server label bound to the current context, if any."""
    return _server_ctx.get()


def set_server_context(server: str | None) -> None:
    """Bind a server label to the current context (inherited by new tasks)."""
    _server_ctx.set(server)


class ServerContextFilter(logging.Filter):
    """Attach the current server label to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        """Inject ``server`` into the log record."""
        record.server = get_server_context() or "-"
        return True


def configure_logging(level: str | int = logging.WARNING) -> logging.Logger:
    """Install a stream handler on the package logger.

    Calling this more than once only updates the level.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level)
    installed = any(
        isinstance(flt, ServerContextFilter) for handler in logger.handlers for flt in handler.filters
    )
    if not installed:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler.addFilter(ServerContextFilter())
        logger.addHandler(handler)
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    return logger
