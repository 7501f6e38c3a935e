"""Canonical snapshot of everything the client shows.

``SyncState`` is immutable. ``StateStore.update`` swaps in a new snapshot in
one step and then notifies listeners, so a reader never observes a list
refresh or a detail refresh half applied.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from opencode_remote.models.config import ServerConfig

if TYPE_CHECKING:
    from collections.abc import Callable

    from opencode_remote.models.api import CommandInfo, TodoItem
    from opencode_remote.models.domain import Session, TranscriptMessage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncState:
    """Immutable snapshot of server-derived state."""

    config: ServerConfig = dataclasses.field(default_factory=ServerConfig)
    sessions: tuple[Session, ...] = ()
    selected_session_id: str | None = None
    messages: tuple[TranscriptMessage, ...] = ()
    todos: tuple[TodoItem, ...] = ()
    diff_files: int = 0
    commands: tuple[CommandInfo, ...] = ()
    server_version: str | None = None
    last_error: str | None = None
    refreshing_sessions: bool = False
    refreshing_detail: bool = False

    @property
    def selected_session(self) -> Session | None:
        """Return the selected session from the current list, if present."""
        if self.selected_session_id is None:
            return None
        for session in self.sessions:
            if session.id == self.selected_session_id:
                return session
        return None

    def find_session(self, session_id: str) -> Session | None:
        """Return a session by id."""
        return next((session for session in self.sessions if session.id == session_id), None)


class StateStore:
    """Holds the current ``SyncState`` and notifies observers on change."""

    def __init__(self, initial: SyncState | None = None) -> None:
        self._state = initial or SyncState()
        self._listeners: list[Callable[[SyncState, SyncState], None]] = []

    @property
    def state(self) -> SyncState:
        """Return the current snapshot."""
        return self._state

    def update(self, **changes: Any) -> SyncState:
        """Replace the snapshot with a copy carrying ``changes``."""
        previous = self._state
        current = dataclasses.replace(previous, **changes)
        if current == previous:
            return current
        self._state = current
        for listener in list(self._listeners):
            try:
                listener(previous, current)
            except Exception:
                logger.exception("State listener %r failed", listener)
        return current

    def subscribe(self, listener: Callable[[SyncState, SyncState], None]) -> Callable[[], None]:
        """Register a ``listener(previous, current)``; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def set_error(self, message: str) -> None:
        """Record the newest error, replacing any previous one."""
        self.update(last_error=message)

    def clear_error(self) -> None:
        """Clear the error slot."""
        self.update(last_error=None)
