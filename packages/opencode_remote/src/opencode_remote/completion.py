"""One-shot "assistant finished" signal for the selected session."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from opencode_remote.models.domain import Session

logger = logging.getLogger(__name__)


class NotificationSink(Protocol):
    """Receives completion signals (sound, desktop notification, bell, ...)."""

    def notify_completed(self, session: Session) -> None: ...


class CompletionDetector:
    """Track running -> not running transitions of the selected session.

    Only one boolean is kept. Selecting another session resets it without
    emitting, so switching away from a busy session is not a completion.
    """

    def __init__(self, sink: NotificationSink | None = None) -> None:
        self._sink = sink
        self._was_running = False
        self.signals = 0

    @property
    def was_running(self) -> bool:
        """Return the tracked running state."""
        return self._was_running

    def reset(self) -> None:
        """Forget the tracked state (selection changed)."""
        self._was_running = False

    def observe(self, session: Session | None) -> bool:
        """Feed the selected session after a list commit.

        Returns:
            True when a completion signal was emitted.
        """
        if session is None:
            self._was_running = False
            return False
        running = session.is_running
        if self._was_running and not running:
            self._was_running = False
            self._emit(session)
            return True
        self._was_running = running
        return False

    def _emit(self, session: Session) -> None:
        self.signals += 1
        logger.info("Session %s finished (%s)", session.id, session.status)
        if self._sink is None:
            return
        try:
            self._sink.notify_completed(session)
        except Exception:
            logger.exception("Notification sink failed for session %s", session.id)
