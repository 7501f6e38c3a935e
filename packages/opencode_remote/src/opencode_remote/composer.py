"""Helpers for user input: composer parsing and session search."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal

if TYPE_CHECKING:
    from collections.abc import Iterable

    from opencode_remote.models.domain import Session


@dataclass(frozen=True)
class ComposerInput:
    """Parsed composer text: a prompt or a slash command."""

    kind: Literal["prompt", "command"]
    text: str = ""
    command: str = ""
    arguments: str = ""


def parse_composer(text: str) -> ComposerInput | None:
    """Turn composer text into a prompt or a command.

    ``/name rest of line`` becomes command ``name`` with arguments
    ``rest of line``. Blank input, or a bare ``/``, yields None.
    """
    stripped = text.strip()
    if not stripped:
        return None
    if not stripped.startswith("/"):
        return ComposerInput(kind="prompt", text=stripped)
    body = stripped[1:]
    command = body.split(" ", 1)[0].strip()
    if not command:
        return None
    arguments = body[len(command) :].strip()
    return ComposerInput(kind="command", command=command, arguments=arguments)


def filter_sessions(sessions: Iterable[Session], query: str) -> list[Session]:
    """Return sessions whose title or directory contains ``query`` (case-insensitive)."""
    needle = query.strip().lower()
    if not needle:
        return list(sessions)
    return [
        session
        for session in sessions
        if needle in session.title.lower() or needle in session.directory.lower()
    ]
