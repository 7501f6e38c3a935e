"""Client-side views derived from server payloads."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from opencode_remote.models.api import MessageEnvelope, SessionDto, SessionStatusDto

SessionStatus = Literal["idle", "busy", "retry", "unknown"]

KNOWN_STATUSES: frozenset[str] = frozenset({"idle", "busy", "retry"})
RUNNING_STATUSES: frozenset[str] = frozenset({"busy", "retry"})


@dataclass(frozen=True)
class Session:
    """Session joined with its effective status."""

    id: str
    title: str
    directory: str
    created_at: int
    updated_at: int
    status: SessionStatus = "idle"
    additions: int = 0
    deletions: int = 0
    files: int = 0

    @property
    def is_running(self) -> bool:
        """Return True while the assistant is working on this session."""
        return self.status in RUNNING_STATUSES


@dataclass(frozen=True)
class TranscriptMessage:
    """Visible transcript entry (envelopes with text content only)."""

    id: str
    role: str
    created_at: int
    text: str
    completed_at: int | None = None


def effective_status(status: SessionStatusDto | None) -> SessionStatus:
    """Resolve a session's status entry, defaulting to idle when absent."""
    if status is None:
        return "idle"
    if status.type in KNOWN_STATUSES:
        return status.type  # type: ignore[return-value]
    return "unknown"


def join_sessions(
    sessions: Iterable[SessionDto],
    statuses: Mapping[str, SessionStatusDto],
) -> list[Session]:
    """Join sessions with the status map and order them by most recent update."""
    joined: list[Session] = []
    seen: set[str] = set()
    for dto in sessions:
        if dto.id in seen:
            continue
        seen.add(dto.id)
        summary = dto.summary
        joined.append(
            Session(
                id=dto.id,
                title=dto.title,
                directory=dto.directory,
                created_at=dto.time.created,
                updated_at=dto.time.updated,
                status=effective_status(statuses.get(dto.id)),
                additions=summary.additions if summary else 0,
                deletions=summary.deletions if summary else 0,
                files=summary.files if summary else 0,
            )
        )
    joined.sort(key=lambda session: session.updated_at, reverse=True)
    return joined


def build_transcript(envelopes: Iterable[MessageEnvelope]) -> list[TranscriptMessage]:
    """Keep envelopes that carry non-blank text, in server order."""
    transcript: list[TranscriptMessage] = []
    for envelope in envelopes:
        text = envelope.text()
        if not text:
            continue
        transcript.append(
            TranscriptMessage(
                id=envelope.info.id,
                role=envelope.info.role,
                created_at=envelope.info.time.created,
                completed_at=envelope.info.time.completed,
                text=text,
            )
        )
    return transcript
