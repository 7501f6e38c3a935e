"""Wire models for the coding-assistant server API."""

from __future__ import annotations

from typing import Any

from pydantic import Field, model_validator

from opencode_remote.models.base import ApiModel


class HealthResponse(ApiModel):
    """Response payload for ``GET /global/health``."""

    healthy: bool
    version: str = ""


class SessionTime(ApiModel):
    """Creation and update timestamps (epoch millis)."""

    created: int = 0
    updated: int = 0


class SessionSummary(ApiModel):
    """Change summary attached to a session."""

    additions: int = 0
    deletions: int = 0
    files: int = 0


class SessionDto(ApiModel):
    """Session as returned by the server."""

    id: str
    title: str = ""
    directory: str = ""
    time: SessionTime = Field(default_factory=SessionTime)
    summary: SessionSummary | None = None

    @model_validator(mode="before")
    @classmethod
    def _lift_flat_timestamps(cls, data: Any) -> Any:
        """Accept ``created``/``updated`` at the top level when ``time`` is absent."""
        if isinstance(data, dict) and "time" not in data:
            flat = {key: data[key] for key in ("created", "updated") if key in data}
            if flat:
                return {**data, "time": flat}
        return data


class SessionStatusDto(ApiModel):
    """Entry of the ``GET /session/status`` map."""

    type: str
    attempt: int | None = None
    message: str | None = None
    next: int | None = None


class MessageTime(ApiModel):
    """Message timestamps (epoch millis)."""

    created: int = 0
    completed: int | None = None


class MessageInfo(ApiModel):
    """Envelope header for a message."""

    id: str
    role: str
    session_id: str = Field(default="", alias="sessionID")
    time: MessageTime = Field(default_factory=MessageTime)


class MessagePart(ApiModel):
    """One part of a message; only ``text`` parts carry rendered content."""

    id: str = ""
    type: str
    text: str | None = None
    tool: str | None = None
    state: Any = None


class MessageEnvelope(ApiModel):
    """Message header plus its ordered parts."""

    info: MessageInfo
    parts: list[MessagePart] = Field(default_factory=list)

    def text(self) -> str:
        """Return the non-blank text parts joined by newlines."""
        chunks = [part.text for part in self.parts if part.type == "text" and part.text]
        return "\n".join(chunk for chunk in chunks if chunk.strip()).strip()


class TodoItem(ApiModel):
    """Todo entry for a session."""

    id: str
    content: str
    status: str = ""
    priority: str = ""


class FileDiff(ApiModel):
    """Per-file diff entry."""

    file: str
    additions: int = 0
    deletions: int = 0


class CommandInfo(ApiModel):
    """Slash command advertised by the server."""

    name: str
    description: str | None = None


class ErrorBody(ApiModel):
    """Nested ``data`` object of an error envelope."""

    message: str | None = None


class ErrorEnvelope(ApiModel):
    """Error payload returned on non-2xx responses."""

    data: ErrorBody | None = None
    message: str | None = None
    name: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _keep_well_typed(cls, data: Any) -> Any:
        """Drop mistyped fields so one odd field does not hide the others."""
        if not isinstance(data, dict):
            return data
        nested = data.get("data")
        nested_message = nested.get("message") if isinstance(nested, dict) else None
        return {
            "data": {"message": nested_message} if isinstance(nested_message, str) else None,
            "message": data["message"] if isinstance(data.get("message"), str) else None,
            "name": data["name"] if isinstance(data.get("name"), str) else None,
        }

    def resolved_message(self) -> str | None:
        """Return the first non-empty of ``data.message``, ``message``, ``name``."""
        candidates = (self.data.message if self.data else None, self.message, self.name)
        for candidate in candidates:
            if candidate and candidate.strip():
                return candidate.strip()
        return None


class SessionCreateRequest(ApiModel):
    """Request body for creating a session."""

    title: str | None = None


class SessionUpdateRequest(ApiModel):
    """Request body for renaming a session."""

    title: str


class TextPartInput(ApiModel):
    """Text part of an outgoing prompt."""

    type: str = "text"
    text: str


class SendPromptRequest(ApiModel):
    """Request body for sending a prompt."""

    parts: list[TextPartInput]


class SendCommandRequest(ApiModel):
    """Request body for running a slash command."""

    command: str
    arguments: str = ""
