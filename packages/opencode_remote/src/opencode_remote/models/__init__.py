from opencode_remote.models.api import (
    CommandInfo,
    ErrorEnvelope,
    FileDiff,
    HealthResponse,
    MessageEnvelope,
    MessageInfo,
    MessagePart,
    SessionDto,
    SessionStatusDto,
    TodoItem,
)
from opencode_remote.models.config import ServerConfig
from opencode_remote.models.domain import (
    Session,
    SessionStatus,
    TranscriptMessage,
    build_transcript,
    effective_status,
    join_sessions,
)
from opencode_remote.models.settings import Settings, load_settings

__all__ = [
    "CommandInfo",
    "ErrorEnvelope",
    "FileDiff",
    "HealthResponse",
    "MessageEnvelope",
    "MessageInfo",
    "MessagePart",
    "ServerConfig",
    "Session",
    "SessionDto",
    "SessionStatus",
    "SessionStatusDto",
    "Settings",
    "TodoItem",
    "TranscriptMessage",
    "build_transcript",
    "effective_status",
    "join_sessions",
    "load_settings",
]
