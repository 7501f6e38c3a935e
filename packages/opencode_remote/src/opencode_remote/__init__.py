from opencode_remote.api import OpencodeApi
from opencode_remote.completion import CompletionDetector, NotificationSink
from opencode_remote.composer import ComposerInput, filter_sessions, parse_composer
from opencode_remote.config_store import ConfigStore, JsonConfigStore, MemoryConfigStore
from opencode_remote.coordinator import RefreshScope, SyncCoordinator, build_coordinator
from opencode_remote.errors import (
    DecodeError,
    HttpError,
    OpencodeRemoteError,
    StreamError,
    TransportError,
    UnhealthyServerError,
)
from opencode_remote.events import EventStreamClient, ServerEvent, normalize_event
from opencode_remote.logging_utils import configure_logging
from opencode_remote.models import ServerConfig, Session, Settings, load_settings
from opencode_remote.store import StateStore, SyncState
from opencode_remote.transport import HttpxTransport, Transport, TransportResponse

__all__ = [
    "CompletionDetector",
    "ComposerInput",
    "ConfigStore",
    "DecodeError",
    "EventStreamClient",
    "HttpError",
    "HttpxTransport",
    "JsonConfigStore",
    "MemoryConfigStore",
    "NotificationSink",
    "OpencodeApi",
    "OpencodeRemoteError",
    "RefreshScope",
    "ServerConfig",
    "ServerEvent",
    "Session",
    "Settings",
    "StateStore",
    "StreamError",
    "SyncCoordinator",
    "SyncState",
    "Transport",
    "TransportError",
    "TransportResponse",
    "UnhealthyServerError",
    "build_coordinator",
    "configure_logging",
    "filter_sessions",
    "load_settings",
    "normalize_event",
    "parse_composer",
]
