"""Typed REST client for the coding-assistant server.

One coroutine per server capability. Each call builds the URL from the
current ``ServerConfig``, attaches Basic-Auth credentials and decodes the JSON
body with pydantic. Non-2xx responses become ``HttpError`` with the most
specific message the error body offers.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import TYPE_CHECKING, Any, TypeVar
from urllib.parse import quote

from pydantic import TypeAdapter, ValidationError

from opencode_remote.errors import DecodeError, HttpError
from opencode_remote.models.api import (
    CommandInfo,
    ErrorEnvelope,
    FileDiff,
    HealthResponse,
    MessageEnvelope,
    SendCommandRequest,
    SendPromptRequest,
    SessionCreateRequest,
    SessionDto,
    SessionStatusDto,
    SessionUpdateRequest,
    TextPartInput,
    TodoItem,
)
from opencode_remote.models.domain import Session, join_sessions
from opencode_remote.transport import HttpxTransport, Transport, TransportResponse

if TYPE_CHECKING:
    from pydantic import BaseModel

    from opencode_remote.models.config import ServerConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MESSAGE_LIMIT = 100

_SESSIONS = TypeAdapter(list[SessionDto])
_STATUSES = TypeAdapter(dict[str, SessionStatusDto])
_MESSAGES = TypeAdapter(list[MessageEnvelope])
_TODOS = TypeAdapter(list[TodoItem])
_DIFFS = TypeAdapter(list[FileDiff])
_COMMANDS = TypeAdapter(list[CommandInfo])
_BOOL = TypeAdapter(bool)
_HEALTH = TypeAdapter(HealthResponse)
_SESSION = TypeAdapter(SessionDto)
_MESSAGE = TypeAdapter(MessageEnvelope)


def with_directory(path: str, directory: str | None) -> str:
    """Append a ``directory`` query parameter when one is given and non-blank."""
    if directory is None or not directory.strip():
        return path
    joiner = "&" if "?" in path else "?"
    return f"{path}{joiner}directory={quote(directory, safe='')}"


def resolve_error_message(status: int, body: str) -> str:
    """Pick the human-readable message from an error response.

    Checks ``data.message``, ``message`` and ``name`` in that order, then
    falls back to the raw body, then to the status code.
    """
    try:
        envelope = ErrorEnvelope.model_validate_json(body)
    except ValidationError:
        envelope = None
    if envelope is not None:
        message = envelope.resolved_message()
        if message:
            return message
    if body.strip():
        return body.strip()
    return f"HTTP {status}"


class OpencodeApi:
    """REST client bound to a (replaceable) server configuration."""

    def __init__(
        self,
        config: ServerConfig,
        transport: Transport | None = None,
        *,
        message_limit: int = DEFAULT_MESSAGE_LIMIT,
    ) -> None:
        """Initialize the client.

        Args:
            config: Server connection details; may be swapped later via ``config``.
            transport: Transport to send requests through. Defaults to httpx.
            message_limit: Default page size for ``load_messages``.
        """
        self.config = config
        self.transport: Transport = transport or HttpxTransport()
        self._message_limit = message_limit

    async def aclose(self) -> None:
        """Release the transport."""
        await self.transport.aclose()

    # -------------------------------------------------------------------------
    # Request plumbing
    # -------------------------------------------------------------------------

    def build_url(self, path: str, directory: str | None = None) -> str:
        """Return the absolute URL for a server path."""
        return self.config.base_url + with_directory(path, directory)

    def auth_headers(self, *, accept: str = "application/json") -> dict[str, str]:
        """Return the headers every request carries."""
        return {"Authorization": self.config.authorization(), "Accept": accept}

    async def _send(
        self,
        method: str,
        path: str,
        *,
        directory: str | None = None,
        payload: BaseModel | dict[str, Any] | None = None,
    ) -> TransportResponse:
        headers = self.auth_headers()
        body: str | None = None
        if payload is not None:
            headers["Content-Type"] = "application/json"
            if isinstance(payload, dict):
                body = json.dumps(payload)
            else:
                body = payload.model_dump_json(exclude_none=True)
        url = self.build_url(path, directory)
        logger.debug("%s %s", method, url)
        response = await self.transport.request(method, url, headers=headers, body=body)
        if not response.ok:
            message = resolve_error_message(response.status, response.body)
            logger.debug("%s %s failed with %d: %s", method, url, response.status, message)
            raise HttpError(response.status, message)
        return response

    @staticmethod
    def _decode(response: TransportResponse, adapter: TypeAdapter[T], what: str) -> T:
        try:
            return adapter.validate_json(response.body)
        except ValidationError as exc:
            msg = f"Unexpected {what} payload: {exc.error_count()} validation error(s)"
            raise DecodeError(msg) from exc

    def _decode_bool(self, response: TransportResponse, what: str) -> bool:
        if response.status == 204 or not response.body.strip():
            return True
        return self._decode(response, _BOOL, what)

    # -------------------------------------------------------------------------
    # Server capabilities
    # -------------------------------------------------------------------------

    async def health(self) -> HealthResponse:
        """Return the server health report."""
        response = await self._send("GET", "/global/health")
        return self._decode(response, _HEALTH, "health")

    async def list_sessions(self) -> list[SessionDto]:
        """Return every session known to the server."""
        response = await self._send("GET", "/session")
        return self._decode(response, _SESSIONS, "session list")

    async def list_statuses(self) -> dict[str, SessionStatusDto]:
        """Return the status map keyed by session id."""
        response = await self._send("GET", "/session/status")
        return self._decode(response, _STATUSES, "session status")

    async def fetch_sessions(self) -> list[Session]:
        """Fetch sessions and statuses concurrently and join them."""
        sessions, statuses = await asyncio.gather(self.list_sessions(), self.list_statuses())
        return join_sessions(sessions, statuses)

    async def list_commands(self) -> list[CommandInfo]:
        """Return the slash commands the server advertises."""
        response = await self._send("GET", "/command")
        return self._decode(response, _COMMANDS, "command list")

    async def create_session(self, title: str | None = None) -> SessionDto:
        """Create a session, optionally titled."""
        response = await self._send("POST", "/session", payload=SessionCreateRequest(title=title))
        return self._decode(response, _SESSION, "session")

    async def rename_session(self, session_id: str, title: str) -> SessionDto:
        """Change a session's title."""
        response = await self._send(
            "PATCH", f"/session/{session_id}", payload=SessionUpdateRequest(title=title)
        )
        return self._decode(response, _SESSION, "session")

    async def delete_session(self, session_id: str) -> bool:
        """Delete a session."""
        response = await self._send("DELETE", f"/session/{session_id}")
        return self._decode_bool(response, "delete")

    async def load_messages(
        self,
        session_id: str,
        limit: int | None = None,
        directory: str | None = None,
    ) -> list[MessageEnvelope]:
        """Return the most recent message envelopes of a session."""
        page = limit if limit is not None else self._message_limit
        response = await self._send(
            "GET", f"/session/{session_id}/message?limit={page}", directory=directory
        )
        return self._decode(response, _MESSAGES, "message list")

    async def load_todo(self, session_id: str) -> list[TodoItem]:
        """Return the session's todo list in server order."""
        response = await self._send("GET", f"/session/{session_id}/todo")
        return self._decode(response, _TODOS, "todo list")

    async def load_diff(self, session_id: str) -> list[FileDiff]:
        """Return the file-level diff of a session."""
        response = await self._send("GET", f"/session/{session_id}/diff")
        return self._decode(response, _DIFFS, "diff")

    async def send_prompt(
        self,
        session_id: str,
        text: str,
        directory: str | None = None,
        *,
        wait: bool = False,
    ) -> MessageEnvelope | None:
        """Send a text prompt.

        With ``wait=False`` the fire-and-forget endpoint is used and None is
        returned once the server accepts the prompt. With ``wait=True`` the
        call blocks until the assistant reply is produced.
        """
        payload = SendPromptRequest(parts=[TextPartInput(text=text)])
        if not wait:
            await self._send(
                "POST", f"/session/{session_id}/prompt_async", directory=directory, payload=payload
            )
            return None
        response = await self._send(
            "POST", f"/session/{session_id}/message", directory=directory, payload=payload
        )
        return self._decode(response, _MESSAGE, "message")

    async def send_command(
        self,
        session_id: str,
        command: str,
        arguments: str = "",
        directory: str | None = None,
    ) -> MessageEnvelope | None:
        """Run a slash command in a session."""
        response = await self._send(
            "POST",
            f"/session/{session_id}/command",
            directory=directory,
            payload=SendCommandRequest(command=command, arguments=arguments),
        )
        if not response.body.strip():
            return None
        return self._decode(response, _MESSAGE, "message")

    async def abort(self, session_id: str) -> bool:
        """Abort whatever the session is running."""
        response = await self._send("POST", f"/session/{session_id}/abort", payload={})
        return self._decode_bool(response, "abort")
