"""Server-sent event stream: framing, normalization and reconnection.

The server pushes events in two shapes: pre-wrapped
(``{"directory": ..., "payload": {"type": ..., "properties": ...}}``) and flat
(``{"type": ..., "properties": ...}``). Both are normalized here into a
``ServerEvent`` so nothing past this module sees the wire shape.
"""

from __future__ import annotations

import asyncio
import json
import logging
from contextlib import aclosing
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from opencode_remote.errors import OpencodeRemoteError, StreamError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable

    from opencode_remote.api import OpencodeApi

logger = logging.getLogger(__name__)

DEFAULT_RECONNECT_DELAY = 2.0
EVENT_PATH = "/event"

SYNC_EVENT_PREFIXES: tuple[str, ...] = ("session.", "message.")
SYNC_EVENT_TYPES: frozenset[str] = frozenset({"todo.updated"})


@dataclass(frozen=True)
class ServerEvent:
    """Canonical event pushed by the server."""

    type: str
    session_id: str | None = None
    properties: dict[str, Any] = field(default_factory=dict)
    directory: str | None = None

    @property
    def triggers_sync(self) -> bool:
        """Return True for events that can change sessions, messages or todos."""
        return self.type.startswith(SYNC_EVENT_PREFIXES) or self.type in SYNC_EVENT_TYPES


def _extract_session_id(event_type: str, properties: dict[str, Any]) -> str | None:
    """Find the session an event refers to, if it names one."""
    for key in ("sessionID", "sessionId"):
        value = properties.get(key)
        if isinstance(value, str) and value:
            return value
    info = properties.get("info")
    if isinstance(info, dict):
        value = info.get("sessionID")
        if isinstance(value, str) and value:
            return value
        if event_type.startswith("session."):
            value = info.get("id")
            if isinstance(value, str) and value:
                return value
    return None


def normalize_event(data: Any) -> ServerEvent | None:
    """Normalize one decoded frame.

    Returns None for heartbeats and frames without a recognizable type.
    """
    if not isinstance(data, dict):
        return None
    directory = data.get("directory") if isinstance(data.get("directory"), str) else None
    if "payload" in data:
        payload = data["payload"]
    elif "type" in data:
        payload = {"type": data["type"], "properties": data.get("properties")}
    else:
        return None
    if not isinstance(payload, dict):
        return None
    event_type = payload.get("type")
    if not isinstance(event_type, str) or not event_type:
        return None
    properties = payload.get("properties")
    if not isinstance(properties, dict):
        properties = {}
    return ServerEvent(
        type=event_type,
        session_id=_extract_session_id(event_type, properties),
        properties=properties,
        directory=directory,
    )


def decode_frame(frame: str) -> ServerEvent | None:
    """Decode and normalize one SSE frame; malformed JSON yields None."""
    try:
        data = json.loads(frame)
    except json.JSONDecodeError:
        logger.debug("Dropping malformed event frame: %.120s", frame)
        return None
    return normalize_event(data)


async def iter_sse_events(lines: AsyncIterator[str]) -> AsyncIterator[ServerEvent]:
    """Group ``data:`` lines into frames and yield the normalized events."""
    buffer: list[str] = []
    async for raw_line in lines:
        line = raw_line.rstrip("\r\n")
        if line.startswith("data:"):
            buffer.append(line.removeprefix("data:").lstrip())
            continue
        if line.strip() or not buffer:
            continue
        frame = "\n".join(buffer)
        buffer.clear()
        if not frame.strip():
            continue
        event = decode_frame(frame)
        if event is not None:
            yield event
    if buffer:
        logger.debug("Discarding unterminated event frame at end of stream")


class EventStreamClient:
    """Keeps one event stream open, reconnecting after a fixed delay."""

    def __init__(
        self,
        api: OpencodeApi,
        *,
        reconnect_delay: float = DEFAULT_RECONNECT_DELAY,
    ) -> None:
        """Initialize the stream client.

        Args:
            api: REST client providing the transport, URL and credentials.
            reconnect_delay: Seconds to wait before reopening a failed stream.
        """
        self._api = api
        self._reconnect_delay = reconnect_delay
        self._stopped = asyncio.Event()
        self.connections = 0

    @property
    def stopped(self) -> bool:
        """Return True once ``stop()`` has been called."""
        return self._stopped.is_set()

    def stop(self) -> None:
        """Ask ``run()`` to exit; safe to call repeatedly."""
        self._stopped.set()

    async def events(self) -> AsyncIterator[ServerEvent]:
        """Open one connection and yield its events until it ends.

        Raises:
            StreamError: If the connection cannot be opened or drops.
        """
        url = self._api.build_url(EVENT_PATH)
        headers = self._api.auth_headers(accept="text/event-stream")
        try:
            async with self._api.transport.stream("GET", url, headers=headers) as response:
                if not 200 <= response.status < 300:
                    msg = f"Event stream failed with HTTP {response.status}"
                    raise StreamError(msg)
                self.connections += 1
                logger.info("Event stream connected to %s", url)
                async for event in iter_sse_events(response.lines):
                    yield event
        except StreamError:
            raise
        except OpencodeRemoteError as exc:
            raise StreamError(str(exc)) from exc

    async def run(
        self,
        on_event: Callable[[ServerEvent], Awaitable[None] | None],
        on_error: Callable[[StreamError], None],
    ) -> None:
        """Stream events forever, reporting failures and reconnecting.

        Returns only after ``stop()``; cancellation propagates.
        """
        self._stopped.clear()
        while not self.stopped:
            try:
                async with aclosing(self.events()) as stream:
                    async for event in stream:
                        if self.stopped:
                            return
                        result = on_event(event)
                        if asyncio.iscoroutine(result):
                            await result
                error = StreamError("Event stream closed by server")
            except StreamError as exc:
                error = exc
            if self.stopped:
                return
            logger.warning(
                "Event stream interrupted, reconnecting in %.1fs: %s",
                self._reconnect_delay,
                error,
            )
            on_error(error)
            try:
                await asyncio.wait_for(self._stopped.wait(), timeout=self._reconnect_delay)
            except TimeoutError:
                continue
