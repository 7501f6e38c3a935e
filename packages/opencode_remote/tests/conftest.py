from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Callable, Iterator
from contextlib import asynccontextmanager

import httpx
import pytest
from opencode_remote.api import OpencodeApi
from opencode_remote.models.config import ServerConfig
from opencode_remote.transport import HttpxTransport, StreamResponse


@pytest.fixture(autouse=True)
def _set_required_env(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    monkeypatch.setenv("OPENCODE_REMOTE_CONFIG_FILE", str(tmp_path / "config.json"))
    monkeypatch.setenv("OPENCODE_REMOTE_LOG_LEVEL", "WARNING")
    for name in (
        "OPENCODE_REMOTE_POLL_INTERVAL",
        "OPENCODE_REMOTE_RECONNECT_DELAY",
        "OPENCODE_REMOTE_CONNECT_TIMEOUT",
        "OPENCODE_REMOTE_READ_TIMEOUT",
        "OPENCODE_REMOTE_HEALTH_TIMEOUT",
        "OPENCODE_REMOTE_MESSAGE_LIMIT",
        "OPENCODE_REMOTE_PROMPT_SETTLE_DELAY",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def _restore_package_logger() -> Iterator[None]:
    logger = logging.getLogger("opencode_remote")
    handlers, level = list(logger.handlers), logger.level
    yield
    logger.handlers[:] = handlers
    logger.setLevel(level)


@pytest.fixture
def server_config() -> ServerConfig:
    return ServerConfig(host="10.0.0.5", port=4096, username="opencode", password="secret")


@pytest.fixture
def make_api(server_config: ServerConfig) -> Callable[..., OpencodeApi]:
    """Build an ``OpencodeApi`` whose requests go to a MockTransport handler."""

    def factory(handler: Callable[[httpx.Request], httpx.Response]) -> OpencodeApi:
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return OpencodeApi(server_config, HttpxTransport(client))

    return factory


async def _replay(items: list[object]) -> AsyncIterator[str]:
    for item in items:
        if isinstance(item, Exception):
            raise item
        if isinstance(item, asyncio.Event):
            await item.wait()
            continue
        yield item


class ScriptedStreamTransport:
    """Each ``stream()`` call replays the next script of lines (or status).

    A script item may be a line, an exception to raise mid-stream, or an
    ``asyncio.Event`` that holds the stream open until it is set.
    """

    def __init__(self, scripts: list[object]) -> None:
        self._scripts = list(scripts)
        self.opened = 0
        self.headers: list[dict[str, str]] = []

    async def request(self, method, url, *, headers, body=None):
        raise AssertionError("unexpected REST call")

    @asynccontextmanager
    async def stream(self, method, url, *, headers):
        self.opened += 1
        self.headers.append(dict(headers))
        script = self._scripts.pop(0) if self._scripts else []
        if isinstance(script, int):
            yield StreamResponse(status=script, lines=_replay([]))
            return
        yield StreamResponse(status=200, lines=_replay(script))

    async def aclose(self) -> None:
        return None


@pytest.fixture
def stream_transport() -> Callable[[list[object]], ScriptedStreamTransport]:
    """Build a stream-only transport that replays scripted connections."""
    return ScriptedStreamTransport


@pytest.fixture
def sse_frame() -> Callable[[dict], list[str]]:
    """Render a payload as the lines of one SSE frame."""

    def render(payload: dict) -> list[str]:
        return [f"data: {json.dumps(payload)}", ""]

    return render
