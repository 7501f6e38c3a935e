"""HTTP transport used by the REST and event stream clients.

The rest of the package only depends on the ``Transport`` protocol. The
default implementation wraps ``httpx.AsyncClient``; tests inject an
``httpx.MockTransport``-backed client or a hand-written fake.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

import httpx

from opencode_remote.errors import TransportError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Mapping

logger = logging.getLogger(__name__)

DEFAULT_CONNECT_TIMEOUT = 8.0
DEFAULT_READ_TIMEOUT = 120.0

# RequestError covers network, decoding and redirect failures; InvalidURL is
# raised before a request exists (e.g. a host such as "a:b").
_REQUEST_FAILURES = (httpx.RequestError, httpx.InvalidURL)


@dataclass(frozen=True)
class TransportResponse:
    """Raw response: status code and decoded body text."""

    status: int
    body: str

    @property
    def ok(self) -> bool:
        """Return True for 2xx responses."""
        return 200 <= self.status < 300


@dataclass(frozen=True)
class StreamResponse:
    """Open streaming response: status code and a line iterator."""

    status: int
    lines: AsyncIterator[str]


class Transport(Protocol):
    """Capability to send one HTTP request or open one streaming request."""

    async def request(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str],
        body: str | None = None,
    ) -> TransportResponse: ...

    def stream(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str],
    ) -> AbstractStreamContext: ...

    async def aclose(self) -> None: ...


class AbstractStreamContext(Protocol):
    """Async context manager returned by ``Transport.stream``."""

    async def __aenter__(self) -> StreamResponse: ...

    async def __aexit__(self, *exc_info: object) -> bool | None: ...


class HttpxTransport:
    """Transport backed by ``httpx.AsyncClient``."""

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        read_timeout: float = DEFAULT_READ_TIMEOUT,
    ) -> None:
        """Initialize the transport.

        Args:
            client: Optional preconfigured client (tests pass a MockTransport client).
            connect_timeout: Seconds to wait for a TCP connection.
            read_timeout: Seconds to wait for a response body on regular requests.
        """
        self._connect_timeout = connect_timeout
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(read_timeout, connect=connect_timeout)
        )

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def request(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str],
        body: str | None = None,
    ) -> TransportResponse:
        """Send a request and return the raw status and body."""
        try:
            response = await self._client.request(
                method,
                url,
                headers=dict(headers),
                content=body.encode("utf-8") if body is not None else None,
            )
        except _REQUEST_FAILURES as exc:
            msg = f"Network error: cannot reach {url} ({_describe(exc)})"
            raise TransportError(msg) from exc
        return TransportResponse(status=response.status_code, body=response.text)

    @asynccontextmanager
    async def stream(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str],
    ) -> AsyncIterator[StreamResponse]:
        """Open a streaming request; the read timeout is disabled."""
        timeout = httpx.Timeout(None, connect=self._connect_timeout)
        try:
            async with self._client.stream(
                method, url, headers=dict(headers), timeout=timeout
            ) as response:
                yield StreamResponse(
                    status=response.status_code,
                    lines=_iter_lines(response, url),
                )
        except _REQUEST_FAILURES as exc:
            msg = f"Network error: cannot reach {url} ({_describe(exc)})"
            raise TransportError(msg) from exc


async def _iter_lines(response: httpx.Response, url: str) -> AsyncIterator[str]:
    """Yield response lines, mapping mid-stream failures to TransportError."""
    try:
        async for line in response.aiter_lines():
            yield line
    except (*_REQUEST_FAILURES, httpx.StreamError) as exc:
        msg = f"Connection to {url} dropped ({_describe(exc)})"
        raise TransportError(msg) from exc


def _describe(exc: Exception) -> str:
    """Return a short description of an httpx failure."""
    detail = str(exc).strip()
    return detail or type(exc).__name__
