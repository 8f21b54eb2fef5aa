"""Shared test helpers for unit tests.

``ScriptedTransport`` stands in for ``httpx.AsyncHTTPTransport``: it answers
from a table of canned routes and emits the same httpcore ``trace`` events a
real connection pool would, so the recording transport can be exercised
without a network.
"""

from __future__ import annotations

import asyncio
import gzip
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass, field

import httpx
import pytest


@dataclass
class Route:
    """A canned response."""

    status: int = 200
    headers: list[tuple[str, str]] = field(default_factory=list)
    body: bytes = b""
    error: Exception | None = None
    body_error: Exception | None = None
    stall: asyncio.Event | None = None


class FailingStream(httpx.AsyncByteStream):
    """Response stream that yields some bytes and then fails."""

    def __init__(self, first_chunk: bytes, exc: Exception) -> None:
        self._first_chunk = first_chunk
        self._exc = exc

    async def __aiter__(self) -> AsyncIterator[bytes]:
        yield self._first_chunk
        raise self._exc


class StalledStream(httpx.AsyncByteStream):
    """Response stream that yields some bytes and then waits for a release."""

    def __init__(self, first_chunk: bytes, release: asyncio.Event, started: asyncio.Event) -> None:
        self._first_chunk = first_chunk
        self._release = release
        self._started = started

    async def __aiter__(self) -> AsyncIterator[bytes]:
        yield self._first_chunk
        self._started.set()
        await self._release.wait()


class ScriptedTransport(httpx.AsyncBaseTransport):
    """Transport answering from canned routes and emitting trace events.

    Connections are simulated per host: the first request to a host "opens"
    a connection (connect_tcp and, for https, start_tls events); later ones
    reuse it when ``keep_alive`` is on.
    """

    def __init__(self, *, keep_alive: bool = True, emit_trace: bool = True) -> None:
        self.routes: dict[tuple[str, str], Route | Callable[[httpx.Request], Route]] = {}
        self.keep_alive = keep_alive
        self.emit_trace = emit_trace
        self.requests: list[httpx.Request] = []
        self.bodies: list[bytes] = []
        self.events: list[str] = []
        self.closed = False
        self.body_stalled = asyncio.Event()
        self._open_hosts: set[str] = set()

    def add(
        self,
        url: str,
        status: int = 200,
        *,
        method: str = "GET",
        headers: list[tuple[str, str]] | None = None,
        body: bytes = b"",
        error: Exception | None = None,
        body_error: Exception | None = None,
        stall: asyncio.Event | None = None,
    ) -> None:
        self.routes[(method, url)] = Route(status, headers or [], body, error, body_error, stall)

    def redirect(self, url: str, location: str, status: int = 302, *, method: str = "GET") -> None:
        self.add(url, status, method=method, headers=[("Location", location)], body=b"")

    async def _emit(self, request: httpx.Request, name: str) -> None:
        self.events.append(name)
        trace = request.extensions.get("trace")
        if self.emit_trace and trace is not None:
            await trace(name, {"request": request})

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        host = request.url.netloc.decode("ascii")

        if host not in self._open_hosts:
            await self._emit(request, "connection.connect_tcp.started")
            await self._emit(request, "connection.connect_tcp.complete")
            if request.url.scheme == "https":
                await self._emit(request, "connection.start_tls.started")
                await self._emit(request, "connection.start_tls.complete")
            if self.keep_alive:
                self._open_hosts.add(host)

        await self._emit(request, "http11.send_request_headers.started")
        await self._emit(request, "http11.send_request_headers.complete")
        await self._emit(request, "http11.send_request_body.started")
        body = b"".join([chunk async for chunk in request.stream])
        self.bodies.append(body)
        await self._emit(request, "http11.send_request_body.complete")
        await self._emit(request, "http11.receive_response_headers.started")

        route = self.routes.get((request.method, str(request.url)))
        if callable(route):
            route = route(request)
        if route is None:
            route = Route(404, [("Content-Type", "text/plain")], b"not found")
        if route.error is not None:
            raise route.error

        await self._emit(request, "http11.receive_response_headers.complete")
        # Emitted after the headers, as httpcore does while the body streams.
        await self._emit(request, "http11.receive_response_body.started")

        stream: httpx.AsyncByteStream
        if route.stall is not None:
            stream = StalledStream(route.body, route.stall, self.body_stalled)
        elif route.body_error is not None:
            stream = FailingStream(route.body, route.body_error)
        else:
            stream = httpx.ByteStream(route.body)
        return httpx.Response(
            route.status,
            headers=route.headers,
            stream=stream,
            extensions={"http_version": b"HTTP/1.1"},
        )

    async def aclose(self) -> None:
        self.closed = True


def gzip_body(data: bytes) -> bytes:
    """Gzip-compress a response body."""
    return gzip.compress(data)


@pytest.fixture
def scripted() -> ScriptedTransport:
    """A fresh scripted transport."""
    return ScriptedTransport()


@pytest.fixture
def make_transport() -> Callable[..., ScriptedTransport]:
    """Factory for additional scripted transports."""
    return ScriptedTransport


@pytest.fixture
def gzip_compress() -> Callable[[bytes], bytes]:
    return gzip_body


def route_error(message: str = "connection refused") -> Callable[[httpx.Request], Route]:
    """Route callable raising a connect error bound to the request."""

    def _route(request: httpx.Request) -> Route:
        return Route(error=httpx.ConnectError(message, request=request))

    return _route


@pytest.fixture
def failing_route() -> Callable[..., Callable[[httpx.Request], Route]]:
    return route_error
