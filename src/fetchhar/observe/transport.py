"""httpx transport decorator that records HAR data for correlated requests.

``HarTransport`` wraps any ``httpx.AsyncBaseTransport``. Requests that carry
the correlation header get:

- a ``trace`` extension that timestamps httpcore lifecycle events
  (connection, TLS, request written, response headers)
- a request body tee that forwards every chunk and keeps a copy
- a response stream that counts raw (still encoded) body bytes

When the response headers arrive a partial HAR entry is filed in the
correlation table under the request's token. Requests without the header
pass through untouched.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any

import httpx

from fetchhar.exceptions import UnsupportedTransportError
from fetchhar.har.normalize import (
    build_headers,
    build_post_data,
    build_query_string,
    parse_request_cookies,
    parse_response_cookies,
)
from fetchhar.har.timings import Timestamps
from fetchhar.logging import get_logger
from fetchhar.observe.correlation import CORRELATION_HEADER, CorrelationTable, PendingEntry
from fetchhar.observe.redirects import attach

LOG = get_logger(__name__)

TraceCallback = Callable[[str, dict[str, Any]], Awaitable[None]]

# httpcore trace event -> milestone. Name resolution runs inside connect_tcp,
# so there is no separate lookup event.
TRACE_MILESTONES: dict[str, str] = {
    "connection.connect_tcp.started": "socket",
    "connection.connect_unix_socket.started": "socket",
    "http11.send_request_headers.started": "socket",
    "http2.send_request_headers.started": "socket",
    "connection.connect_tcp.complete": "connect",
    "connection.connect_unix_socket.complete": "connect",
    "connection.start_tls.complete": "secure_connect",
    "http11.send_request_body.complete": "sent",
    "http2.send_request_body.complete": "sent",
    "http11.receive_response_headers.complete": "first_byte",
    "http2.receive_response_headers.complete": "first_byte",
}


class LifecycleObserver:
    """``trace`` extension callback recording milestones for one request.

    Stops recording once the response headers are in, so nothing is recorded
    against a keep-alive connection after it is handed to another request.
    A trace callback already present on the request is still called for
    every event.
    """

    def __init__(self, timestamps: Timestamps, chained: TraceCallback | None = None) -> None:
        self._timestamps = timestamps
        self._chained = chained
        self.detached = False

    async def __call__(self, event_name: str, info: dict[str, Any]) -> None:
        if not self.detached:
            milestone = TRACE_MILESTONES.get(event_name)
            if milestone is not None:
                self._timestamps.mark(milestone)
                if milestone == "first_byte":
                    self.detached = True
        if self._chained is not None:
            await self._chained(event_name, info)


class RequestBodyTee(httpx.AsyncByteStream):
    """Request stream that forwards chunks to the transport and keeps a copy."""

    def __init__(self, stream: httpx.AsyncByteStream, pending: PendingEntry) -> None:
        self._stream = stream
        self._pending = pending

    async def __aiter__(self) -> AsyncIterator[bytes]:
        async for chunk in self._stream:
            self._pending.request_body.extend(chunk)
            yield chunk
        self._pending.timestamps.mark("sent")

    async def aclose(self) -> None:
        await self._stream.aclose()


class ResponseBodyCounter(httpx.AsyncByteStream):
    """Response stream that counts transferred bytes and marks the end of the body."""

    def __init__(self, stream: httpx.AsyncByteStream, pending: PendingEntry) -> None:
        self._stream = stream
        self._pending = pending

    async def __aiter__(self) -> AsyncIterator[bytes]:
        async for chunk in self._stream:
            self._pending.raw_body_size += len(chunk)
            yield chunk
        self._pending.timestamps.mark("received")

    async def aclose(self) -> None:
        self._pending.timestamps.mark("received")
        self._pending.closed = True
        await self._stream.aclose()


def _redirect_url(request: httpx.Request, response: httpx.Response) -> str:
    location = response.headers.get("location")
    if not location:
        return ""
    try:
        return str(request.url.join(location))
    except httpx.InvalidURL:
        return location


def build_partial_entry(
    request: httpx.Request,
    response: httpx.Response,
    pending: PendingEntry,
) -> dict[str, Any]:
    """Build the HAR entry parts known once the response headers are in.

    Timings, content, and body size are filled in later by the finalizer.
    """
    request_headers = build_headers(request.headers)
    response_headers = build_headers(response.headers)
    body = bytes(pending.request_body)

    har_request: dict[str, Any] = {
        "method": request.method,
        "url": str(request.url),
        "httpVersion": response.http_version,
        "cookies": parse_request_cookies(request_headers),
        "headers": request_headers,
        "queryString": build_query_string(request.url),
        "headersSize": -1,
        "bodySize": len(body),
    }
    post_data = build_post_data(body, request.headers.get("content-type"))
    if post_data is not None:
        har_request["postData"] = post_data

    return {
        "startedDateTime": pending.timestamps.started_iso,
        "time": 0,
        "request": har_request,
        "response": {
            "status": response.status_code,
            "statusText": response.reason_phrase,
            "httpVersion": response.http_version,
            "cookies": parse_response_cookies(response_headers),
            "headers": response_headers,
            "content": {
                "size": -1,
                "mimeType": response.headers.get("content-type", ""),
            },
            "redirectURL": _redirect_url(request, response),
            "headersSize": -1,
            "bodySize": -1,
        },
        "cache": {
            "beforeRequest": None,
            "afterRequest": None,
        },
    }


class HarTransport(httpx.AsyncBaseTransport):
    """Transport decorator recording HAR data for requests with a correlation token.

    Composes with the wrapped transport instead of extending it, so any
    ``httpx.AsyncBaseTransport`` works and the wrapped object is never changed.

    Args:
        transport: Transport that performs the I/O. Defaults to a new
            ``httpx.AsyncHTTPTransport``.
        table: Correlation table shared with the fetch layer.
        header_name: Request header carrying the correlation token.
    """

    def __init__(
        self,
        transport: httpx.AsyncBaseTransport | None = None,
        *,
        table: CorrelationTable | None = None,
        header_name: str = CORRELATION_HEADER,
    ) -> None:
        self._transport = transport if transport is not None else httpx.AsyncHTTPTransport()
        self.table = table if table is not None else CorrelationTable()
        self.header_name = header_name

    @property
    def transport(self) -> httpx.AsyncBaseTransport:
        """The wrapped transport."""
        return self._transport

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        if not isinstance(request, httpx.Request):
            raise UnsupportedTransportError(
                f"Expected an httpx.Request, got {type(request).__name__}"
            )

        tokens = request.headers.get_list(self.header_name)
        if not tokens:
            return await self._transport.handle_async_request(request)

        token = tokens[0]
        pending = PendingEntry(token=token)
        observer = LifecycleObserver(pending.timestamps, request.extensions.get("trace"))
        tracked = httpx.Request(
            request.method,
            request.url,
            headers=request.headers,
            stream=RequestBodyTee(request.stream, pending),  # type: ignore[arg-type]
            extensions={**request.extensions, "trace": observer},
        )

        response = await self._transport.handle_async_request(tracked)

        # Transports that do not emit trace events still get a first byte mark.
        pending.timestamps.mark("first_byte")
        observer.detached = True

        pending.entry = build_partial_entry(request, response, pending)
        attach(self.table, token, pending)
        LOG.debug(
            "har_response_observed",
            token=token,
            method=request.method,
            url=str(request.url),
            status=response.status_code,
        )

        return httpx.Response(
            status_code=response.status_code,
            headers=response.headers,
            stream=ResponseBodyCounter(response.stream, pending),  # type: ignore[arg-type]
            extensions=response.extensions,
        )

    async def aclose(self) -> None:
        await self._transport.aclose()


def wrap_transport(
    transport: Any,
    *,
    table: CorrelationTable,
    header_name: str = CORRELATION_HEADER,
) -> HarTransport:
    """Adapt a caller-supplied transport into a :class:`HarTransport`.

    Args:
        transport: Object implementing ``handle_async_request``.
        table: Correlation table the adapter files entries into.
        header_name: Request header carrying the correlation token.

    Returns:
        ``transport`` itself if it already records into ``table``, else a new
        adapter around it.

    Raises:
        UnsupportedTransportError: If ``transport`` cannot handle async requests.
    """
    if isinstance(transport, HarTransport) and transport.table is table:
        return transport
    if not callable(getattr(transport, "handle_async_request", None)):
        raise UnsupportedTransportError(
            f"Unsupported transport {type(transport).__name__}: "
            "expected an httpx.AsyncBaseTransport"
        )
    return HarTransport(transport, table=table, header_name=header_name)
