"""A fetch()-style callable built on ``httpx.AsyncClient``.

``HttpxFetch`` is the default function wrapped by :func:`fetchhar.with_har`.
Any other async callable with the same shape can be wrapped instead, as long
as it honours the ``headers`` and ``transport`` options.
"""

from __future__ import annotations

import http.cookiejar
from collections import OrderedDict
from typing import Any, Literal

import httpx

from fetchhar.exceptions import RedirectError
from fetchhar.logging import get_logger

LOG = get_logger(__name__)

RedirectMode = Literal["follow", "manual", "error"]
REDIRECT_MODES = ("follow", "manual", "error")

# Clients kept for caller transports; the least recently used one is closed.
MAX_CLIENTS = 16


def _stateless_cookies() -> http.cookiejar.CookieJar:
    # fetch() does not keep a cookie jar between calls. httpx.Cookies copies
    # cookies out of a Cookies argument, so the jar itself is handed over.
    policy = http.cookiejar.DefaultCookiePolicy(allowed_domains=[])
    return http.cookiejar.CookieJar(policy=policy)


class _BorrowedTransport(httpx.AsyncBaseTransport):
    """Transport view that sends through a caller transport but never closes it."""

    def __init__(self, transport: httpx.AsyncBaseTransport) -> None:
        self.transport = transport

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        return await self.transport.handle_async_request(request)

    async def aclose(self) -> None:
        pass


class HttpxFetch:
    """Async fetch function returning streamed ``httpx.Response`` objects.

    One ``httpx.AsyncClient`` is created per distinct transport passed to a
    call, so connections are pooled per transport. At most ``MAX_CLIENTS``
    of those are kept. Clients send through caller transports without
    owning them: closing a client never closes the transport it was given.
    Responses are returned unread; read them with ``await response.aread()``.

    Args:
        **client_kwargs: Extra keyword arguments for every ``httpx.AsyncClient``
            (``timeout``, ``headers``, ``max_redirects``, ...).
    """

    def __init__(self, **client_kwargs: Any) -> None:
        client_kwargs.setdefault("cookies", _stateless_cookies())
        self._client_kwargs = client_kwargs
        self._default_client: httpx.AsyncClient | None = None
        self._clients: OrderedDict[int, tuple[httpx.AsyncBaseTransport, httpx.AsyncClient]] = (
            OrderedDict()
        )

    async def _client_for(self, transport: httpx.AsyncBaseTransport | None) -> httpx.AsyncClient:
        if transport is None:
            if self._default_client is None:
                self._default_client = httpx.AsyncClient(**self._client_kwargs)
            return self._default_client

        key = id(transport)
        if key in self._clients:
            self._clients.move_to_end(key)
            return self._clients[key][1]

        client = httpx.AsyncClient(transport=_BorrowedTransport(transport), **self._client_kwargs)
        self._clients[key] = (transport, client)
        while len(self._clients) > MAX_CLIENTS:
            _, (_, evicted) = self._clients.popitem(last=False)
            await evicted.aclose()
        return client

    async def __call__(
        self,
        input: str | httpx.URL | httpx.Request,
        *,
        method: str | None = None,
        headers: Any = None,
        params: Any = None,
        content: bytes | str | None = None,
        data: Any = None,
        json: Any = None,
        redirect: RedirectMode = "follow",
        timeout: Any = httpx.USE_CLIENT_DEFAULT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> httpx.Response:
        """Send a request and return the response with its body unread.

        Args:
            input: URL string, ``httpx.URL`` or ``httpx.Request``. A request's
                method, headers and body are reused; ``headers`` override its
                headers.
            method: HTTP method (default ``GET`` or the request's method).
            headers: Request headers (mapping, ``httpx.Headers`` or pairs).
            params: Query parameters merged into the URL.
            content: Raw request body.
            data: Form fields, sent URL-encoded.
            json: JSON-serializable request body.
            redirect: ``follow``, ``manual`` (return the 3xx) or ``error``.
            timeout: Request timeout; the client default when omitted.
            transport: Transport to send through.

        Returns:
            The streamed response.

        Raises:
            ValueError: If ``redirect`` is not a known mode.
            RedirectError: If a redirect is received in ``error`` mode.
        """
        if redirect not in REDIRECT_MODES:
            raise ValueError(f"Unsupported redirect mode: {redirect}. Supported: follow, manual, error")

        client = await self._client_for(transport)

        url: str | httpx.URL
        if isinstance(input, httpx.Request):
            merged = httpx.Headers(input.headers)
            if headers is not None:
                merged.update(headers)
            headers = merged
            if content is None and data is None and json is None:
                content = await input.aread()
            method = method or input.method
            url = input.url
        else:
            url = input

        request = client.build_request(
            method or "GET",
            url,
            headers=headers,
            params=params,
            content=content,
            data=data,
            json=json,
            timeout=timeout,
        )
        response = await client.send(request, stream=True, follow_redirects=redirect == "follow")

        if redirect == "error" and response.has_redirect_location:
            await response.aclose()
            location = response.headers["location"]
            raise RedirectError(
                f"Redirect to {location} refused (redirect mode 'error')",
                status_code=response.status_code,
                location=location,
            )
        return response

    async def aclose(self) -> None:
        """Close every client. Transports passed in by callers stay open."""
        if self._default_client is not None:
            await self._default_client.aclose()
            self._default_client = None
        while self._clients:
            _, (_, client) = self._clients.popitem()
            await client.aclose()
