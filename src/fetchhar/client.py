"""Instrumented fetch: HAR capture around any fetch()-style callable.

``with_har`` returns a ``HarFetch`` -- an async callable with the same call
shape as the fetch it wraps. Each call is tagged with a correlation token,
routed through a :class:`~fetchhar.observe.transport.HarTransport`, and,
once the response body has been read, turned into HAR entries: one per
physical request, redirect hops included.

Example::

    from fetchhar import create_har_log, get_har_entry, with_har

    har = create_har_log()
    async with with_har(har=har) as fetch:
        response = await fetch("https://example.com/api?page=1")
        print(response.json(), get_har_entry(response)["timings"])
"""

from __future__ import annotations

import inspect
from collections import OrderedDict
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

import httpx

from fetchhar.config import FetchHarSettings, get_settings
from fetchhar.exceptions import InvalidRequestError
from fetchhar.fetch import HttpxFetch
from fetchhar.har.log import append_entries
from fetchhar.logging import get_logger
from fetchhar.observe.correlation import CorrelationTable, generate_token
from fetchhar.observe.finalize import ResponseFactory, finalize_chain, rehydrate_response
from fetchhar.observe.transport import HarTransport, wrap_transport

LOG = get_logger(__name__)

Fetch = Callable[..., Awaitable[httpx.Response]]
EntryCallback = Callable[[dict[str, Any]], Any]

HAR_ENTRY_EXTENSION = "har_entry"

# Recording adapters kept for caller transports, least recently used dropped first.
MAX_ADAPTERS = 16


def get_har_entry(response: httpx.Response) -> dict[str, Any] | None:
    """Return the HAR entry recorded for a response, or None if capture was off."""
    return response.extensions.get(HAR_ENTRY_EXTENSION)


def request_url(input: Any) -> httpx.URL:
    """Derive the absolute http(s) URL a fetch input points at.

    Args:
        input: URL string, ``httpx.URL``, ``httpx.Request``, or any object
            with a ``url`` attribute.

    Returns:
        The parsed URL.

    Raises:
        InvalidRequestError: If no absolute http(s) URL can be derived.
    """
    if isinstance(input, (str, httpx.URL)):
        raw: Any = input
    else:
        raw = getattr(input, "url", None)
    if raw is None:
        raise InvalidRequestError(
            f"Cannot derive a URL from fetch input of type {type(input).__name__}", input
        )

    try:
        url = httpx.URL(str(raw))
    except httpx.InvalidURL as exc:
        raise InvalidRequestError(f"Invalid URL {raw!s}: {exc}", input) from exc

    if url.scheme not in ("http", "https") or not url.host:
        raise InvalidRequestError(f"Expected an absolute http(s) URL, got {raw!s}", input)
    return url


def add_header(headers: Any, name: str, value: str) -> Any:
    """Return a copy of ``headers`` with ``name`` set to ``value``.

    The original container is never modified and keeps its type (mapping,
    ``httpx.Headers`` or list of pairs).

    Raises:
        InvalidRequestError: If ``headers`` is of an unsupported type.
    """
    lower = name.lower()
    if headers is None:
        return {name: value}
    if isinstance(headers, httpx.Headers):
        copy = httpx.Headers(headers)
        copy[name] = value
        return copy
    if isinstance(headers, Mapping):
        merged = {key: val for key, val in headers.items() if str(key).lower() != lower}
        merged[name] = value
        return merged
    if isinstance(headers, (list, tuple)):
        pairs = [pair for pair in headers if str(pair[0]).lower() != lower]
        pairs.append((name, value))
        return pairs
    raise InvalidRequestError(f"Unsupported headers type: {type(headers).__name__}", headers)


class HarFetch:
    """Fetch wrapper recording HAR entries for every call.

    One instance owns one correlation table and one recording transport,
    shared by all calls made through it.

    Args:
        base_fetch: Fetch callable to wrap. Must accept ``headers`` and
            ``transport`` keyword options. Defaults to a new :class:`HttpxFetch`.
        har: Default HAR log dict to append entries to, or False to disable capture.
        har_page_ref: Default pageref for entries.
        on_har_entry: Default callback invoked once per finished entry
            (sync or async).
        response_factory: Builds the response returned to the caller from the
            original response and its read body. Defaults to
            :func:`~fetchhar.observe.finalize.rehydrate_response`.
        transport: Transport performing the I/O. Defaults to a new
            ``httpx.AsyncHTTPTransport`` owned by this instance.
        table: Correlation table to use. A new one by default.
        settings: Settings to use instead of the process-wide ones.
    """

    def __init__(
        self,
        base_fetch: Fetch | None = None,
        *,
        har: dict[str, Any] | bool | None = None,
        har_page_ref: str | None = None,
        on_har_entry: EntryCallback | None = None,
        response_factory: ResponseFactory | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        table: CorrelationTable | None = None,
        settings: FetchHarSettings | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.table = table if table is not None else CorrelationTable()
        self.har = har
        self.har_page_ref = har_page_ref
        self.on_har_entry = on_har_entry
        self.response_factory = response_factory or rehydrate_response

        self._owns_fetch = base_fetch is None
        self._fetch: Fetch = base_fetch if base_fetch is not None else HttpxFetch()
        self._owns_transport = transport is None
        self.transport: HarTransport = wrap_transport(
            transport if transport is not None else httpx.AsyncHTTPTransport(),
            table=self.table,
            header_name=self.settings.header_name,
        )
        self._adapters: OrderedDict[int, HarTransport] = OrderedDict()

    def _transport_for(self, transport: Any) -> HarTransport:
        if transport is None:
            return self.transport
        key = id(transport)
        adapter = self._adapters.get(key)
        if adapter is not None:
            self._adapters.move_to_end(key)
            return adapter

        # Adapters hold no resources of their own and never close the caller transport.
        adapter = wrap_transport(transport, table=self.table, header_name=self.settings.header_name)
        self._adapters[key] = adapter
        while len(self._adapters) > MAX_ADAPTERS:
            self._adapters.popitem(last=False)
        return adapter

    async def __call__(
        self,
        input: Any,
        *,
        har: dict[str, Any] | bool | None = None,
        har_page_ref: str | None = None,
        on_har_entry: EntryCallback | None = None,
        **options: Any,
    ) -> httpx.Response:
        """Fetch ``input`` and record HAR entries for it.

        Args:
            input: Anything the wrapped fetch accepts as its first argument.
            har: HAR log dict to append to, or False to skip capture.
            har_page_ref: pageref for this call's entries.
            on_har_entry: Callback for this call's entries.
            **options: Passed through to the wrapped fetch.

        Returns:
            The response. When capture is on it is a replacement with the body
            already read and the entry available via :func:`get_har_entry`.

        Raises:
            InvalidRequestError: If no http(s) URL can be derived from ``input``.
        """
        har = self.har if har is None else har
        page_ref = har_page_ref or self.har_page_ref or self.settings.page_ref
        on_har_entry = on_har_entry or self.on_har_entry

        if har is False:
            return await self._fetch(input, **options)

        url = request_url(input)
        token = generate_token()
        options["headers"] = add_header(options.get("headers"), self.settings.header_name, token)
        options["transport"] = self._transport_for(options.get("transport"))

        try:
            response = await self._fetch(input, **options)

            pending = self.table.get(token)
            if pending is None:
                LOG.info("har_capture_skipped", url=str(url), reason="correlation header not seen")
                return response

            try:
                content = await response.aread()
            finally:
                await response.aclose()

            entries = finalize_chain(pending, response, page_ref, self.settings.max_body_size)
        except Exception as exc:
            LOG.debug(
                "har_request_failed",
                url=str(url),
                error=str(exc),
                exc_type=type(exc).__name__,
            )
            raise
        finally:
            self.table.delete(token)

        replacement = self.response_factory(response, content)
        replacement.extensions[HAR_ENTRY_EXTENSION] = entries[-1]

        if isinstance(har, dict):
            append_entries(har, entries)
        if on_har_entry is not None:
            for entry in entries:
                result = on_har_entry(entry)
                if inspect.isawaitable(result):
                    await result

        LOG.debug(
            "har_entry_recorded",
            url=str(url),
            status=replacement.status_code,
            entries=len(entries),
            time=entries[-1]["time"],
        )
        return replacement

    async def aclose(self) -> None:
        """Close the wrapped fetch and transport if this instance created them."""
        if self._owns_fetch:
            closer = getattr(self._fetch, "aclose", None)
            if closer is not None:
                await closer()
        if self._owns_transport:
            await self.transport.aclose()

    async def __aenter__(self) -> HarFetch:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


def with_har(base_fetch: Fetch | None = None, **defaults: Any) -> HarFetch:
    """Wrap a fetch callable so every call records HAR entries.

    Args:
        base_fetch: Fetch callable to wrap; defaults to :class:`HttpxFetch`.
        **defaults: Keyword arguments for :class:`HarFetch` (``har``,
            ``har_page_ref``, ``on_har_entry``, ``response_factory``,
            ``transport``, ``table``, ``settings``).

    Returns:
        The instrumented fetch.
    """
    return HarFetch(base_fetch, **defaults)
