"""Completion of HAR entries once a response body has been fully read."""

from __future__ import annotations

import base64
import contextlib
from collections.abc import Callable, Sequence
from typing import Any

import httpx

from fetchhar.config import MAX_BODY_SIZE
from fetchhar.har.normalize import header_values
from fetchhar.har.timings import compute_timings
from fetchhar.logging import get_logger
from fetchhar.observe.correlation import PendingEntry
from fetchhar.observe.redirects import flatten

LOG = get_logger(__name__)

ResponseFactory = Callable[[httpx.Response, bytes], httpx.Response]

TEXT_MIME_KEYWORDS = ("json", "html", "text", "xml", "javascript", "css", "x-www-form-urlencoded")


def _is_text_mime(mime: str) -> bool:
    """Check if MIME type represents a text format."""
    mime_lower = mime.lower()
    return any(kw in mime_lower for kw in TEXT_MIME_KEYWORDS)


def is_compressed(headers: list[dict[str, str]]) -> bool:
    """Return True if a Content-Encoding other than ``identity`` was applied."""
    encodings = [
        coding.strip().lower()
        for value in header_values(headers, "content-encoding")
        for coding in value.split(",")
    ]
    return any(coding and coding != "identity" for coding in encodings)


def _read_body(response: httpx.Response | None) -> bytes | None:
    if response is None:
        return None
    try:
        return response.content
    except httpx.ResponseNotRead:
        return None


def _fill_content(
    har_content: dict[str, Any],
    response: httpx.Response,
    content: bytes,
    max_body_size: int,
) -> None:
    har_content["size"] = len(content)
    if not content:
        return
    if len(content) > max_body_size:
        har_content["comment"] = f"Body of {len(content)} bytes not captured (limit {max_body_size})"
        return
    mime = har_content.get("mimeType", "")
    if not mime or _is_text_mime(mime):
        har_content["text"] = response.text
    else:
        har_content["text"] = base64.b64encode(content).decode("ascii")
        har_content["encoding"] = "base64"


def finalize_entry(
    pending: PendingEntry,
    response: httpx.Response | None,
    page_ref: str,
    max_body_size: int = MAX_BODY_SIZE,
) -> dict[str, Any]:
    """Complete a pending entry with timings, content and body sizes.

    Args:
        pending: Entry filed by the transport.
        response: The matching response with its body already read, or None
            when the decoded body is not available (then only transferred
            bytes are known).
        page_ref: Page id the entry belongs to.
        max_body_size: Largest decoded body whose text is embedded.

    Returns:
        The finished HAR entry dict.
    """
    pending.timestamps.mark("received")
    timings, total = compute_timings(pending.timestamps)

    entry = pending.entry
    entry["pageref"] = page_ref
    entry["timings"] = timings
    entry["time"] = total

    har_response = entry["response"]
    har_content = har_response["content"]
    compressed = is_compressed(har_response["headers"])
    content = _read_body(response)

    if response is not None and content is not None:
        _fill_content(har_content, response, content, max_body_size)
    elif not compressed:
        har_content["size"] = pending.raw_body_size

    if compressed:
        har_response["bodySize"] = pending.raw_body_size
        if har_content["size"] >= 0:
            har_content["compression"] = har_content["size"] - pending.raw_body_size
    else:
        har_response["bodySize"] = har_content["size"]

    return entry


def finalize_chain(
    pending: PendingEntry,
    response: httpx.Response,
    page_ref: str,
    max_body_size: int = MAX_BODY_SIZE,
) -> list[dict[str, Any]]:
    """Finalize a request and every redirect hop that led to it.

    Ancestors are matched to ``response.history`` (oldest first) when the
    lengths agree, so their decoded bodies can be recorded too.

    Returns:
        Finished entries, oldest first; the last one belongs to ``response``.
    """
    *ancestors, final = flatten(pending)
    history: Sequence[httpx.Response | None] = list(getattr(response, "history", None) or [])
    if len(history) != len(ancestors):
        if ancestors:
            LOG.debug(
                "redirect_history_mismatch",
                hops=len(ancestors),
                history=len(history),
            )
        history = [None] * len(ancestors)

    entries = [
        finalize_entry(ancestor, previous, page_ref, max_body_size)
        for ancestor, previous in zip(ancestors, history, strict=True)
    ]
    entries.append(finalize_entry(final, response, page_ref, max_body_size))
    return entries


def rehydrate_response(response: httpx.Response, content: bytes) -> httpx.Response:
    """Build a replacement response carrying an already-read body.

    Status, request, extensions and history are carried over. The body is
    the decoded one, so ``Content-Encoding`` is dropped and ``Content-Length``
    describes the decoded bytes.

    Args:
        response: Original response, already read.
        content: Its decoded body.

    Returns:
        A new, fully read ``httpx.Response``.
    """
    headers = httpx.Headers(response.headers)
    if "content-encoding" in headers:
        del headers["content-encoding"]
        headers["content-length"] = str(len(content))

    try:
        request: httpx.Request | None = response.request
    except RuntimeError:
        request = None

    replacement = httpx.Response(
        status_code=response.status_code,
        headers=headers,
        content=content,
        request=request,
        extensions=dict(response.extensions),
        history=list(response.history),
        default_encoding=response.default_encoding,
    )
    with contextlib.suppress(RuntimeError):
        replacement.elapsed = response.elapsed
    return replacement
