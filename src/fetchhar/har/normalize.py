"""Conversion of transport headers, cookies, and params into HAR name/value lists.

Every function here is pure. Malformed items are dropped one at a time so a
single bad header or cookie never prevents the rest of an entry from being
built.
"""

from __future__ import annotations

import email.utils
import re
from collections.abc import Iterable, Mapping, Sequence
from typing import Any
from urllib.parse import parse_qsl

import httpx

from fetchhar.logging import get_logger

LOG = get_logger(__name__)

FORM_URLENCODED = "application/x-www-form-urlencoded"

# RFC 6265 cookie-name is an RFC 2616 token
_TOKEN_RE = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")


def _text(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode("latin-1")
    return str(value)


def _header_items(headers: Any) -> Iterable[tuple[Any, Any]]:
    """Yield raw (name, value) items from any supported header shape."""
    if isinstance(headers, httpx.Headers):
        yield from headers.raw
        return

    if isinstance(headers, Mapping):
        for name, values in headers.items():
            if isinstance(values, (list, tuple)):
                for value in values:
                    yield name, value
            else:
                yield name, values
        return

    if isinstance(headers, (str, bytes)) or not isinstance(headers, Sequence):
        LOG.debug("malformed_header_skipped", reason="unsupported shape", type=type(headers).__name__)
        return

    if headers and isinstance(headers[0], (tuple, list)):
        for item in headers:
            if isinstance(item, (tuple, list)) and len(item) == 2:
                yield item[0], item[1]
            else:
                LOG.debug("malformed_header_skipped", reason="not a pair", item=repr(item))
        return

    # Flat interleaved list: [name, value, name, value, ...]
    for index in range(0, len(headers) - 1, 2):
        yield headers[index], headers[index + 1]
    if len(headers) % 2:
        LOG.debug("malformed_header_skipped", reason="missing value", name=_text(headers[-1]))


def build_headers(headers: Any) -> list[dict[str, str]]:
    """Build a HAR header list from any header representation.

    Supports the shapes a request or response can carry:

    - A flat list with both names and values: ``[name, value, name, value, ...]``
    - A list of ``(name, value)`` pairs
    - A mapping with string values: ``{name: value}``
    - A mapping with list values: ``{name: [value, value]}``
    - ``httpx.Headers`` (original header casing is kept)

    Duplicate names stay separate entries, in input order.

    Args:
        headers: Header container in one of the shapes above, or None.

    Returns:
        List of ``{"name": ..., "value": ...}`` dicts.
    """
    if headers is None:
        return []

    result: list[dict[str, str]] = []
    for name, value in _header_items(headers):
        if name is None or value is None or name == "" or name == b"":
            LOG.debug("malformed_header_skipped", reason="empty name or value", name=repr(name))
            continue
        result.append({"name": _text(name), "value": _text(value)})
    return result


def header_values(headers: list[dict[str, str]], name: str) -> list[str]:
    """Return every value of a header in a HAR header list (case-insensitive)."""
    lower = name.lower()
    return [header["value"] for header in headers if header["name"].lower() == lower]


def header_value(headers: list[dict[str, str]], name: str, default: str | None = None) -> str | None:
    """Return the first value of a header in a HAR header list (case-insensitive)."""
    values = header_values(headers, name)
    return values[0] if values else default


def build_query_string(url: httpx.URL | str) -> list[dict[str, str]]:
    """Parse the URL query string into a HAR queryString list."""
    # URL.params groups repeated names; parse the raw query to keep wire order.
    query = httpx.URL(url).query.decode("ascii")
    return [
        {"name": name, "value": value}
        for name, value in parse_qsl(query, keep_blank_values=True)
    ]


def parse_request_cookies(headers: list[dict[str, str]]) -> list[dict[str, Any]]:
    """Parse request cookies from the Cookie header(s) of a HAR header list."""
    cookies: list[dict[str, Any]] = []
    for cookie_header in header_values(headers, "cookie"):
        for raw_pair in cookie_header.split(";"):
            stripped = raw_pair.strip()
            if "=" not in stripped:
                continue
            name, value = stripped.split("=", 1)
            name = name.strip()
            if name:
                cookies.append({"name": name, "value": value.strip()})
    return cookies


def _expires_to_iso(value: str) -> str | None:
    try:
        return email.utils.parsedate_to_datetime(value).isoformat()
    except (TypeError, ValueError, IndexError, OverflowError):
        return None


def parse_set_cookie(set_cookie: str) -> dict[str, Any]:
    """Parse one ``Set-Cookie`` header value into a HAR cookie.

    Args:
        set_cookie: Raw header value.

    Returns:
        HAR cookie dict with ``name``, ``value`` and any recognised attributes.

    Raises:
        ValueError: If the name/value pair is missing or the name is not a token.
    """
    name_value, *attrs = set_cookie.split(";")
    if "=" not in name_value:
        raise ValueError("cookie has no name=value pair")
    name, value = name_value.split("=", 1)
    name = name.strip()
    if not _TOKEN_RE.match(name):
        raise ValueError(f"invalid cookie name {name!r}")

    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] == '"':
        value = value[1:-1]

    cookie: dict[str, Any] = {"name": name, "value": value}
    for raw_attr in attrs:
        attr_name, _, attr_value = raw_attr.strip().partition("=")
        key = attr_name.strip().lower()
        attr_value = attr_value.strip()
        if key == "path" and attr_value:
            cookie["path"] = attr_value
        elif key == "domain" and attr_value:
            cookie["domain"] = attr_value
        elif key == "expires" and attr_value:
            expires = _expires_to_iso(attr_value)
            if expires is not None:
                cookie["expires"] = expires
        elif key == "httponly":
            cookie["httpOnly"] = True
        elif key == "secure":
            cookie["secure"] = True
        elif key == "samesite" and attr_value:
            cookie["sameSite"] = attr_value
    return cookie


def parse_response_cookies(headers: list[dict[str, str]]) -> list[dict[str, Any]]:
    """Parse response cookies from the Set-Cookie headers of a HAR header list.

    Each header is parsed on its own; malformed ones are skipped.
    """
    cookies: list[dict[str, Any]] = []
    for set_cookie in header_values(headers, "set-cookie"):
        try:
            cookies.append(parse_set_cookie(set_cookie))
        except ValueError as exc:
            LOG.debug("malformed_cookie_skipped", error=str(exc))
    return cookies


def build_post_data(body: bytes, content_type: str | None) -> dict[str, Any] | None:
    """Build the HAR ``postData`` object for a captured request body.

    URL-encoded forms are decomposed into ``params``; any other body is kept as
    ``text``.

    Args:
        body: Raw bytes written to the transport.
        content_type: Request Content-Type header, if any.

    Returns:
        The postData dict, or None when the request carried no body.
    """
    if not body:
        return None

    mime_type = content_type or ""
    text = body.decode("utf-8", errors="replace")
    if mime_type.split(";", 1)[0].strip().lower() == FORM_URLENCODED:
        params = parse_qsl(text, keep_blank_values=True)
        return {
            "mimeType": mime_type,
            "params": [{"name": name, "value": value} for name, value in params],
        }
    return {"mimeType": mime_type, "text": text}
