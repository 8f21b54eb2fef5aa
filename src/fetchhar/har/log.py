"""HAR 1.2 log assembly."""

from __future__ import annotations

import json
from collections.abc import Iterable
from typing import Any

from fetchhar.config import get_settings
from fetchhar.har.timings import iso_utc

HAR_VERSION = "1.2"


def create_har_log(
    entries: list[dict[str, Any]] | None = None,
    page_info: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Create an empty (or pre-filled) HAR log with a single page.

    Args:
        entries: Initial entries. The list is used as-is, not copied.
        page_info: Overrides merged into the default page
            (``startedDateTime``, ``id``, ``title``, ``pageTimings``).

    Returns:
        A ``{"log": {...}}`` dict ready to be passed as the ``har`` option.
    """
    import fetchhar

    settings = get_settings()
    page: dict[str, Any] = {
        "startedDateTime": iso_utc(),
        "id": settings.page_ref,
        "title": settings.page_title,
        "pageTimings": {
            "onContentLoad": -1,
            "onLoad": -1,
        },
    }
    page.update(page_info or {})
    return {
        "log": {
            "version": HAR_VERSION,
            "creator": {
                "name": "fetchhar",
                "version": fetchhar.__version__,
            },
            "pages": [page],
            "entries": entries if entries is not None else [],
        }
    }


def append_entries(har: dict[str, Any], entries: Iterable[dict[str, Any]]) -> None:
    """Append entries to a HAR log created by :func:`create_har_log`.

    Raises:
        ValueError: If ``har`` has no ``log.entries`` list.
    """
    try:
        target = har["log"]["entries"]
    except (KeyError, TypeError) as exc:
        raise ValueError("har must be a HAR log dict with log.entries") from exc
    target.extend(entries)


def dump_har(har: dict[str, Any], indent: int | None = 2) -> str:
    """Serialize a HAR log to JSON text."""
    return json.dumps(har, indent=indent, ensure_ascii=False)
