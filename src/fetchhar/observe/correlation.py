"""Correlation of fetch calls with transport-level request records.

The fetch layer cannot hand a Python object to the transport: the only thing
that crosses the boundary is the request itself. Each instrumented call
therefore stamps a random token into a request header, and the transport files
what it observes under that token in a :class:`CorrelationTable` shared with
the fetch layer.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass, field
from typing import Any

from fetchhar.har.timings import Timestamps

CORRELATION_HEADER = "x-har-request-id"


def generate_token() -> str:
    """Return a new correlation token (128 random bits, URL-safe)."""
    return secrets.token_urlsafe(16)


@dataclass
class PendingEntry:
    """A HAR entry under construction for one physical request.

    Attributes:
        token: Correlation token the request carried.
        timestamps: Lifecycle milestones observed so far.
        entry: Partial HAR entry (request/response parts).
        request_body: Bytes written to the transport for the request body.
        raw_body_size: Response bytes received before content decoding.
        closed: True once the response stream has been closed.
        parent: Entry of the previous hop when this request followed a redirect.
    """

    token: str
    timestamps: Timestamps = field(default_factory=Timestamps)
    entry: dict[str, Any] = field(default_factory=dict)
    request_body: bytearray = field(default_factory=bytearray)
    raw_body_size: int = 0
    closed: bool = False
    parent: PendingEntry | None = None


class CorrelationTable:
    """Token to :class:`PendingEntry` mapping owned by one ``HarFetch``.

    An entry is present only between "response headers observed" and
    "fetch call settled".
    """

    def __init__(self) -> None:
        self._entries: dict[str, PendingEntry] = {}

    def set(self, token: str, pending: PendingEntry) -> None:
        """Store the entry for a token, replacing any previous one."""
        self._entries[token] = pending

    def get(self, token: str) -> PendingEntry | None:
        """Return the entry for a token, or None."""
        return self._entries.get(token)

    def delete(self, token: str) -> PendingEntry | None:
        """Remove and return the entry for a token; missing tokens are ignored."""
        return self._entries.pop(token, None)

    def __contains__(self, token: object) -> bool:
        return token in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"CorrelationTable(size={len(self._entries)})"
