"""Reconstruction of HAR ``timings`` from lifecycle milestone timestamps."""

from __future__ import annotations

import datetime
import time
from dataclasses import dataclass, field

# Chrome's HAR viewer renders a zero or negative `blocked` as a stalled
# request, hiding the actual wait.
BLOCKED_FLOOR = 0.01

MILESTONES = (
    "socket",
    "lookup",
    "connect",
    "secure_connect",
    "sent",
    "first_byte",
    "received",
)


def now_ms() -> float:
    """Monotonic clock in milliseconds."""
    return time.perf_counter() * 1000


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.UTC)


def iso_utc(moment: datetime.datetime | None = None) -> str:
    """Format a UTC datetime (default: now) as ISO 8601 with milliseconds and a Z suffix."""
    moment = moment or _utcnow()
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass
class Timestamps:
    """Monotonic millisecond marks for one physical request.

    ``start`` is taken when the transport receives the request; every other
    milestone is None until observed.
    """

    start: float = field(default_factory=now_ms)
    started: datetime.datetime = field(default_factory=_utcnow)
    socket: float | None = None
    lookup: float | None = None
    connect: float | None = None
    secure_connect: float | None = None
    sent: float | None = None
    first_byte: float | None = None
    received: float | None = None

    def mark(self, milestone: str, at: float | None = None) -> None:
        """Record a milestone the first time it is reached; later marks are ignored.

        Raises:
            ValueError: If the milestone name is unknown.
        """
        if milestone not in MILESTONES:
            raise ValueError(f"Unknown milestone: {milestone}")
        if getattr(self, milestone) is None:
            setattr(self, milestone, now_ms() if at is None else at)

    @property
    def started_iso(self) -> str:
        """Wall clock start as an ISO 8601 UTC string with milliseconds."""
        return iso_utc(self.started)


def _not_before(floor: float, value: float | None) -> float:
    # A missing mark inherits the previous one; an early one is clamped to it.
    return floor if value is None else max(floor, value)


def compute_timings(ts: Timestamps) -> tuple[dict[str, float], float]:
    """Convert absolute milestone timestamps into HAR phase durations.

    Args:
        ts: Timestamps collected for the request.

    Returns:
        Tuple of the HAR ``timings`` dict and the total ``time``, both in
        milliseconds. ``dns``, ``connect`` and ``ssl`` are -1 when the phase
        did not happen (reused connection, plain HTTP). ``lookup`` is only
        set by callers that observe name resolution separately. httpcore
        resolves inside ``connect_tcp``, so through httpx ``dns`` is 0 on a
        new connection and resolution time is counted under ``connect``.
    """
    socket = _not_before(ts.start, ts.socket)
    lookup = _not_before(socket, ts.lookup)
    connected = _not_before(lookup, ts.connect)
    secured = None if ts.secure_connect is None else _not_before(connected, ts.secure_connect)
    send_start = connected if secured is None else secured
    sent = _not_before(send_start, ts.sent)
    first_byte = _not_before(sent, ts.first_byte)
    received = _not_before(first_byte, ts.received)

    new_connection = any(
        mark is not None for mark in (ts.lookup, ts.connect, ts.secure_connect)
    )

    timings = {
        "blocked": round(max(socket - ts.start, BLOCKED_FLOOR), 3),
        "dns": round(lookup - socket, 3) if new_connection else -1,
        "connect": round(send_start - lookup, 3) if new_connection else -1,
        "send": round(sent - send_start, 3),
        "wait": round(max(0.0, first_byte - sent), 3),
        "receive": round(received - first_byte, 3),
        "ssl": round(secured - connected, 3) if secured is not None else -1,
    }
    # ssl is already part of connect
    total = sum(
        value
        for phase, value in timings.items()
        if phase != "ssl" and value != -1
    )
    return timings, round(total, 3)
