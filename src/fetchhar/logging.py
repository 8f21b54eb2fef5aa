"""Structured logging configuration using structlog.

fetchhar logs through structlog to stderr. Event names are snake_case
(``har_entry_recorded``, ``har_capture_skipped``, ``correlation_token_conflict``)
and carry the request URL as a key, so JSON output can be filtered per request.
"""

from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING, Any

import structlog
from structlog.typing import EventDict, WrappedLogger

if TYPE_CHECKING:
    from fetchhar.config import FetchHarSettings

# stdlib loggers of the HTTP stack underneath the recording transport
TRANSPORT_LOGGERS = ("httpx", "httpcore")


def add_log_level(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Add the log level to the event dict."""
    if method_name == "warn":
        event_dict["level"] = "warning"
    else:
        event_dict["level"] = method_name
    return event_dict


def resolve_level(level: str) -> int:
    """Map a level name to its numeric value; unknown names mean INFO."""
    value = logging.getLevelName(level.upper())
    return value if isinstance(value, int) else logging.INFO


def configure_logging(
    level: str = "WARNING",
    json_output: bool = False,
) -> None:
    """Configure structlog for fetchhar.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        json_output: If True, one JSON object per line. If False, colored
            console output.
    """
    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(resolve_level(level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


def configure_from_settings(
    settings: FetchHarSettings,
    *,
    level: str | None = None,
    json_output: bool | None = None,
) -> None:
    """Configure logging from ``FETCHHAR_LOG_LEVEL`` / ``FETCHHAR_LOG_FORMAT``.

    Explicit ``level`` and ``json_output`` win over the settings.
    """
    configure_logging(
        level=level or settings.log_level,
        json_output=settings.log_format == "json" if json_output is None else json_output,
    )


def enable_transport_debug() -> None:
    """Turn on the stdlib loggers used by httpx and httpcore.

    httpx logs one INFO line per request and httpcore logs every connection
    and stream event at DEBUG. Both go through the standard library, so they
    are routed to stderr independently of the structlog configuration.
    """
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s %(name)s %(levelname)s %(message)s"))
    for name in TRANSPORT_LOGGERS:
        logger = logging.getLogger(name)
        logger.setLevel(logging.DEBUG)
        logger.addHandler(handler)


def get_logger(name: str | None = None) -> structlog.BoundLogger:
    """Get a configured logger instance.

    Args:
        name: Optional logger name, usually the calling module's ``__name__``.

    Returns:
        Configured structlog logger.
    """
    return structlog.get_logger(name)
