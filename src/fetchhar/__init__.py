"""fetchhar - HAR capture for fetch-style HTTP calls.

Swap your fetch function for an instrumented one and get an HTTP Archive
(HAR 1.2) entry for every request it makes.

This package provides:
- An instrumented fetch wrapper (``with_har``) around any fetch-style callable
- An httpx transport decorator that timestamps connection, TLS, send, wait
  and receive phases
- Redirect chain tracking (one entry per hop)
- Request/response body capture with compression savings
- HAR log assembly

Example:
    >>> from fetchhar import create_har_log, with_har
    >>> har = create_har_log()
    >>> async with with_har(har=har) as fetch:
    ...     response = await fetch("https://example.com/")
    >>> len(har["log"]["entries"])
    1
"""

from fetchhar.client import HarFetch, get_har_entry, with_har
from fetchhar.config import FetchHarSettings, get_settings
from fetchhar.exceptions import (
    FetchHarError,
    InvalidRequestError,
    RedirectError,
    UnsupportedTransportError,
)
from fetchhar.fetch import HttpxFetch
from fetchhar.har import create_har_log
from fetchhar.observe import CorrelationTable, HarTransport, rehydrate_response

__version__ = "0.3.0"

__all__ = [
    # Version
    "__version__",
    # Instrumented fetch
    "HarFetch",
    "with_har",
    "get_har_entry",
    "HttpxFetch",
    # HAR log
    "create_har_log",
    # Instrumentation
    "CorrelationTable",
    "HarTransport",
    "rehydrate_response",
    # Configuration
    "FetchHarSettings",
    "get_settings",
    # Exceptions
    "FetchHarError",
    "InvalidRequestError",
    "RedirectError",
    "UnsupportedTransportError",
]
