"""Request instrumentation: correlation, transport recording, and finalization."""

from fetchhar.observe.correlation import (
    CORRELATION_HEADER,
    CorrelationTable,
    PendingEntry,
    generate_token,
)
from fetchhar.observe.finalize import (
    ResponseFactory,
    finalize_chain,
    finalize_entry,
    rehydrate_response,
)
from fetchhar.observe.redirects import attach, flatten
from fetchhar.observe.transport import HarTransport, wrap_transport

__all__ = [
    "CORRELATION_HEADER",
    "CorrelationTable",
    "HarTransport",
    "PendingEntry",
    "ResponseFactory",
    "attach",
    "finalize_chain",
    "finalize_entry",
    "flatten",
    "generate_token",
    "rehydrate_response",
    "wrap_transport",
]
