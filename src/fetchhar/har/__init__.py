"""HAR (HTTP Archive) building blocks.

Pure helpers shared by the request instrumentation: header, cookie and
parameter normalization, timing reconstruction, and log assembly.

Example usage:
    from fetchhar.har import build_headers, create_har_log

    har = create_har_log()
    headers = build_headers({"Accept": "*/*"})
"""

from fetchhar.har.log import HAR_VERSION, append_entries, create_har_log, dump_har
from fetchhar.har.normalize import (
    build_headers,
    build_post_data,
    build_query_string,
    header_value,
    header_values,
    parse_request_cookies,
    parse_response_cookies,
    parse_set_cookie,
)
from fetchhar.har.timings import BLOCKED_FLOOR, Timestamps, compute_timings

__all__ = [
    # Log
    "HAR_VERSION",
    "append_entries",
    "create_har_log",
    "dump_har",
    # Normalization
    "build_headers",
    "build_post_data",
    "build_query_string",
    "header_value",
    "header_values",
    "parse_request_cookies",
    "parse_response_cookies",
    "parse_set_cookie",
    # Timings
    "BLOCKED_FLOOR",
    "Timestamps",
    "compute_timings",
]
