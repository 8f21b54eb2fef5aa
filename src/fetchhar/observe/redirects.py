"""Linking and flattening of redirect chains.

A fetch that follows redirects reissues the caller's headers, correlation
token included, for every hop. When a hop's response arrives while the
previous hop is still filed under the same token, the previous entry becomes
the new entry's parent.
"""

from __future__ import annotations

from fetchhar.logging import get_logger
from fetchhar.observe.correlation import CorrelationTable, PendingEntry

LOG = get_logger(__name__)


def attach(table: CorrelationTable, token: str, pending: PendingEntry) -> None:
    """File a pending entry under its token, linking any completed previous hop.

    A previous entry whose response is still open means two requests are in
    flight with one token. That breaks the uniqueness of tokens; it is logged
    and the newer entry replaces the older one without a link.

    Args:
        table: Table shared with the fetch layer.
        token: Correlation token of the request.
        pending: Entry built from the response headers.
    """
    previous = table.get(token)
    if previous is not None and previous is not pending:
        if previous.closed:
            pending.parent = previous
            LOG.debug(
                "redirect_linked",
                token=token,
                from_url=previous.entry["request"]["url"],
                to_url=pending.entry["request"]["url"],
            )
        else:
            LOG.warning(
                "correlation_token_conflict",
                token=token,
                replaced_url=previous.entry["request"]["url"],
                url=pending.entry["request"]["url"],
            )
    table.set(token, pending)


def flatten(pending: PendingEntry) -> list[PendingEntry]:
    """Return the redirect chain ending at ``pending``, oldest first.

    Parent links are cleared so each entry stands alone.
    """
    chain: list[PendingEntry] = []
    node: PendingEntry | None = pending
    while node is not None:
        chain.append(node)
        parent = node.parent
        node.parent = None
        node = parent
    chain.reverse()
    return chain
