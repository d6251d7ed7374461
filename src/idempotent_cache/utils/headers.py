"""HTTP header helpers for the ASGI adapter.

Headers travel as ``(name, value)`` pairs rather than a dict, so repeated
headers such as ``Set-Cookie`` survive capture and replay. Responses are
captured without their per-connection headers, and every response leaving
the adapter carries the replay marker.
"""

from collections.abc import Iterable, Sequence

HeaderPairs = list[tuple[str, str]]

# Per-connection or per-transmission headers; these differ on every response
# and are never part of a captured outcome
HOP_BY_HOP_HEADERS = frozenset(
    {
        "date",
        "server",
        "connection",
        "transfer-encoding",
        "keep-alive",
        "trailer",
        "upgrade",
        "proxy-connection",
        "proxy-authenticate",
        "proxy-authorization",
    }
)


def capturable_headers(
    headers: Iterable[tuple[str, str]],
    drop: Iterable[str] = (),
) -> HeaderPairs:
    """Return the response headers worth storing with a captured outcome.

    Args:
        headers: Response header pairs, repeated names allowed.
        drop: Extra header names to leave out (case-insensitive).

    Returns:
        The remaining pairs in their original order.

    Example:
        >>> capturable_headers([("set-cookie", "a=1"), ("date", "Mon"), ("set-cookie", "b=2")])
        [('set-cookie', 'a=1'), ('set-cookie', 'b=2')]
    """
    excluded = HOP_BY_HOP_HEADERS | {name.lower() for name in drop}
    return [(name, value) for name, value in headers if name.lower() not in excluded]


def mark_replay(
    headers: Iterable[Sequence[str]],
    replay_header: str,
    is_replay: bool,
) -> HeaderPairs:
    """Return a copy of ``headers`` carrying the replay marker.

    Any marker already present, whatever its case, is replaced. Accepts the
    ``[name, value]`` lists a JSON round trip turns pairs into.

    Example:
        >>> mark_replay([("content-type", "text/plain")], "X-Idempotent-Replayed", True)
        [('content-type', 'text/plain'), ('X-Idempotent-Replayed', 'true')]
    """
    marker = replay_header.lower()
    marked = [(name, value) for name, value in headers if name.lower() != marker]
    marked.append((replay_header, "true" if is_replay else "false"))
    return marked
