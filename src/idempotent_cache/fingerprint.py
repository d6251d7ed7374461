"""Request fingerprinting for payload conflict detection.

A fingerprint is a SHA-256 hex digest over a canonical representation of a
call's arguments. Two calls that present the same idempotency key with the
same logical payload produce the same fingerprint; a different payload
produces a different one, which the interception layer surfaces as a
``PayloadConflictError``.

Canonicalization rules for call arguments:

1. Mappings: keys sorted, so field order never matters. String keys are kept
   (a leading ``$`` is doubled); other keys become ``"$key:<canonical JSON>"``,
   so ``{1: ...}`` and ``{"1": ...}`` differ
2. Lists and tuples: order preserved, so ``[1, 2]`` and ``[2, 1]`` differ
3. Sets and frozensets: elements sorted by their canonical JSON
4. Pydantic models and dataclasses: dumped to plain data first
5. Bytes: ``{"$bytes": <base64>}``. Escaped mapping keys mean no plain
   mapping can produce this tag
6. Other values: pydantic's JSON conversion (datetime, UUID, Decimal, Enum, ...)
7. JSON types are preserved: ``1``, ``1.0``, ``"1"`` and ``True`` all differ

HTTP requests are fingerprinted separately by ``compute_request_fingerprint``
(method, canonical path, sorted query, selected headers, body digest).
"""

import base64
import dataclasses
import hashlib
import json
from collections.abc import Iterable, Mapping
from typing import Any
from urllib.parse import parse_qs, urlencode

from pydantic import BaseModel
from pydantic_core import PydanticSerializationError, to_jsonable_python


def canonicalize(value: Any) -> Any:
    """Convert a value into a canonical, JSON-serializable structure.

    Args:
        value: Any call argument value.

    Returns:
        Plain data (dicts, lists, strings, numbers, booleans, None).

    Raises:
        TypeError: If the value has no deterministic JSON representation.

    Examples:
        >>> canonicalize({"b": 1, "a": {2, 1}})
        {'a': [1, 2], 'b': 1}
        >>> canonicalize(b"hi")
        {'$bytes': 'aGk='}
        >>> canonicalize({1: "x", "$ref": "y"})
        {'$$ref': 'y', '$key:1': 'x'}
    """
    if value is None or isinstance(value, (bool, int, float, str)):
        return value

    if isinstance(value, BaseModel):
        return canonicalize(value.model_dump(mode="json"))

    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return canonicalize(dataclasses.asdict(value))

    if isinstance(value, Mapping):
        return _canonicalize_mapping(value)

    if isinstance(value, (list, tuple)):
        return [canonicalize(item) for item in value]

    if isinstance(value, (set, frozenset)):
        return sorted((canonicalize(item) for item in value), key=_dumps)

    if isinstance(value, (bytes, bytearray, memoryview)):
        return {"$bytes": base64.b64encode(bytes(value)).decode("ascii")}

    try:
        converted = to_jsonable_python(value)
    except PydanticSerializationError as e:
        raise TypeError(
            f"Cannot fingerprint value of type {type(value).__name__}: {e}"
        ) from e
    return canonicalize(converted)


def _dumps(value: Any) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def _canonical_key(key: Any) -> str:
    if isinstance(key, str):
        return "$" + key if key.startswith("$") else key
    return "$key:" + _dumps(canonicalize(key))


def _canonicalize_mapping(value: Mapping[Any, Any]) -> dict[str, Any]:
    result: dict[str, Any] = {}
    for key, item in value.items():
        canonical_key = _canonical_key(key)
        if canonical_key in result:
            raise TypeError(f"Cannot fingerprint mapping: keys collide as {canonical_key!r}")
        result[canonical_key] = canonicalize(item)
    return {k: result[k] for k in sorted(result)}


def compute_fingerprint(
    arguments: Mapping[str, Any],
    exclude: Iterable[str] = (),
) -> str:
    """Compute a deterministic fingerprint for a call's named arguments.

    Args:
        arguments: Call arguments bound by parameter name.
        exclude: Argument names to leave out (e.g. request metadata that
            differs between retries).

    Returns:
        Hexadecimal SHA-256 hash string (64 characters)

    Raises:
        TypeError: If an argument has no deterministic JSON representation.

    Examples:
        >>> a = compute_fingerprint({"order": {"amount": 100, "currency": "EUR"}})
        >>> b = compute_fingerprint({"order": {"currency": "EUR", "amount": 100}})
        >>> a == b
        True
    """
    excluded = set(exclude)
    selected = {name: value for name, value in arguments.items() if name not in excluded}
    canonical = _dumps(canonicalize(selected))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def compute_request_fingerprint(
    method: str,
    path: str,
    query_string: str,
    headers: Mapping[str, str],
    body: bytes,
    included_headers: list[str] | None = None,
) -> str:
    """Compute a deterministic fingerprint for an HTTP request.

    The fingerprint is computed from canonical representations of the request components:
    1. Canonical method: uppercase
    2. Canonical path: lowercase, strip trailing / (except root)
    3. Sorted query params: parse, sort keys, re-encode
    4. Canonical headers: lowercase keys, filter to included set, sort, JSON
    5. Body SHA-256 digest
    6. Final: SHA-256 of concatenated components separated by newline

    Args:
        method: HTTP method (e.g., "POST", "PUT")
        path: URL path component
        query_string: Raw query string (without leading '?')
        headers: Request headers as key-value pairs
        body: Request body as bytes
        included_headers: Header names to include in the fingerprint.
                         Defaults to ["content-type"]

    Returns:
        Hexadecimal SHA-256 hash string (64 characters)
    """
    if included_headers is None:
        included_headers = ["content-type"]

    canonical_method = method.upper()

    canonical_path = path.lower() if path else "/"
    if canonical_path != "/" and canonical_path.endswith("/"):
        canonical_path = canonical_path.rstrip("/")

    canonical_query = _canonicalize_query_string(query_string)
    canonical_headers = _canonicalize_headers(headers, included_headers)
    body_digest = hashlib.sha256(body).hexdigest()

    fingerprint_input = "\n".join(
        [
            canonical_method,
            canonical_path,
            canonical_query,
            canonical_headers,
            body_digest,
        ]
    )
    return hashlib.sha256(fingerprint_input.encode("utf-8")).hexdigest()


def _canonicalize_query_string(query_string: str) -> str:
    """Canonicalize query string by parsing, sorting, and re-encoding.

    Args:
        query_string: Raw query string without leading '?'

    Returns:
        Canonicalized query string with sorted parameters
    """
    if not query_string or not query_string.strip():
        return ""

    parsed = parse_qs(query_string, keep_blank_values=True)

    sorted_params: list[tuple[str, str]] = []
    for key in sorted(parsed.keys()):
        for value in sorted(parsed[key]):
            sorted_params.append((key, value))

    return urlencode(sorted_params, doseq=False)


def _canonicalize_headers(headers: Mapping[str, str], included_headers: list[str]) -> str:
    """Canonicalize headers by filtering, lowercasing keys, sorting, and JSON encoding."""
    included_lower = {name.lower() for name in included_headers}

    canonical: dict[str, str] = {}
    for key, value in headers.items():
        key_lower = key.lower()
        if key_lower in included_lower:
            canonical[key_lower] = value.strip()

    return json.dumps(canonical, sort_keys=True, separators=(",", ":"))
