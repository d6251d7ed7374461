"""Idempotency key derivation.

A key function receives the guarded call's arguments bound by parameter
name and returns the idempotency key, or None when the call should run
without protection. The deriver itself has no concatenation policy: composite
keys are whatever the key function builds.

Derivation is fail-open. A key function that raises, or that returns
something unusable (empty, whitespace, too long), is logged and treated as
"no key", so the guarded operation still executes, only unprotected.

Examples:
    Key functions::

        from idempotent_cache.keys import key_from_argument, key_from_header

        by_request_id = key_from_argument("request_id")
        by_header = key_from_header("X-Request-ID")
        composite = lambda args: f"{args['user_id']}-{args['action']}"

    Deriving a key for a call::

        arguments = bind_arguments(create_order, (order,), {"request_id": "r-1"})
        key = derive_key(by_request_id, arguments, operation="create_order")
"""

import inspect
from collections.abc import Callable, Mapping
from typing import Any

from idempotent_cache.config import KeyFunction
from idempotent_cache.observability.logging import get_logger

logger = get_logger(__name__)

# Leading parameters that identify the receiver rather than the request
_RECEIVER_PARAMETERS = ("self", "cls")


def bind_arguments(
    func: Callable[..., Any],
    args: tuple[Any, ...],
    kwargs: Mapping[str, Any],
) -> dict[str, Any]:
    """Bind positional and keyword arguments to the function's parameter names.

    Defaults are applied so key functions can rely on every parameter being
    present. A leading ``self``/``cls`` parameter is dropped.

    Args:
        func: The guarded function.
        args: Positional arguments of the call.
        kwargs: Keyword arguments of the call.

    Returns:
        Mapping of parameter name to argument value.

    Raises:
        TypeError: If the arguments do not match the function's signature.

    Examples:
        >>> def create(user_id, action="generate"):
        ...     ...
        >>> bind_arguments(create, ("u1",), {})
        {'user_id': 'u1', 'action': 'generate'}
    """
    signature = inspect.signature(func)
    bound = signature.bind(*args, **kwargs)
    bound.apply_defaults()

    arguments = dict(bound.arguments)
    parameters = list(signature.parameters)
    if parameters and parameters[0] in _RECEIVER_PARAMETERS:
        arguments.pop(parameters[0], None)
    return arguments


def derive_key(
    key_fn: KeyFunction,
    arguments: Mapping[str, Any],
    *,
    operation: str = "operation",
    max_length: int = 255,
) -> str | None:
    """Evaluate a key function and normalize its result.

    Non-string results are converted with ``str()``; surrounding whitespace is
    stripped. None, empty and whitespace-only results mean "no key".

    Args:
        key_fn: The operation's key function.
        arguments: Call arguments bound by parameter name.
        operation: Operation name for logging.
        max_length: Keys longer than this are rejected.

    Returns:
        The idempotency key, or None if absent.
    """
    try:
        value = key_fn(arguments)
    except Exception as e:
        logger.error(
            "idempotency.key_derivation_failed",
            operation=operation,
            error=str(e),
            error_type=type(e).__name__,
        )
        return None

    if value is None:
        logger.debug("idempotency.no_key", operation=operation)
        return None

    key = (value if isinstance(value, str) else str(value)).strip()
    if not key:
        logger.debug("idempotency.no_key", operation=operation)
        return None

    if len(key) > max_length:
        logger.warning(
            "idempotency.key_too_long",
            operation=operation,
            key_length=len(key),
            max_length=max_length,
        )
        return None

    return key


def key_from_argument(name: str) -> KeyFunction:
    """Build a key function that uses one argument's value as the key.

    Args:
        name: Parameter name to read.

    Returns:
        A key function returning the argument (None if not passed).

    Examples:
        >>> key_from_argument("request_id")({"request_id": "r-1"})
        'r-1'
    """

    def key_fn(arguments: Mapping[str, Any]) -> Any:
        return arguments.get(name)

    key_fn.__qualname__ = f"key_from_argument({name!r})"
    return key_fn


def key_from_header(header_name: str, argument: str = "headers") -> KeyFunction:
    """Build a key function that reads a header from a headers mapping argument.

    Header lookup is case-insensitive. A missing headers argument or a
    missing header yields no key.

    Args:
        header_name: Header carrying the key, e.g. "X-Request-ID".
        argument: Parameter name holding the headers mapping.

    Returns:
        A key function returning the header value, or None.

    Examples:
        >>> fn = key_from_header("X-Request-ID")
        >>> fn({"headers": {"x-request-id": "abc"}})
        'abc'
    """
    wanted = header_name.lower()

    def key_fn(arguments: Mapping[str, Any]) -> Any:
        headers = arguments.get(argument)
        if not headers:
            return None
        for name, value in headers.items():
            if name.lower() == wanted:
                return value
        return None

    key_fn.__qualname__ = f"key_from_header({header_name!r})"
    return key_fn
