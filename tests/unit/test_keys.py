"""Unit tests for key derivation.

This test suite covers:
    - Binding call arguments by parameter name
    - Key normalization (None, empty, whitespace, non-string results)
    - Fail-open behavior when the key function raises
    - Length limits
    - Built-in key function factories
"""

import pytest

from idempotent_cache.keys import (
    bind_arguments,
    derive_key,
    key_from_argument,
    key_from_header,
)


def create_order(request_id, amount, currency="EUR"):
    return None


class OrderService:
    def create(self, request_id, amount):
        return None


# ============================================================================
# bind_arguments
# ============================================================================


def test_bind_positional_and_keyword():
    args = bind_arguments(create_order, ("r-1",), {"amount": 100})

    assert args == {"request_id": "r-1", "amount": 100, "currency": "EUR"}


def test_bind_drops_self():
    service = OrderService()

    args = bind_arguments(OrderService.create, (service, "r-1", 5), {})

    assert args == {"request_id": "r-1", "amount": 5}


def test_bind_bound_method():
    args = bind_arguments(OrderService().create, ("r-1", 5), {})

    assert args == {"request_id": "r-1", "amount": 5}


def test_bind_signature_mismatch_raises():
    with pytest.raises(TypeError):
        bind_arguments(create_order, (), {})


# ============================================================================
# derive_key
# ============================================================================


def test_derive_plain_key():
    assert derive_key(lambda a: a["request_id"], {"request_id": "r-1"}) == "r-1"


def test_derive_composite_key():
    key_fn = lambda a: f"{a['user_id']}-{a['action']}"  # noqa: E731

    assert derive_key(key_fn, {"user_id": "u1", "action": "generate"}) == "u1-generate"


@pytest.mark.parametrize("value", [None, "", "   ", "\t\n"])
def test_absent_values_yield_no_key(value):
    assert derive_key(lambda a: value, {}) is None


def test_key_is_stripped():
    assert derive_key(lambda a: "  r-1  ", {}) == "r-1"


def test_non_string_key_converted():
    assert derive_key(lambda a: 42, {}) == "42"


def test_raising_key_function_fails_open():
    assert derive_key(lambda a: a["missing"], {}, operation="create_order") is None


def test_key_at_max_length_accepted():
    assert derive_key(lambda a: "k" * 10, {}, max_length=10) == "k" * 10


def test_over_long_key_treated_as_absent():
    assert derive_key(lambda a: "k" * 11, {}, max_length=10) is None


# ============================================================================
# Key function factories
# ============================================================================


def test_key_from_argument():
    key_fn = key_from_argument("request_id")

    assert key_fn({"request_id": "r-1"}) == "r-1"
    assert key_fn({}) is None


def test_key_from_header_case_insensitive():
    key_fn = key_from_header("X-Request-ID")

    assert key_fn({"headers": {"x-request-id": "abc"}}) == "abc"
    assert key_fn({"headers": {"X-REQUEST-ID": "def"}}) == "def"


def test_key_from_header_missing():
    key_fn = key_from_header("X-Request-ID")

    assert key_fn({"headers": {"content-type": "application/json"}}) is None
    assert key_fn({"headers": None}) is None
    assert key_fn({}) is None


def test_key_from_header_custom_argument():
    key_fn = key_from_header("Idempotency-Key", argument="meta")

    assert key_fn({"meta": {"idempotency-key": "k1"}}) == "k1"
