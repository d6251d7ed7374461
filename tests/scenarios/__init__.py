"""Conformance test scenarios for the idempotent request cache.

This package contains end-to-end scenario tests exercising the interception
layer together with a real store. Each scenario covers one aspect of
idempotency handling.
"""
