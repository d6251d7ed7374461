"""Utility modules for the idempotent request cache."""

from .headers import HOP_BY_HOP_HEADERS, HeaderPairs, capturable_headers, mark_replay

__all__ = [
    "capturable_headers",
    "mark_replay",
    "HeaderPairs",
    "HOP_BY_HOP_HEADERS",
]
