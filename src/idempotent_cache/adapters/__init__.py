"""Framework adapters for the idempotent request cache.

This package provides adapters that install the framework-agnostic
interception layer into specific web frameworks:

- asgi.py: ASGI middleware for FastAPI, Starlette, etc.
"""

from idempotent_cache.adapters.asgi import IdempotencyASGIMiddleware

__all__ = ["IdempotencyASGIMiddleware"]
