"""ASGI middleware adapter for FastAPI and Starlette applications.

This module installs the interception layer around every unsafe HTTP request
(POST, PUT, PATCH, DELETE) that carries an idempotency key header:

1. The key is read from ``config.key_header`` (default ``X-Request-ID``)
2. The request is fingerprinted (method, path, sorted query, body digest)
3. The downstream app runs through ``IdempotencyInterceptor.execute``
4. Responses are captured as status, filtered header pairs and base64 body;
   repeated headers such as ``Set-Cookie`` are kept
5. Replays carry ``config.replay_header: true``; fresh responses ``false``

5xx responses are passed through without being stored, so a retry after a
server error executes again. Key reuse with a different payload becomes 409,
and an unreachable store under a fail-closed configuration becomes 503.

Examples:
    FastAPI integration::

        from fastapi import FastAPI
        from idempotent_cache.adapters.asgi import IdempotencyASGIMiddleware
        from idempotent_cache.storage.memory import MemoryIdempotencyStore
        from idempotent_cache.config import IdempotencyConfig

        app = FastAPI()

        app.add_middleware(
            IdempotencyASGIMiddleware,
            store=MemoryIdempotencyStore(),
            config=IdempotencyConfig(default_ttl_seconds=3600),
        )
"""

import base64
from collections.abc import Awaitable, Callable
from typing import Any

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from idempotent_cache.config import IdempotencyConfig
from idempotent_cache.core.interceptor import IdempotencyInterceptor
from idempotent_cache.exceptions import PayloadConflictError, StoreUnavailableError
from idempotent_cache.fingerprint import compute_request_fingerprint
from idempotent_cache.keys import derive_key, key_from_header
from idempotent_cache.models import OperationResult, ResponseEnvelope
from idempotent_cache.storage.base import IdempotencyStore
from idempotent_cache.utils.headers import HeaderPairs, capturable_headers, mark_replay

# Methods that change state and therefore get idempotency protection
UNSAFE_METHODS = {"POST", "PUT", "PATCH", "DELETE"}

TRACE_HEADERS = ["x-trace-id", "x-correlation-id", "traceparent"]


class IdempotencyASGIMiddleware(BaseHTTPMiddleware):
    """ASGI middleware replaying responses for repeated idempotency keys.

    Attributes:
        store: Idempotency store
        config: Configuration object
        interceptor: Interception layer shared by all requests
    """

    def __init__(
        self,
        app: Any,
        store: IdempotencyStore,
        config: IdempotencyConfig | None = None,
    ) -> None:
        """Initialize the ASGI middleware.

        Args:
            app: The ASGI application
            store: Idempotency store
            config: Configuration object (uses defaults if not provided)
        """
        super().__init__(app)
        self.store = store
        self.config = config or IdempotencyConfig()
        self.interceptor = IdempotencyInterceptor(store, self.config)
        self._key_fn = key_from_header(self.config.key_header)

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        """Process one request with idempotency handling.

        Args:
            request: The Starlette request object
            call_next: Function to call the next middleware/handler

        Returns:
            Starlette Response object
        """
        if request.method.upper() not in UNSAFE_METHODS:
            return await call_next(request)

        operation = f"{request.method.upper()} {request.url.path}"
        headers = dict(request.headers)
        key = derive_key(
            self._key_fn,
            {"headers": headers},
            operation=operation,
            max_length=self.config.max_key_length,
        )
        if key is None:
            return await call_next(request)

        body = await request.body()
        fingerprint = compute_request_fingerprint(
            method=request.method,
            path=request.url.path,
            query_string=request.url.query or "",
            headers=headers,
            body=body,
        )

        async def invoke() -> Any:
            response = await call_next(request)
            response_body = await self._read_body(response)
            response_headers = capturable_headers(
                response.headers.items(), drop=["content-length"]
            )
            if response.status_code >= 500:
                return self._build_response(response_body, response.status_code, response_headers)
            return OperationResult(
                payload={
                    "headers": response_headers,
                    "body_b64": base64.b64encode(response_body).decode("ascii"),
                },
                status_code=response.status_code,
            )

        with structlog.contextvars.bound_contextvars(trace_id=self._extract_trace_id(request)):
            try:
                result = await self.interceptor.execute(
                    key,
                    invoke,
                    fingerprint=fingerprint,
                    ttl_seconds=self.config.default_ttl_seconds,
                    validate_payload=self.config.validate_payload,
                    operation=operation,
                )
            except PayloadConflictError as e:
                return Response(
                    content=f"Request conflict: {e.message}",
                    status_code=409,
                    media_type="text/plain",
                    headers={self.config.key_header: key},
                )
            except StoreUnavailableError as e:
                return Response(
                    content=f"Idempotency store unavailable: {e.message}",
                    status_code=503,
                    media_type="text/plain",
                    headers={"retry-after": "5"},
                )

        if isinstance(result, ResponseEnvelope):
            return self._to_response(result)
        return result

    def _to_response(self, envelope: ResponseEnvelope) -> Response:
        payload = envelope.result_payload
        headers = mark_replay(
            payload["headers"],
            self.config.replay_header,
            is_replay=envelope.from_cache,
        )
        return self._build_response(
            base64.b64decode(payload["body_b64"]), envelope.status_code, headers
        )

    @staticmethod
    def _build_response(body: bytes, status_code: int, headers: HeaderPairs) -> Response:
        # Content-Length is recomputed from the body
        response = Response(content=body, status_code=status_code)
        for name, value in headers:
            response.headers.append(name, value)
        return response

    @staticmethod
    async def _read_body(response: Response) -> bytes:
        if not hasattr(response, "body_iterator"):
            return bytes(getattr(response, "body", b""))

        body = b""
        async for chunk in response.body_iterator:
            if isinstance(chunk, str):
                chunk = chunk.encode("utf-8")
            body += bytes(chunk)
        return body

    @staticmethod
    def _extract_trace_id(request: Request) -> str | None:
        """Extract a distributed tracing ID from common tracing headers."""
        for header in TRACE_HEADERS:
            value = request.headers.get(header)
            if value:
                return value
        return None
