"""Demo FastAPI application using the idempotent request cache.

Run with: python demo_app.py

Two integration styles are shown:

- ``POST /api/payments`` is protected by the ASGI middleware. Send the same
  ``X-Request-ID`` twice and the second response carries
  ``X-Idempotent-Replayed: true`` with the same payment id.
- ``POST /api/orders/{user_id}`` calls a service function guarded by the
  ``idempotent`` decorator with a composite key built from arguments.
"""

import itertools
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Optional

import uvicorn
from fastapi import FastAPI, Header, HTTPException
from pydantic import BaseModel

from idempotent_cache import (
    IdempotencyConfig,
    IdempotencyInterceptor,
    OperationResult,
    PayloadConflictError,
    create_store,
)
from idempotent_cache.adapters.asgi import IdempotencyASGIMiddleware
from idempotent_cache.core.cleanup import ExpiredEntryPurger
from idempotent_cache.observability.logging import configure_logging

configure_logging(level="INFO", json_output=False)

config = IdempotencyConfig.from_env()
store = create_store(config)
interceptor = IdempotencyInterceptor(store, config)
sequence = itertools.count(1)


@asynccontextmanager
async def lifespan(app: FastAPI):
    purger = ExpiredEntryPurger(store) if config.store_backend == "memory" else None
    if purger:
        purger.start()
    yield
    if purger:
        await purger.stop()
    if hasattr(store, "close"):
        await store.close()


app = FastAPI(
    title="Idempotent Request Cache Demo",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    IdempotencyASGIMiddleware,
    store=store,
    config=config,
)


class PaymentRequest(BaseModel):
    amount: int
    currency: str = "USD"
    description: Optional[str] = None


class OrderRequest(BaseModel):
    product_id: str
    quantity: int


@interceptor.idempotent(
    key_fn=lambda args: f"{args['user_id']}-{args['action']}" if args["action"] else None,
    ttl_seconds=300,
    fingerprint_exclude=["action"],
)
async def place_order(user_id: str, action: Optional[str], order: OrderRequest) -> OperationResult:
    """Create an order; guarded per (user, action) pair."""
    return OperationResult(
        payload={
            "order_id": f"ord_{next(sequence)}",
            "user_id": user_id,
            "product_id": order.product_id,
            "quantity": order.quantity,
            "total": round(order.quantity * 99.99, 2),
            "created_at": datetime.now(UTC).isoformat(),
        },
        status_code=201,
    )


@app.get("/api/status")
async def get_status():
    """Health check; safe methods bypass the middleware."""
    return {"status": "ok", "timestamp": datetime.now(UTC).isoformat()}


@app.post("/api/payments", status_code=201)
async def create_payment(payment: PaymentRequest):
    """Create a payment (idempotent through the middleware)."""
    return {
        "id": f"pay_{next(sequence)}",
        "status": "success",
        "amount": payment.amount,
        "currency": payment.currency,
        "created_at": datetime.now(UTC).isoformat(),
    }


@app.post("/api/orders/{user_id}")
async def create_order(
    user_id: str,
    order: OrderRequest,
    action: Optional[str] = Header(None, alias="X-Order-Action"),
):
    """Create an order (idempotent through the decorator)."""
    try:
        envelope = await place_order(user_id, action, order)
    except PayloadConflictError as e:
        raise HTTPException(status_code=409, detail=e.message) from e
    return {"replayed": envelope.from_cache, **envelope.result_payload}


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000, log_level="info")
