"""Doorstep sandbox orders server entrypoint.

Implements the orders endpoints the checkout client talks to, for local development and
end-to-end tests. Run with `uvicorn services.api.app.main:app`.
"""

import logging

from fastapi import FastAPI

from services.api.app.db.session import init_db
from services.api.app.routers.cart import router as cart_router
from services.api.app.routers.orders import router as orders_router

logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")

app = FastAPI(title="Doorstep Sandbox Orders API")

app.include_router(orders_router)
app.include_router(cart_router)


@app.on_event("startup")
def _startup() -> None:
    init_db()


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}
