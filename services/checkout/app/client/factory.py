from __future__ import annotations

import os

from services.checkout.app.client.base import OrdersApi


def get_orders_api() -> OrdersApi:
    """Select the orders backend based on env vars.

    Defaults to the in-process sandbox server so tests and local dev are deterministic
    unless explicitly configured otherwise.
    """

    mode = os.getenv("DOORSTEP_ORDERS_API", "sandbox").strip().lower()

    if mode == "sandbox":
        return _sandbox_api()

    if mode == "http":
        from services.checkout.app.client.http import HttpOrdersApi

        return HttpOrdersApi.from_env()

    raise ValueError(f"Unknown DOORSTEP_ORDERS_API={mode!r}. Expected sandbox or http.")


def _sandbox_api() -> OrdersApi:
    import httpx
    from services.api.app.db.session import init_db
    from services.api.app.main import app
    from services.checkout.app.client.http import HttpOrdersApi

    # ASGITransport does not run startup hooks.
    init_db()
    transport = httpx.ASGITransport(app=app)
    return HttpOrdersApi(httpx.AsyncClient(transport=transport, base_url="http://sandbox"))
