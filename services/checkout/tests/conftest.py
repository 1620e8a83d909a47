from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest
from packages.shared.schemas.order_v1 import (
    ActiveOrderV1,
    ConfirmOrderRequestV1,
    ConfirmOrderResponseV1,
    DraftOrderRequestV1,
    DraftOrderV1,
)
from services.checkout.app.client.base import ApiError


class StubOrdersApi:
    """In-memory OrdersApi that records every call.

    Set `*_error` attributes to make the matching call raise. `order_results` is a
    queue of ActiveOrderV1 or exceptions consumed by `get_order`; when it runs dry the
    last order returned is repeated.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, Any]] = []
        self.draft: DraftOrderV1 | None = None
        self.draft_error: Exception | None = None
        self.confirm_error: Exception | None = None
        self.clear_error: Exception | None = None
        self.tip_error: Exception | None = None
        self.rate_error: Exception | None = None
        self.active: list[ActiveOrderV1] | Exception = []
        self.order_results: list[ActiveOrderV1 | Exception] = []
        self._last_order: ActiveOrderV1 | None = None

    def names(self) -> list[str]:
        return [name for name, _ in self.calls]

    async def create_draft(self, request: DraftOrderRequestV1) -> DraftOrderV1:
        self.calls.append(("create_draft", request))
        if self.draft_error is not None:
            raise self.draft_error
        assert self.draft is not None, "set api.draft first"
        return self.draft

    async def confirm_order(self, request: ConfirmOrderRequestV1) -> ConfirmOrderResponseV1:
        self.calls.append(("confirm_order", request))
        if self.confirm_error is not None:
            raise self.confirm_error
        return ConfirmOrderResponseV1(
            order_id="order-1", order_status="confirmed", message="Order placed successfully"
        )

    async def get_active_orders(self) -> list[ActiveOrderV1]:
        self.calls.append(("get_active_orders", None))
        if isinstance(self.active, Exception):
            raise self.active
        return list(self.active)

    async def get_order(self, order_id: str) -> ActiveOrderV1:
        self.calls.append(("get_order", order_id))
        if self.order_results:
            result = self.order_results.pop(0)
            if isinstance(result, Exception):
                raise result
            self._last_order = result
        if self._last_order is None:
            raise ApiError("GET /orders returned 404", status_code=404, detail="Order not found")
        return self._last_order

    async def add_tip(self, order_id: str, tip_amount: int) -> None:
        self.calls.append(("add_tip", (order_id, tip_amount)))
        if self.tip_error is not None:
            raise self.tip_error

    async def rate_order(self, order_id: str, rating: int, review: str | None = None) -> None:
        self.calls.append(("rate_order", (order_id, rating, review)))
        if self.rate_error is not None:
            raise self.rate_error

    async def clear_cart(self) -> None:
        self.calls.append(("clear_cart", None))
        if self.clear_error is not None:
            raise self.clear_error

    async def aclose(self) -> None:
        self.calls.append(("aclose", None))


@pytest.fixture()
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture()
def api() -> StubOrdersApi:
    return StubOrdersApi()


@pytest.fixture()
def make_order() -> Callable[..., ActiveOrderV1]:
    def _make(
        order_status: str = "confirmed",
        *,
        order_id: str = "order-1",
        created_at: str = "2024-05-01T10:00:00Z",
        assigned_at: str | None = None,
        **extra: Any,
    ) -> ActiveOrderV1:
        return ActiveOrderV1(
            id=order_id,
            order_status=order_status,
            created_at=created_at,
            assigned_at=assigned_at,
            total_amount=extra.pop("total_amount", 157.0),
            **extra,
        )

    return _make


@pytest.fixture()
def make_draft() -> Callable[..., DraftOrderV1]:
    def _make(total_amount: float, **overrides: Any) -> DraftOrderV1:
        body = {
            "draft_order_id": "draft-1",
            "signature": "sig-abc",
            "total_amount": total_amount,
            "subtotal": total_amount,
            "delivery_fee": 0,
            "app_fee": 0,
            "tip_amount": 0,
            "discount": 0,
            "expires_at": "2099-01-01T00:00:00Z",
        }
        body.update(overrides)
        return DraftOrderV1(**body)

    return _make
