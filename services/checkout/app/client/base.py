from __future__ import annotations

from typing import Protocol

from packages.shared.schemas.order_v1 import (
    ActiveOrderV1,
    ConfirmOrderRequestV1,
    ConfirmOrderResponseV1,
    DraftOrderRequestV1,
    DraftOrderV1,
)


class ApiError(Exception):
    """A failed call to the orders backend.

    `status_code` is None when no response was received (connection error, timeout).
    `detail` is the backend's machine-readable message, when it sent one.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        detail: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail

    @property
    def not_found(self) -> bool:
        return self.status_code == 404

    def user_message(self, fallback: str) -> str:
        return self.detail or fallback


class MalformedResponseError(ApiError):
    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"Unexpected response shape from {path}: {reason}")
        self.path = path


class OrdersApi(Protocol):
    async def create_draft(self, request: DraftOrderRequestV1) -> DraftOrderV1: ...

    async def confirm_order(self, request: ConfirmOrderRequestV1) -> ConfirmOrderResponseV1: ...

    async def get_active_orders(self) -> list[ActiveOrderV1]: ...

    async def get_order(self, order_id: str) -> ActiveOrderV1: ...

    async def add_tip(self, order_id: str, tip_amount: int) -> None: ...

    async def rate_order(self, order_id: str, rating: int, review: str | None = None) -> None: ...

    async def clear_cart(self) -> None: ...

    async def aclose(self) -> None: ...
