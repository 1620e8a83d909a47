from __future__ import annotations

import logging
import os
from typing import Any

import httpx
from packages.shared.schemas.order_v1 import (
    ActiveOrderV1,
    AddTipRequestV1,
    ConfirmOrderRequestV1,
    ConfirmOrderResponseV1,
    DraftOrderRequestV1,
    DraftOrderV1,
    RateOrderRequestV1,
)
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from services.checkout.app.client.base import ApiError, MalformedResponseError

logger = logging.getLogger(__name__)


class HttpOrdersApi:
    """Orders backend client over `httpx.AsyncClient`.

    Env vars (see `from_env`):
    - DOORSTEP_API_BASE_URL (required)
    - DOORSTEP_API_TOKEN (optional bearer token)
    - DOORSTEP_API_TIMEOUT_S (default: 15)
    """

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    @classmethod
    def from_env(cls) -> "HttpOrdersApi":
        base_url = os.getenv("DOORSTEP_API_BASE_URL", "").strip().rstrip("/")
        if not base_url:
            raise ValueError("DOORSTEP_API_BASE_URL is required when DOORSTEP_ORDERS_API=http")

        timeout = float(os.getenv("DOORSTEP_API_TIMEOUT_S", "15"))
        headers = {"Accept": "application/json"}
        token = os.getenv("DOORSTEP_API_TOKEN", "").strip()
        if token:
            headers["Authorization"] = f"Bearer {token}"

        return cls(httpx.AsyncClient(base_url=base_url, timeout=timeout, headers=headers))

    async def create_draft(self, request: DraftOrderRequestV1) -> DraftOrderV1:
        data = await self._request("POST", "/orders/draft", json=_dump(request))
        return _parse(DraftOrderV1, data, "/orders/draft")

    async def confirm_order(self, request: ConfirmOrderRequestV1) -> ConfirmOrderResponseV1:
        data = await self._request("POST", "/orders/confirm", json=_dump(request))
        return _parse(ConfirmOrderResponseV1, data, "/orders/confirm")

    async def get_active_orders(self) -> list[ActiveOrderV1]:
        data = await self._request("GET", "/orders/active")

        # The backend answers with a single order, a list of orders, or nothing.
        if not data:
            return []
        raw = data if isinstance(data, list) else [data]
        return [_parse(ActiveOrderV1, it, "/orders/active") for it in raw]

    async def get_order(self, order_id: str) -> ActiveOrderV1:
        path = f"/orders/{order_id}"
        data = await self._request("GET", path)
        return _parse(ActiveOrderV1, data, path)

    async def add_tip(self, order_id: str, tip_amount: int) -> None:
        body = AddTipRequestV1(tip_amount=tip_amount, order_id=order_id)
        await self._request("POST", f"/orders/{order_id}/add-tip", json=_dump(body))

    async def rate_order(self, order_id: str, rating: int, review: str | None = None) -> None:
        body = RateOrderRequestV1(rating=rating, review=review, order_id=order_id)
        await self._request(
            "POST",
            f"/orders/{order_id}/rate",
            json=body.model_dump(mode="json", exclude_none=True),
        )

    async def clear_cart(self) -> None:
        await self._request("DELETE", "/cart")

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, json: Any = None) -> Any:
        try:
            response = await self._client.request(method, path, json=json)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            detail = _error_detail(e.response)
            logger.warning(f"{method} {path} failed with status {status}: {detail}")
            raise ApiError(
                f"{method} {path} returned {status}", status_code=status, detail=detail
            ) from e
        except httpx.RequestError as e:
            logger.warning(f"{method} {path} could not reach the orders backend: {e}")
            raise ApiError(f"{method} {path} failed: {e}") from e

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise MalformedResponseError(path, "body is not JSON") from e


def _dump(model: BaseModel) -> dict:
    return model.model_dump(mode="json", by_alias=True)


def _parse(model: type[BaseModel], data: Any, path: str) -> Any:
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        raise MalformedResponseError(path, str(e)) from e


def _error_detail(response: httpx.Response) -> str | None:
    try:
        body = response.json()
    except ValueError:
        return None

    if not isinstance(body, dict):
        return None
    detail = body.get("detail")
    if isinstance(detail, str) and detail.strip():
        return detail
    # FastAPI validation errors carry a list of problems.
    if isinstance(detail, list) and detail:
        first = detail[0]
        if isinstance(first, dict) and first.get("msg"):
            return str(first["msg"])
    return None
