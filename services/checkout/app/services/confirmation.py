from __future__ import annotations

import logging

from packages.shared.schemas.order_v1 import (
    ConfirmOrderRequestV1,
    ConfirmOrderResponseV1,
    PaymentMethodV1,
)
from services.checkout.app.client.base import OrdersApi
from services.checkout.app.models.cart import CartScope
from services.checkout.app.services.cart import Cart

logger = logging.getLogger(__name__)


class OrderConfirmer:
    def __init__(self, api: OrdersApi, cart: Cart) -> None:
        self._api = api
        self._cart = cart

    async def confirm(
        self,
        draft_order_id: str,
        signature: str,
        payment_method: PaymentMethodV1,
    ) -> ConfirmOrderResponseV1:
        """Finalize a draft. Errors from the backend propagate as-is.

        On success both cart scopes are emptied locally. On failure the cart is left
        untouched.
        """

        response = await self._api.confirm_order(
            ConfirmOrderRequestV1(
                draft_order_id=draft_order_id,
                signature=signature,
                payment_method=payment_method,
            )
        )

        self._cart.clear_local(CartScope.USER)
        self._cart.clear_local(CartScope.GUEST)

        logger.info(f"Confirmed draft {draft_order_id} as order {response.order_id}")
        return response
