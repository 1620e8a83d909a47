from __future__ import annotations

import logging
from typing import Protocol

from services.checkout.app.client.base import ApiError
from services.checkout.app.models.cart import CartLineItem, CartScope, ProductLineItem
from services.checkout.app.services.errors import CartSyncError

logger = logging.getLogger(__name__)

CART_CLEAR_FAILED = "Failed to clear cart. Please try again."


class CartSyncClient(Protocol):
    async def clear_cart(self) -> None: ...


class Cart:
    """Line items held for both cart scopes.

    The active scope follows authentication state: signed-in users work on the `user`
    scope (mirrored server-side), everyone else on the local `guest` scope. The two
    scopes are never merged.
    """

    def __init__(self, sync: CartSyncClient, *, authenticated: bool = False) -> None:
        self._sync = sync
        self._items: dict[CartScope, list[CartLineItem]] = {
            CartScope.GUEST: [],
            CartScope.USER: [],
        }
        self.authenticated = authenticated

    @property
    def scope(self) -> CartScope:
        return CartScope.USER if self.authenticated else CartScope.GUEST

    def items(self, scope: CartScope | None = None) -> list[CartLineItem]:
        return list(self._items[scope or self.scope])

    @property
    def products(self) -> list[ProductLineItem]:
        return [it for it in self.items() if isinstance(it, ProductLineItem)]

    @property
    def services(self) -> list[CartLineItem]:
        return [it for it in self.items() if not isinstance(it, ProductLineItem)]

    @property
    def subtotal(self) -> float:
        return sum(it.selling_price * it.quantity for it in self.items())

    @property
    def item_count(self) -> int:
        return sum(it.quantity for it in self.items())

    def is_empty(self, scope: CartScope | None = None) -> bool:
        return not self._items[scope or self.scope]

    def add_item(self, item: CartLineItem) -> None:
        items = self._items[self.scope]
        for i, existing in enumerate(items):
            if existing.id != item.id:
                continue
            if isinstance(existing, ProductLineItem) and isinstance(item, ProductLineItem):
                items[i] = existing.model_copy(
                    update={"quantity": existing.quantity + max(1, item.quantity)}
                )
            else:
                items[i] = item
            return
        items.append(item)

    def remove_item(self, item_id: str) -> bool:
        items = self._items[self.scope]
        kept = [it for it in items if it.id != item_id]
        removed = len(kept) != len(items)
        self._items[self.scope] = kept
        return removed

    def set_quantity(self, item_id: str, quantity: int) -> None:
        """Set a product's quantity. Dropping below 1 removes the line."""

        if quantity < 1:
            self.remove_item(item_id)
            return

        items = self._items[self.scope]
        for i, existing in enumerate(items):
            if existing.id != item_id:
                continue
            if not isinstance(existing, ProductLineItem):
                raise ValueError(f"Quantity is fixed for service items: {item_id!r}")
            items[i] = existing.model_copy(update={"quantity": quantity})
            return
        raise KeyError(item_id)

    async def clear(self, scope: CartScope | None = None) -> None:
        """Empty a scope. The user scope is cleared server-side first.

        If the server call fails the local cart is left as it was.
        """

        scope = scope or self.scope
        if scope is CartScope.USER:
            try:
                await self._sync.clear_cart()
            except ApiError as e:
                logger.warning(f"Remote cart clear failed (status={e.status_code}): {e}")
                raise CartSyncError(e.user_message(CART_CLEAR_FAILED)) from e

        self.clear_local(scope)

    def clear_local(self, scope: CartScope) -> None:
        if self._items[scope]:
            logger.info(f"Cleared {len(self._items[scope])} item(s) from the {scope.value} cart")
        self._items[scope] = []
