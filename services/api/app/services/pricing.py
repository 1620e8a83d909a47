"""Authoritative pricing for the sandbox orders server.

Fee rules mirror what clients estimate locally; promo codes are only known here, which
is how a draft total can legitimately differ from the client's estimate.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from packages.shared.schemas.order_v1 import (
    DraftOrderRequestV1,
    OrderItemV1,
    PorterOrderItemV1,
    PrintoutOrderItemV1,
    ProductOrderItemV1,
)

logger = logging.getLogger(__name__)

PRODUCT_CATALOG: dict[str, tuple[str, float]] = {
    "milk-1l": ("Toned Milk 1L", 56.0),
    "bread-white": ("White Bread", 45.0),
    "eggs-12": ("Eggs (12)", 90.0),
    "rice-5kg": ("Basmati Rice 5kg", 349.0),
    "detergent-1kg": ("Detergent 1kg", 120.0),
}
UNKNOWN_PRODUCT_PRICE = 99.0

DELIVERY_BASE_FEE = 40.0
DELIVERY_MIN_FEE = 0.0
FREE_DELIVERY_THRESHOLD = 500.0
APP_FEE = 5.0

PORTER_BASE_FARE = 30.0
PORTER_PER_KM = 10.0
PORTER_URGENT_SURCHARGE = 20.0

DOCUMENT_BW_PER_PAGE = 2.0
DOCUMENT_COLOR_PER_PAGE = 10.0
PHOTO_PRICES = {"passport": 15.0, "4x6": 20.0, "5x7": 30.0}
DEFAULT_PHOTO_PRICE = 20.0

SAVE10_RATE = 0.10
SAVE10_CAP = 100.0


class PromoCodeError(ValueError):
    def __init__(self, code: str) -> None:
        super().__init__(f"Promo code {code!r} is not valid")
        self.code = code


@dataclass(frozen=True, slots=True)
class PricedDraft:
    items: list[dict]
    subtotal: float
    delivery_fee: float
    app_fee: float
    tip_amount: float
    discount: float
    total_amount: float


def product_info(product_id: str) -> tuple[str, float]:
    return PRODUCT_CATALOG.get(product_id, (product_id, UNKNOWN_PRODUCT_PRICE))


def price_item(item: OrderItemV1) -> float:
    if isinstance(item, ProductOrderItemV1):
        return product_info(item.product_id)[1] * item.quantity

    if isinstance(item, PorterOrderItemV1):
        data = item.service_data
        fare = PORTER_BASE_FARE + PORTER_PER_KM * max(data.estimated_distance, 0.0)
        if data.is_urgent:
            fare += PORTER_URGENT_SURCHARGE
        return fare

    if isinstance(item, PrintoutOrderItemV1):
        data = item.service_data
        if data.print_type == "photo":
            unit = PHOTO_PRICES.get(data.paper_size.lower(), DEFAULT_PHOTO_PRICE)
        else:
            unit = DOCUMENT_COLOR_PER_PAGE if data.color else DOCUMENT_BW_PER_PAGE
        return unit * data.pages * data.copies

    raise TypeError(f"Unsupported order item: {item!r}")


def delivery_fee_for(subtotal: float) -> float:
    if subtotal >= FREE_DELIVERY_THRESHOLD:
        return 0.0
    return max(DELIVERY_BASE_FEE, DELIVERY_MIN_FEE)


def apply_promo(code: str | None, subtotal: float, delivery_fee: float) -> tuple[float, float]:
    """Return (delivery_fee, discount) after a promo code."""

    if not code:
        return delivery_fee, 0.0

    normalized = code.strip().upper()
    if normalized == "FREEDEL":
        return 0.0, 0.0
    if normalized == "SAVE10":
        return delivery_fee, round(min(subtotal * SAVE10_RATE, SAVE10_CAP), 2)
    raise PromoCodeError(code)


def price_draft(request: DraftOrderRequestV1) -> PricedDraft:
    items: list[dict] = []
    subtotal = 0.0
    for item in request.items:
        line_total = round(price_item(item), 2)
        subtotal += line_total

        if isinstance(item, ProductOrderItemV1):
            # Stored the way orders are read back: `product`, not `product_id`.
            name, unit_price = product_info(item.product_id)
            row = {
                "type": "product",
                "product": item.product_id,
                "product_name": name,
                "quantity": item.quantity,
                "price": unit_price,
            }
        else:
            row = item.model_dump(mode="json", by_alias=True)
            row["service_data"]["estimated_cost"] = line_total
        items.append(row)

    subtotal = round(subtotal, 2)
    app_fee = APP_FEE if subtotal > 0 else 0.0
    delivery_fee, discount = apply_promo(request.promo_code, subtotal, delivery_fee_for(subtotal))
    tip = round(request.tip_amount, 2)
    total = round(subtotal + delivery_fee + app_fee + tip - discount, 2)

    logger.info(
        f"Priced draft: subtotal={subtotal:.2f} delivery={delivery_fee:.2f} "
        f"app={app_fee:.2f} tip={tip:.2f} discount={discount:.2f} total={total:.2f}"
    )
    return PricedDraft(
        items=items,
        subtotal=subtotal,
        delivery_fee=delivery_fee,
        app_fee=app_fee,
        tip_amount=tip,
        discount=discount,
        total_amount=total,
    )
