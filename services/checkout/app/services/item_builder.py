"""Turn cart line items into the order item payloads the backend accepts.

Malformed items are dropped one by one and logged. Only an entirely empty result is
an error, so one broken service entry does not block the rest of the order.
"""

from __future__ import annotations

import logging
import math
from typing import Any

from packages.shared.schemas.order_v1 import (
    AddressV1,
    OrderItemV1,
    ParcelDimensionsV1,
    PorterOrderItemV1,
    PorterServiceDataV1,
    PrintoutOrderItemV1,
    PrintoutServiceDataV1,
    ProductOrderItemV1,
)
from pydantic import ValidationError as PydanticValidationError
from services.checkout.app.models.cart import (
    CartLineItem,
    DocumentPrintDetails,
    PhotoPrintDetails,
    PorterLineItem,
    PrintoutLineItem,
    ProductLineItem,
)
from services.checkout.app.services.errors import BuildError

logger = logging.getLogger(__name__)


def build_order_items(items: list[CartLineItem]) -> list[OrderItemV1]:
    built: list[OrderItemV1] = []
    for item in items:
        payload = build_order_item(item)
        if payload is not None:
            built.append(payload)

    logger.info(f"Built {len(built)} valid item(s) out of {len(items)} cart item(s)")

    if not built:
        raise BuildError()
    return built


def build_order_item(item: CartLineItem) -> OrderItemV1 | None:
    try:
        if isinstance(item, ProductLineItem):
            return _product_item(item)
        if isinstance(item, PorterLineItem):
            return _porter_item(item)
        if isinstance(item, PrintoutLineItem):
            return _printout_item(item)
    except (PydanticValidationError, TypeError, ValueError) as e:
        _drop(item, f"could not build payload: {e}")
        return None

    _drop(item, f"unsupported service type {getattr(item, 'service_type', None)!r}")
    return None


def _product_item(item: ProductLineItem) -> ProductOrderItemV1 | None:
    if not item.id:
        _drop(item, "product missing id")
        return None
    quantity = item.quantity if item.quantity and item.quantity > 0 else 1
    return ProductOrderItemV1(product_id=item.id, quantity=quantity)


def _porter_item(item: PorterLineItem) -> PorterOrderItemV1 | None:
    details = item.service_details
    pickup = details.pickup_address
    delivery = details.delivery_address
    if pickup is None or not pickup.id or delivery is None or not delivery.id:
        _drop(item, "porter missing pickup or delivery address")
        return None

    return PorterOrderItemV1(
        service_data=PorterServiceDataV1(
            pickup_address=AddressV1.model_validate(pickup.model_dump(by_alias=True)),
            delivery_address=AddressV1.model_validate(delivery.model_dump(by_alias=True)),
            dimensions=ParcelDimensionsV1(**details.dimensions) if details.dimensions else None,
            weight_category=details.weight or "medium",
            phone=details.phone or "",
            estimated_distance=_to_float(details.distance),
            notes=details.notes or "",
            is_urgent=bool(details.is_urgent),
        )
    )


def _printout_item(item: PrintoutLineItem) -> PrintoutOrderItemV1 | None:
    details = item.service_details

    if isinstance(details, PhotoPrintDetails):
        if not details.photo_size or not details.copies:
            _drop(item, "photo print missing photo size or copies")
            return None

        # One page per photo.
        return PrintoutOrderItemV1(
            service_data=PrintoutServiceDataV1(
                print_type="photo",
                copies=_to_int(details.copies),
                pages=len(details.photos) or 1,
                color=True,
                paper_size=details.photo_size,
                notes=details.notes or "",
                photo_urls=[p.cloud_url for p in details.photos if p.cloud_url],
            )
        )

    if isinstance(details, DocumentPrintDetails):
        if not details.number_of_pages or not details.copies:
            _drop(item, "document print missing page count or copies")
            return None

        return PrintoutOrderItemV1(
            service_data=PrintoutServiceDataV1(
                print_type="document",
                copies=_to_int(details.copies),
                pages=_to_int(details.number_of_pages),
                color=bool(details.color_printing),
                paper_size=details.paper_size or "A4",
                notes=details.notes or "",
                document_urls=[d.cloud_url for d in details.documents if d.cloud_url],
            )
        )

    _drop(item, "unknown print type")
    return None


def _to_int(value: Any) -> int:
    """Leading-integer parse; anything unusable or below 1 becomes 1."""

    text = str(value).strip()
    digits = ""
    for ch in text.lstrip("+"):
        if not ch.isdigit():
            break
        digits += ch
    n = int(digits) if digits else 0
    return n if n >= 1 else 1


def _to_float(value: Any) -> float:
    try:
        out = float(str(value if value is not None else 0).strip())
    except ValueError:
        return 0.0
    return out if math.isfinite(out) else 0.0


def _drop(item: Any, reason: str) -> None:
    logger.warning(f"Dropping cart item {getattr(item, 'id', None)!r}: {reason}")
