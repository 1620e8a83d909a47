"""Shared order wire schema (v1).

These models describe the JSON exchanged between the checkout client and the orders
backend. Amounts are plain numbers in the store currency (not cents), matching the
backend's responses.

Items are sent as `*OrderItemV1` payloads and read back as `*OrderLineV1` lines: the
backend names the product `product` on the way out, fills in display fields, and
returns addresses without their ids.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import AfterValidator, BaseModel, ConfigDict, Field


def _assume_utc(value: datetime) -> datetime:
    # The backend sometimes drops the offset; its clock is UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


UtcDatetime = Annotated[datetime, AfterValidator(_assume_utc)]


class OrderStatusV1(str, Enum):
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    ASSIGNING = "assigning"
    ASSIGNED = "assigned"
    OUT_FOR_DELIVERY = "out_for_delivery"
    ARRIVED = "arrived"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentMethodV1(str, Enum):
    COD = "cod"
    ONLINE = "online"


class AddressV1(BaseModel):
    # Unknown fields (labels, coordinates, ...) are passed through untouched.
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str = Field(..., alias="_id")
    street: str = ""
    city: str = ""
    state: str = ""
    pincode: str = ""
    mobile_number: str = ""


class OrderAddressV1(BaseModel):
    """An address as stored on an order; the saved-address id is usually gone."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str | None = Field(None, alias="_id")
    street: str = ""
    city: str = ""
    state: str = ""
    pincode: str = ""
    mobile_number: str = ""


class ParcelDimensionsV1(BaseModel):
    length: str = ""
    width: str = ""
    height: str = ""


class PorterServiceDataV1(BaseModel):
    pickup_address: AddressV1
    delivery_address: AddressV1
    dimensions: ParcelDimensionsV1 | None = None
    weight_category: str = "medium"
    phone: str = ""
    estimated_distance: float = 0.0
    estimated_cost: float | None = None
    notes: str = ""
    is_urgent: bool = False


class PrintoutServiceDataV1(BaseModel):
    print_type: Literal["photo", "document"]
    copies: int = Field(..., ge=1)
    pages: int = Field(..., ge=1)
    color: bool
    paper_size: str
    notes: str = ""
    photo_urls: list[str] | None = None
    document_urls: list[str] | None = None


class ProductOrderItemV1(BaseModel):
    type: Literal["product"] = "product"
    product_id: str = Field(..., min_length=1)
    quantity: int = Field(1, ge=1)


class PorterOrderItemV1(BaseModel):
    type: Literal["porter"] = "porter"
    service_data: PorterServiceDataV1


class PrintoutOrderItemV1(BaseModel):
    type: Literal["printout"] = "printout"
    service_data: PrintoutServiceDataV1


OrderItemV1 = Annotated[
    Union[ProductOrderItemV1, PorterOrderItemV1, PrintoutOrderItemV1],
    Field(discriminator="type"),
]


class PorterServiceDetailsV1(BaseModel):
    model_config = ConfigDict(extra="allow")

    pickup_address: OrderAddressV1
    delivery_address: OrderAddressV1
    dimensions: ParcelDimensionsV1 | None = None
    # Stored either as a category name or as a weight in kg.
    weight_category: int | float | str = "medium"
    phone: str = ""
    estimated_distance: float = 0.0
    estimated_cost: float | None = None
    notes: str | None = None
    is_urgent: bool = False


class ProductOrderLineV1(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: Literal["product"] = "product"
    product: str
    product_name: str | None = None
    product_image: list[str] | None = None
    quantity: int = 1
    price: float = 0


class PorterOrderLineV1(BaseModel):
    type: Literal["porter"] = "porter"
    service_data: PorterServiceDetailsV1


class PrintoutOrderLineV1(BaseModel):
    type: Literal["printout"] = "printout"
    service_data: PrintoutServiceDataV1


OrderLineV1 = Annotated[
    Union[ProductOrderLineV1, PorterOrderLineV1, PrintoutOrderLineV1],
    Field(discriminator="type"),
]


class DraftOrderRequestV1(BaseModel):
    items: list[OrderItemV1] = Field(..., min_length=1)
    delivery_address: AddressV1
    tip_amount: float = Field(0, ge=0)
    promo_code: str | None = None


class DraftOrderV1(BaseModel):
    draft_order_id: str
    # Opaque to the client. Echoed back unmodified at confirmation.
    signature: str
    total_amount: float
    subtotal: float
    delivery_fee: float
    app_fee: float
    tip_amount: float = 0
    discount: float = 0
    expires_at: UtcDatetime


class ConfirmOrderRequestV1(BaseModel):
    draft_order_id: str
    signature: str
    payment_method: PaymentMethodV1


class ConfirmOrderResponseV1(BaseModel):
    order_id: str
    order_status: str
    message: str = ""


class DeliveryPartnerV1(BaseModel):
    name: str
    phone: str = ""
    rating: float = 0
    deliveries: int = 0


class ActiveOrderV1(BaseModel):
    id: str
    order_status: str
    status_message: str = ""
    items: list[OrderLineV1] = Field(default_factory=list)
    total_amount: float = 0
    delivery_address: dict[str, Any] | None = None
    delivery_partner: DeliveryPartnerV1 | None = None
    created_at: UtcDatetime
    assigned_at: UtcDatetime | None = None
    # Minutes, informational only.
    estimated_delivery_time: int | None = None
    tip_amount: float | None = None
    rating: int | None = None
    review: str | None = None


class AddTipRequestV1(BaseModel):
    tip_amount: int = Field(..., ge=1, le=500)
    order_id: str


class RateOrderRequestV1(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    review: str | None = Field(None, max_length=200)
    order_id: str
