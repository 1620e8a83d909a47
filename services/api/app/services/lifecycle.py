from __future__ import annotations

from packages.shared.schemas.order_v1 import OrderStatusV1

STATUS_FLOW: tuple[OrderStatusV1, ...] = (
    OrderStatusV1.CONFIRMED,
    OrderStatusV1.PREPARING,
    OrderStatusV1.ASSIGNING,
    OrderStatusV1.ASSIGNED,
    OrderStatusV1.OUT_FOR_DELIVERY,
    OrderStatusV1.ARRIVED,
    OrderStatusV1.DELIVERED,
)

STATUS_MESSAGES: dict[OrderStatusV1, str] = {
    OrderStatusV1.CONFIRMED: "Your order has been confirmed",
    OrderStatusV1.PREPARING: "Your order is being prepared",
    OrderStatusV1.ASSIGNING: "Looking for a delivery partner nearby",
    OrderStatusV1.ASSIGNED: "A delivery partner has been assigned",
    OrderStatusV1.OUT_FOR_DELIVERY: "Your order is on the way",
    OrderStatusV1.ARRIVED: "Your delivery partner has arrived",
    OrderStatusV1.DELIVERED: "Your order has been delivered",
    OrderStatusV1.CANCELLED: "Your order was cancelled",
}

TERMINAL = frozenset({OrderStatusV1.DELIVERED, OrderStatusV1.CANCELLED})
TIPPABLE = frozenset({OrderStatusV1.ASSIGNED, OrderStatusV1.OUT_FOR_DELIVERY})
CANCELLABLE = frozenset({OrderStatusV1.CONFIRMED, OrderStatusV1.PREPARING, OrderStatusV1.ASSIGNING})

SANDBOX_PARTNER = {
    "name": "Ravi Kumar",
    "phone": "+919800000001",
    "rating": 4.8,
    "deliveries": 1240,
}


def next_status(current: str) -> OrderStatusV1 | None:
    status = OrderStatusV1(current)
    if status in TERMINAL:
        return None
    return STATUS_FLOW[STATUS_FLOW.index(status) + 1]
