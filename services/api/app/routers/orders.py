from __future__ import annotations

import logging
from datetime import datetime
from uuid import uuid4

from fastapi import APIRouter, Depends, HTTPException
from packages.shared.schemas.order_v1 import (
    ActiveOrderV1,
    AddTipRequestV1,
    ConfirmOrderRequestV1,
    ConfirmOrderResponseV1,
    DraftOrderRequestV1,
    DraftOrderV1,
    OrderStatusV1,
    PaymentMethodV1,
    RateOrderRequestV1,
)
from services.api.app.db.models import DraftOrder, EventLog, Order, utcnow
from services.api.app.db.session import get_db
from services.api.app.services.lifecycle import (
    CANCELLABLE,
    SANDBOX_PARTNER,
    STATUS_MESSAGES,
    TERMINAL,
    TIPPABLE,
    next_status,
)
from services.api.app.services.pricing import PromoCodeError, price_draft
from services.api.app.services.signing import draft_ttl, sign_draft, verify_draft_signature
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/orders")


@router.post("/draft", response_model=DraftOrderV1)
def create_draft(payload: DraftOrderRequestV1, db: Session = Depends(get_db)) -> DraftOrderV1:
    try:
        priced = price_draft(payload)
    except PromoCodeError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    draft_id = uuid4().hex
    expires = utcnow() + draft_ttl()
    expires_at = _iso(expires)
    signature = sign_draft(draft_id, priced.total_amount, expires_at)

    db.add(
        DraftOrder(
            id=draft_id,
            signature=signature,
            items_json=priced.items,
            delivery_address_json=payload.delivery_address.model_dump(mode="json", by_alias=True),
            promo_code=payload.promo_code,
            subtotal=priced.subtotal,
            delivery_fee=priced.delivery_fee,
            app_fee=priced.app_fee,
            tip_amount=priced.tip_amount,
            discount=priced.discount,
            total_amount=priced.total_amount,
            expires_at=expires,
        )
    )
    _log_event(db, "DraftOrder", draft_id, "DRAFT_CREATED", {"total_amount": priced.total_amount})
    db.commit()

    return DraftOrderV1(
        draft_order_id=draft_id,
        signature=signature,
        total_amount=priced.total_amount,
        subtotal=priced.subtotal,
        delivery_fee=priced.delivery_fee,
        app_fee=priced.app_fee,
        tip_amount=priced.tip_amount,
        discount=priced.discount,
        expires_at=expires_at,
    )


@router.post("/confirm", response_model=ConfirmOrderResponseV1)
def confirm_order(
    payload: ConfirmOrderRequestV1, db: Session = Depends(get_db)
) -> ConfirmOrderResponseV1:
    draft = db.get(DraftOrder, payload.draft_order_id)
    if draft is None:
        raise HTTPException(status_code=404, detail="Draft order not found")

    if draft.confirmed_at is not None:
        raise HTTPException(status_code=409, detail="Draft order was already confirmed")

    if utcnow() >= draft.expires_at:
        raise HTTPException(
            status_code=410, detail="Draft order expired. Please place the order again."
        )

    if not verify_draft_signature(
        payload.signature, draft.id, draft.total_amount, _iso(draft.expires_at)
    ):
        raise HTTPException(status_code=400, detail="Invalid draft signature")

    if payload.payment_method is not PaymentMethodV1.COD:
        raise HTTPException(status_code=400, detail="Online payment is not available yet")

    draft.confirmed_at = utcnow()
    order_id = uuid4().hex
    status = OrderStatusV1.CONFIRMED
    db.add(
        Order(
            id=order_id,
            draft_id=draft.id,
            order_status=status.value,
            status_message=STATUS_MESSAGES[status],
            payment_method=payload.payment_method.value,
            items_json=draft.items_json,
            delivery_address_json=draft.delivery_address_json,
            total_amount=draft.total_amount,
            tip_amount=draft.tip_amount or None,
        )
    )
    _log_event(db, "Order", order_id, "ORDER_CONFIRMED", {"draft_order_id": draft.id})
    db.commit()
    logger.info(f"Draft {draft.id} confirmed as order {order_id}")

    return ConfirmOrderResponseV1(
        order_id=order_id, order_status=status.value, message="Order placed successfully"
    )


@router.get("/active", response_model=list[ActiveOrderV1])
def list_active_orders(db: Session = Depends(get_db)) -> list[ActiveOrderV1]:
    rows = (
        db.query(Order)
        .filter(Order.order_status.notin_([s.value for s in TERMINAL]))
        .order_by(Order.created_at.desc())
        .limit(20)
        .all()
    )
    return [_order_out(row) for row in rows]


@router.get("/{order_id}", response_model=ActiveOrderV1)
def get_order(order_id: str, db: Session = Depends(get_db)) -> ActiveOrderV1:
    return _order_out(_get_order_or_404(db, order_id))


@router.post("/{order_id}/add-tip")
def add_tip(order_id: str, payload: AddTipRequestV1, db: Session = Depends(get_db)) -> dict:
    if payload.order_id != order_id:
        raise HTTPException(status_code=400, detail="Order id mismatch")

    order = _get_order_or_404(db, order_id)
    if OrderStatusV1(order.order_status) not in TIPPABLE:
        raise HTTPException(
            status_code=409, detail="Tips can only be added while the order is on its way"
        )
    if order.tip_amount:
        raise HTTPException(status_code=409, detail="A tip has already been added")

    order.tip_amount = float(payload.tip_amount)
    _log_event(db, "Order", order.id, "TIP_ADDED", {"tip_amount": payload.tip_amount})
    db.commit()
    return {"order_id": order.id, "tip_amount": order.tip_amount}


@router.post("/{order_id}/rate")
def rate_order(order_id: str, payload: RateOrderRequestV1, db: Session = Depends(get_db)) -> dict:
    if payload.order_id != order_id:
        raise HTTPException(status_code=400, detail="Order id mismatch")

    order = _get_order_or_404(db, order_id)
    if order.order_status != OrderStatusV1.DELIVERED.value:
        raise HTTPException(status_code=409, detail="Only delivered orders can be rated")
    if order.rating is not None:
        raise HTTPException(status_code=409, detail="This order has already been rated")

    order.rating = payload.rating
    order.review = (payload.review or "").strip() or None
    _log_event(db, "Order", order.id, "ORDER_RATED", {"rating": payload.rating})
    db.commit()
    return {"order_id": order.id, "rating": order.rating}


@router.post("/{order_id}/advance", response_model=ActiveOrderV1)
def advance_order(order_id: str, db: Session = Depends(get_db)) -> ActiveOrderV1:
    """Sandbox-only: move an order to its next delivery status."""

    order = _get_order_or_404(db, order_id)
    status = next_status(order.order_status)
    if status is None:
        raise HTTPException(status_code=409, detail=f"Order is already {order.order_status}")

    order.order_status = status.value
    order.status_message = STATUS_MESSAGES[status]
    if status is OrderStatusV1.ASSIGNED:
        order.assigned_at = utcnow()
        order.delivery_partner_json = dict(SANDBOX_PARTNER)

    _log_event(db, "Order", order.id, "STATUS_CHANGED", {"order_status": status.value})
    db.commit()
    return _order_out(order)


@router.post("/{order_id}/cancel", response_model=ActiveOrderV1)
def cancel_order(order_id: str, db: Session = Depends(get_db)) -> ActiveOrderV1:
    order = _get_order_or_404(db, order_id)
    if OrderStatusV1(order.order_status) not in CANCELLABLE:
        raise HTTPException(status_code=409, detail="Order can no longer be cancelled")

    status = OrderStatusV1.CANCELLED
    order.order_status = status.value
    order.status_message = STATUS_MESSAGES[status]
    _log_event(db, "Order", order.id, "STATUS_CHANGED", {"order_status": status.value})
    db.commit()
    return _order_out(order)


def _get_order_or_404(db: Session, order_id: str) -> Order:
    order = db.get(Order, order_id)
    if order is None:
        raise HTTPException(status_code=404, detail="Order not found")
    return order


def _order_out(order: Order) -> ActiveOrderV1:
    return ActiveOrderV1.model_validate(
        {
            "id": order.id,
            "order_status": order.order_status,
            "status_message": order.status_message,
            "items": order.items_json or [],
            "total_amount": order.total_amount,
            "delivery_address": order.delivery_address_json,
            "delivery_partner": order.delivery_partner_json,
            "created_at": _iso(order.created_at),
            "assigned_at": _iso(order.assigned_at) if order.assigned_at else None,
            "tip_amount": order.tip_amount,
            "rating": order.rating,
            "review": order.review,
        }
    )


def _iso(value: datetime) -> str:
    return value.replace(microsecond=0).isoformat() + "Z"


def _log_event(
    db: Session, entity_type: str, entity_id: str, event_type: str, payload: dict
) -> None:
    db.add(
        EventLog(
            id=uuid4().hex,
            entity_type=entity_type,
            entity_id=entity_id,
            event_type=event_type,
            event_payload_json=payload,
        )
    )
