from __future__ import annotations

from uuid import uuid4

from fastapi import APIRouter, Depends
from services.api.app.db.models import EventLog
from services.api.app.db.session import get_db
from sqlalchemy.orm import Session

router = APIRouter()


@router.delete("/cart")
def clear_cart(db: Session = Depends(get_db)) -> dict:
    # The sandbox keeps no server-side cart lines; the clear is recorded for audit only.
    db.add(
        EventLog(
            id=uuid4().hex,
            entity_type="Cart",
            entity_id="sandbox",
            event_type="CART_CLEARED",
            event_payload_json={},
        )
    )
    db.commit()
    return {"cleared": True}
