from __future__ import annotations

import hashlib
import hmac
import json
import os
from datetime import timedelta


def draft_ttl() -> timedelta:
    return timedelta(minutes=float(os.getenv("DOORSTEP_DRAFT_TTL_MIN", "15")))


def _signing_key() -> bytes:
    return os.getenv("DOORSTEP_SANDBOX_SIGNING_KEY", "doorstep-sandbox-key").encode("utf-8")


def _canonical(draft_id: str, total_amount: float, expires_at: str) -> bytes:
    body = {
        "draft_order_id": draft_id,
        "total_amount": f"{total_amount:.2f}",
        "expires_at": expires_at,
    }
    return json.dumps(body, sort_keys=True, separators=(",", ":")).encode("utf-8")


def sign_draft(draft_id: str, total_amount: float, expires_at: str) -> str:
    message = _canonical(draft_id, total_amount, expires_at)
    return hmac.new(_signing_key(), message, hashlib.sha256).hexdigest()


def verify_draft_signature(
    signature: str, draft_id: str, total_amount: float, expires_at: str
) -> bool:
    return hmac.compare_digest(signature, sign_draft(draft_id, total_amount, expires_at))
