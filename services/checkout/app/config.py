from __future__ import annotations

import os
from dataclasses import dataclass
from decimal import Decimal

from services.checkout.app.models.fees import AppFeeConfig, DeliveryFeeConfig


@dataclass(frozen=True, slots=True)
class CheckoutSettings:
    """Client-side knobs for checkout and tracking.

    Env vars:
    - DOORSTEP_POLL_INTERVAL_S (default: 10)
    - DOORSTEP_COUNTDOWN_TICK_S (default: 1)
    - DOORSTEP_BANNER_POLL_INTERVAL_S (default: 15)
    - DOORSTEP_DELIVERY_WINDOW_MIN (default: 30)
    - DOORSTEP_PRICE_TOLERANCE (default: 0.01)
    - DOORSTEP_MAX_ORDER_TOTAL (default: 100000)
    - DOORSTEP_DELIVERY_BASE_FEE / _MIN_FEE / _FREE_THRESHOLD (defaults: 40 / 0 / 500)
    - DOORSTEP_APP_FEE (default: 5)
    """

    poll_interval_s: float = 10.0
    countdown_tick_s: float = 1.0
    banner_poll_interval_s: float = 15.0
    delivery_window_min: int = 30
    price_tolerance: Decimal = Decimal("0.01")
    max_order_total: float = 100000.0
    delivery_fee: DeliveryFeeConfig | None = None
    app_fee: AppFeeConfig | None = None

    @classmethod
    def from_env(cls) -> "CheckoutSettings":
        return cls(
            poll_interval_s=float(os.getenv("DOORSTEP_POLL_INTERVAL_S", "10")),
            countdown_tick_s=float(os.getenv("DOORSTEP_COUNTDOWN_TICK_S", "1")),
            banner_poll_interval_s=float(os.getenv("DOORSTEP_BANNER_POLL_INTERVAL_S", "15")),
            delivery_window_min=int(os.getenv("DOORSTEP_DELIVERY_WINDOW_MIN", "30")),
            price_tolerance=Decimal(os.getenv("DOORSTEP_PRICE_TOLERANCE", "0.01")),
            max_order_total=float(os.getenv("DOORSTEP_MAX_ORDER_TOTAL", "100000")),
            delivery_fee=DeliveryFeeConfig(
                base_fee=float(os.getenv("DOORSTEP_DELIVERY_BASE_FEE", "40")),
                min_fee=float(os.getenv("DOORSTEP_DELIVERY_MIN_FEE", "0")),
                free_delivery_threshold=float(os.getenv("DOORSTEP_DELIVERY_FREE_THRESHOLD", "500")),
            ),
            app_fee=AppFeeConfig(flat_fee=float(os.getenv("DOORSTEP_APP_FEE", "5"))),
        )
