"""Provisional fee estimates shown before the backend prices a draft."""

from __future__ import annotations

from services.checkout.app.models.fees import AppFeeConfig, DeliveryFeeConfig, FeeEstimate


def estimate_delivery_fee(subtotal: float, config: DeliveryFeeConfig | None) -> float:
    if config is None:
        return 0.0
    if subtotal >= config.free_delivery_threshold:
        return 0.0
    return max(config.base_fee, config.min_fee)


def estimate_app_fee(subtotal: float, config: AppFeeConfig | None) -> float:
    if config is None or subtotal <= 0:
        return 0.0
    return config.flat_fee


def estimate_fees(
    subtotal: float,
    delivery: DeliveryFeeConfig | None,
    app: AppFeeConfig | None,
) -> FeeEstimate:
    return FeeEstimate(
        delivery_fee=estimate_delivery_fee(subtotal, delivery),
        app_fee=estimate_app_fee(subtotal, app),
    )


def estimate_total(
    subtotal: float,
    fees: FeeEstimate,
    *,
    tip: float = 0,
    discount: float = 0,
) -> float:
    return subtotal + fees.delivery_fee + fees.app_fee + tip - discount
