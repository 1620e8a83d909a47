from __future__ import annotations

from dataclasses import dataclass

from pydantic import BaseModel, Field


class DeliveryFeeConfig(BaseModel):
    base_fee: float = Field(0, ge=0)
    min_fee: float = Field(0, ge=0)
    free_delivery_threshold: float = Field(0, ge=0)


class AppFeeConfig(BaseModel):
    flat_fee: float = Field(5, ge=0)


@dataclass(frozen=True, slots=True)
class FeeEstimate:
    delivery_fee: float
    app_fee: float


@dataclass(frozen=True, slots=True)
class PriceBreakdown:
    """Figures shown on the checkout summary."""

    subtotal: float
    delivery_fee: float
    app_fee: float
    tip: float
    discount: float
    total: float
    # True once the figures come from a server draft rather than local estimates.
    authoritative: bool = False
