"""Checkout session: validate, draft, reconcile price, confirm.

One `CheckoutSession` covers one checkout screen. The backend prices a draft and
signs it; if its total agrees with the local estimate the draft is confirmed right
away, otherwise the user has to accept or decline the new total.

    Idle -> Validating -> Submitted -> Accepted -> Confirmed
                                    -> PriceMismatch -> (accept) Accepted
                                                     -> (decline) Idle
                                    -> Failed
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum

from packages.shared.schemas.order_v1 import (
    AddressV1,
    ConfirmOrderResponseV1,
    DraftOrderRequestV1,
    DraftOrderV1,
    PaymentMethodV1,
)
from services.checkout.app.client.base import ApiError, OrdersApi
from services.checkout.app.config import CheckoutSettings
from services.checkout.app.models.fees import FeeEstimate, PriceBreakdown
from services.checkout.app.services.cart import Cart
from services.checkout.app.services.confirmation import OrderConfirmer
from services.checkout.app.services.countdown import utcnow
from services.checkout.app.services.errors import (
    CheckoutError,
    CheckoutValidationError,
    ConfirmationError,
    NegotiationError,
    ValidationRule,
)
from services.checkout.app.services.fees import estimate_fees, estimate_total
from services.checkout.app.services.item_builder import build_order_items

logger = logging.getLogger(__name__)

GENERIC_ORDER_FAILURE = "Failed to place order. Please try again."
ONLINE_PAYMENT_NOTICE = "Online payment integration pending. Please use COD."
DRAFT_EXPIRED = "This order draft has expired. Please place the order again."


class NegotiationState(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    SUBMITTED = "submitted"
    ACCEPTED = "accepted"
    PRICE_MISMATCH = "price_mismatch"
    CONFIRMED = "confirmed"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class PriceMismatchNotice:
    """Not an error: the backend priced the order differently and the user decides."""

    client_total: float
    server_total: float
    draft: DraftOrderV1

    @property
    def message(self) -> str:
        return (
            f"The order total has been updated from ₹{self.client_total:.2f} "
            f"to ₹{self.server_total:.2f}. Please review and confirm."
        )


@dataclass(frozen=True, slots=True)
class CheckoutOutcome:
    state: NegotiationState
    draft: DraftOrderV1 | None = None
    confirmation: ConfirmOrderResponseV1 | None = None
    mismatch: PriceMismatchNotice | None = None
    # User-facing notice for an accepted draft that was not confirmed.
    notice: str | None = None


def totals_match(
    server_total: float,
    client_total: float,
    tolerance: Decimal = Decimal("0.01"),
) -> bool:
    # Decimal so that a difference of exactly the tolerance is accepted.
    diff = abs(Decimal(str(server_total)) - Decimal(str(client_total)))
    return diff <= tolerance


class CheckoutSession:
    def __init__(
        self,
        api: OrdersApi,
        cart: Cart,
        settings: CheckoutSettings,
        *,
        delivery_address: AddressV1 | None = None,
        payment_method: PaymentMethodV1 = PaymentMethodV1.COD,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._api = api
        self._cart = cart
        self._settings = settings
        self._confirmer = OrderConfirmer(api, cart)
        self._clock = clock

        self.delivery_address = delivery_address
        self.payment_method = payment_method
        self.tip: float = 0
        self.promo_code: str | None = None
        self.discount: float = 0

        self.state = NegotiationState.IDLE
        # Latest server pricing, shown instead of local estimates while set.
        self._server: DraftOrderV1 | None = None
        # Draft issued but not yet confirmed.
        self._pending: DraftOrderV1 | None = None
        self._in_flight = False

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    @property
    def pending_draft(self) -> DraftOrderV1 | None:
        return self._pending

    def apply_promo(self, code: str, discount: float) -> None:
        self.promo_code = code.strip().upper() or None
        self.discount = max(0.0, discount)

    def clear_promo(self) -> None:
        self.promo_code = None
        self.discount = 0

    def estimated_fees(self) -> FeeEstimate:
        return estimate_fees(
            self._cart.subtotal, self._settings.delivery_fee, self._settings.app_fee
        )

    def client_total(self) -> float:
        return estimate_total(
            self._cart.subtotal, self.estimated_fees(), tip=self.tip, discount=self.discount
        )

    def breakdown(self) -> PriceBreakdown:
        server = self._server
        if server is not None:
            return PriceBreakdown(
                subtotal=server.subtotal,
                delivery_fee=server.delivery_fee,
                app_fee=server.app_fee,
                tip=self.tip,
                discount=server.discount,
                total=server.total_amount,
                authoritative=True,
            )

        fees = self.estimated_fees()
        return PriceBreakdown(
            subtotal=self._cart.subtotal,
            delivery_fee=fees.delivery_fee,
            app_fee=fees.app_fee,
            tip=self.tip,
            discount=self.discount,
            total=self.client_total(),
        )

    def validate(self) -> None:
        if self.delivery_address is None:
            raise CheckoutValidationError(ValidationRule.ADDRESS_REQUIRED)

        items = self._cart.items()
        if not items:
            raise CheckoutValidationError(ValidationRule.CART_EMPTY)

        if self._cart.subtotal <= 0:
            raise CheckoutValidationError(ValidationRule.SUBTOTAL_NOT_POSITIVE)

        total = self.breakdown().total
        if total <= 0 or total > self._settings.max_order_total:
            raise CheckoutValidationError(ValidationRule.TOTAL_OUT_OF_RANGE)

        for item in items:
            if not item.id or not item.selling_price or item.quantity <= 0:
                raise CheckoutValidationError(ValidationRule.INVALID_ITEMS)

    async def place_order(self) -> CheckoutOutcome | None:
        """Run one checkout attempt. Returns None if an attempt is already running."""

        if self._in_flight:
            logger.info("Ignoring place_order while another checkout request is in flight")
            return None

        self._in_flight = True
        try:
            self.state = NegotiationState.VALIDATING
            try:
                self.validate()
                items = build_order_items(self._cart.items())
            except CheckoutError:
                self.state = NegotiationState.IDLE
                self._reset_server_figures()
                raise

            client_total = self.client_total()
            request = DraftOrderRequestV1(
                items=items,
                delivery_address=self.delivery_address,
                tip_amount=self.tip,
                promo_code=self.promo_code,
            )

            self.state = NegotiationState.SUBMITTED
            self._pending = None
            try:
                draft = await self._api.create_draft(request)
            except ApiError as e:
                self._fail()
                raise NegotiationError(e.user_message(GENERIC_ORDER_FAILURE)) from e

            logger.info(
                f"Draft {draft.draft_order_id} priced at {draft.total_amount:.2f} "
                f"(client estimate {client_total:.2f})"
            )
            self._server = draft
            self._pending = draft
            self.tip = draft.tip_amount

            if not totals_match(draft.total_amount, client_total, self._settings.price_tolerance):
                logger.warning(
                    f"Price mismatch detected: client_total={client_total:.2f} "
                    f"server_total={draft.total_amount:.2f}"
                )
                self.state = NegotiationState.PRICE_MISMATCH
                return CheckoutOutcome(
                    state=self.state,
                    draft=draft,
                    mismatch=PriceMismatchNotice(
                        client_total=client_total,
                        server_total=draft.total_amount,
                        draft=draft,
                    ),
                )

            return await self._proceed(draft)
        finally:
            self._in_flight = False

    async def accept_price(self) -> CheckoutOutcome | None:
        if self._in_flight:
            return None
        if self.state is not NegotiationState.PRICE_MISMATCH or self._pending is None:
            raise RuntimeError("No updated price is waiting for a decision")

        self._in_flight = True
        try:
            return await self._proceed(self._pending)
        finally:
            self._in_flight = False

    def decline_price(self) -> None:
        if self.state is not NegotiationState.PRICE_MISMATCH:
            return
        if self._pending is not None:
            logger.info(f"Updated price declined for draft {self._pending.draft_order_id}")
        self._pending = None
        self._reset_server_figures()
        self.state = NegotiationState.IDLE

    async def retry_confirmation(self) -> CheckoutOutcome | None:
        """Confirm the draft kept from an earlier attempt, if it is still valid."""

        if self._in_flight:
            return None
        draft = self._pending
        if draft is None:
            raise ConfirmationError("Nothing to confirm. Please place the order again.")

        if self._clock() >= draft.expires_at:
            self._pending = None
            self._fail()
            raise ConfirmationError(DRAFT_EXPIRED)

        self._in_flight = True
        try:
            self._server = draft
            return await self._proceed(draft)
        finally:
            self._in_flight = False

    async def _proceed(self, draft: DraftOrderV1) -> CheckoutOutcome:
        self.state = NegotiationState.ACCEPTED
        if self.payment_method is PaymentMethodV1.ONLINE:
            return CheckoutOutcome(state=self.state, draft=draft, notice=ONLINE_PAYMENT_NOTICE)

        try:
            confirmation = await self._confirmer.confirm(
                draft.draft_order_id, draft.signature, self.payment_method
            )
        except ApiError as e:
            # The draft stays pending so the caller may retry while it is unexpired.
            self._fail()
            raise ConfirmationError(e.user_message(GENERIC_ORDER_FAILURE)) from e

        self._pending = None
        self.state = NegotiationState.CONFIRMED
        return CheckoutOutcome(state=self.state, draft=draft, confirmation=confirmation)

    def _fail(self) -> None:
        self.state = NegotiationState.FAILED
        self._reset_server_figures()

    def _reset_server_figures(self) -> None:
        self._server = None
