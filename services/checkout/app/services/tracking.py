"""Live tracking for one order.

The tracker owns two timers for its lifetime: a poll that refetches the order until
it reaches a terminal status, and a one-second tick that recomputes the delivery
countdown. `close()` cancels both, and any response that lands after that is dropped.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

from packages.shared.schemas.order_v1 import ActiveOrderV1
from services.checkout.app.client.base import ApiError, OrdersApi
from services.checkout.app.config import CheckoutSettings
from services.checkout.app.services.countdown import (
    WAITING,
    Countdown,
    TimerStatus,
    countdown_anchor,
    derive_countdown,
    utcnow,
)
from services.checkout.app.services.errors import (
    RatingInputError,
    SideFlowError,
    TipNotAllowedError,
    TipRangeError,
    TrackingFetchError,
)
from services.checkout.app.services.scheduler import PeriodicTask

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class StatusStep:
    key: str
    label: str


STATUS_STEPS: tuple[StatusStep, ...] = (
    StatusStep("confirmed", "Confirmed"),
    StatusStep("preparing", "Preparing"),
    StatusStep("assigning", "Finding Partner"),
    StatusStep("assigned", "Assigned"),
    StatusStep("out_for_delivery", "On the Way"),
    StatusStep("arrived", "Arrived"),
    StatusStep("delivered", "Delivered"),
)

TERMINAL_STATUSES = frozenset({"delivered", "cancelled"})
TIP_STATUSES = frozenset({"assigned", "out_for_delivery"})

TIP_PRESETS = (20, 30, 50)
TIP_MIN = 1
TIP_MAX = 500
REVIEW_MAX_LENGTH = 200


def step_index(order_status: str) -> int:
    """Position of a status in STATUS_STEPS, or -1 when the status is not a step."""

    key = (order_status or "").strip().lower()
    for i, step in enumerate(STATUS_STEPS):
        if step.key == key:
            return i
    return -1


def progress_fraction(order_status: str) -> float:
    # Unknown statuses sit on the first step.
    return (max(step_index(order_status), 0) + 1) / len(STATUS_STEPS)


def status_label(order_status: str) -> str:
    idx = step_index(order_status)
    return STATUS_STEPS[idx].label if idx >= 0 else order_status


def is_terminal(order_status: str) -> bool:
    return (order_status or "").strip().lower() in TERMINAL_STATUSES


def parse_tip(raw: int | str) -> int:
    if isinstance(raw, bool):
        raise TipRangeError(TIP_MIN, TIP_MAX)
    if isinstance(raw, int):
        amount = raw
    else:
        try:
            amount = int(str(raw).strip())
        except ValueError as e:
            raise TipRangeError(TIP_MIN, TIP_MAX) from e

    if amount < TIP_MIN or amount > TIP_MAX:
        raise TipRangeError(TIP_MIN, TIP_MAX)
    return amount


class OrderTracker:
    def __init__(
        self,
        api: OrdersApi,
        settings: CheckoutSettings,
        *,
        order_id: str | None = None,
        clock: Callable[[], datetime] = utcnow,
        on_change: Callable[[OrderTracker], None] | None = None,
    ) -> None:
        self._api = api
        self._settings = settings
        self._clock = clock
        self._on_change = on_change
        self.order_id = order_id

        self.order: ActiveOrderV1 | None = None
        self.countdown: Countdown = WAITING
        self.rating_prompt_open = False
        self.not_found = False
        self.closed = False

        self._rating_offered = False
        self._tip_in_flight = False
        self._rating_in_flight = False
        self._poller = PeriodicTask(
            "order-poll", self._poll_once, settings.poll_interval_s
        )
        self._ticker = PeriodicTask(
            "order-countdown", self._tick, settings.countdown_tick_s
        )

    # Derived view state.

    @property
    def step_index(self) -> int:
        return step_index(self.order.order_status) if self.order else -1

    @property
    def progress(self) -> float:
        return progress_fraction(self.order.order_status) if self.order else 0.0

    @property
    def status_label(self) -> str:
        return status_label(self.order.order_status) if self.order else ""

    @property
    def can_add_tip(self) -> bool:
        order = self.order
        if order is None:
            return False
        return order.order_status.lower() in TIP_STATUSES and not order.tip_amount

    @property
    def tip_presets(self) -> tuple[int, ...]:
        # Quick-pick amounts shown beside the custom tip field.
        return TIP_PRESETS if self.can_add_tip else ()

    @property
    def polling(self) -> bool:
        return self._poller.running

    # Lifecycle.

    def start(self) -> None:
        if self.closed:
            raise RuntimeError("Tracker is closed")
        self._poller.start()
        self._ticker.start()

    async def close(self) -> None:
        self.closed = True
        await self._poller.stop()
        await self._ticker.stop()

    async def refresh(self) -> ActiveOrderV1 | None:
        """Fetch the order once and apply it.

        Raises TrackingFetchError; `not_found` marks the order as gone for good.
        """

        try:
            if self.order_id:
                order: ActiveOrderV1 | None = await self._api.get_order(self.order_id)
            else:
                active = await self._api.get_active_orders()
                order = active[0] if active else None
        except ApiError as e:
            if self.closed:
                return None
            if e.not_found:
                self.not_found = True
                raise TrackingFetchError(
                    "This order could not be found or you don't have access to it.",
                    not_found=True,
                ) from e
            raise TrackingFetchError(str(e), not_found=False) from e

        if self.closed:
            # Late response for a session that already ended.
            return None

        self._apply(order)
        return order

    # Side flows.

    async def add_tip(self, amount: int | str) -> bool:
        """Tip the delivery partner. Returns False if a tip request is already running."""

        value = parse_tip(amount)
        order = self.order
        if order is None or not self.can_add_tip:
            raise TipNotAllowedError()
        if self._tip_in_flight:
            return False

        self._tip_in_flight = True
        try:
            try:
                await self._api.add_tip(order.id, value)
            except ApiError as e:
                raise SideFlowError(e.user_message("Failed to add tip")) from e
            logger.info(f"Added tip of {value} to order {order.id}")
        finally:
            self._tip_in_flight = False

        await self._refresh_after_write()
        return True

    async def submit_rating(self, stars: int, review: str | None = None) -> bool:
        if isinstance(stars, bool) or not isinstance(stars, int) or not 1 <= stars <= 5:
            raise RatingInputError("Please select a rating")
        text = (review or "").strip()
        if len(text) > REVIEW_MAX_LENGTH:
            raise RatingInputError(f"Review must be at most {REVIEW_MAX_LENGTH} characters")

        order = self.order
        if order is None:
            raise SideFlowError("There is no order to rate")
        if self._rating_in_flight:
            return False

        self._rating_in_flight = True
        try:
            try:
                await self._api.rate_order(order.id, stars, text or None)
            except ApiError as e:
                # Prompt stays open so the user can retry.
                raise SideFlowError(e.user_message("Failed to submit rating")) from e
        finally:
            self._rating_in_flight = False

        self.rating_prompt_open = False
        await self._refresh_after_write()
        return True

    def dismiss_rating(self) -> None:
        self.rating_prompt_open = False

    # Internals.

    def _apply(self, order: ActiveOrderV1 | None) -> None:
        self.order = order
        if order is not None:
            self.order_id = self.order_id or order.id
            if order.order_status.lower() == "delivered" and not order.rating:
                if not self._rating_offered:
                    self._rating_offered = True
                    self.rating_prompt_open = True
        self._recompute_countdown()
        if self._on_change is not None:
            self._on_change(self)

    def _recompute_countdown(self) -> None:
        order = self.order
        if order is None:
            self.countdown = WAITING
            return

        fresh = derive_countdown(
            order.order_status,
            countdown_anchor(order.assigned_at, order.created_at),
            self._clock(),
            window=timedelta(minutes=self._settings.delivery_window_min),
        )
        # Overtime holds until the order is delivered.
        if (
            self.countdown.status is TimerStatus.OVERTIME
            and fresh.status is not TimerStatus.STOPPED
        ):
            return
        self.countdown = fresh

    async def _poll_once(self) -> bool:
        if self.closed:
            return False
        try:
            await self.refresh()
        except TrackingFetchError as e:
            if e.not_found:
                logger.warning(f"Order {self.order_id} not found; ending tracking session")
                self.closed = True
                self._ticker.cancel()
                if self._on_change is not None:
                    self._on_change(self)
                return False
            logger.warning(f"Order poll failed, retrying in {self._settings.poll_interval_s}s: {e}")
            return True

        if self.order is None or is_terminal(self.order.order_status):
            self._ticker.cancel()
            return False
        return True

    async def _tick(self) -> bool:
        if self.closed:
            return False
        self._recompute_countdown()
        return True

    async def _refresh_after_write(self) -> None:
        try:
            await self.refresh()
        except TrackingFetchError as e:
            if e.not_found:
                await self.close()
                raise
            logger.warning(f"Refetch after update failed; next poll will retry: {e}")
