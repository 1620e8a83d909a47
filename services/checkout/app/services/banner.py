from __future__ import annotations

import logging
from dataclasses import dataclass

from services.checkout.app.client.base import ApiError, OrdersApi
from services.checkout.app.config import CheckoutSettings
from services.checkout.app.services.scheduler import PeriodicTask
from services.checkout.app.services.tracking import STATUS_STEPS, step_index

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class BannerEntry:
    order_id: str
    order_status: str
    label: str
    status_message: str
    total_amount: float
    # Whole percent, for the banner's progress strip.
    progress_percent: int


def dismissal_key(order_id: str, order_status: str) -> str:
    return f"dismissed_{order_id}_{order_status}"


def banner_entry(
    order_id: str, order_status: str, status_message: str, total: float
) -> BannerEntry:
    idx = step_index(order_status)
    if idx < 0:
        label, percent = "Processing", 20
    else:
        label = STATUS_STEPS[idx].label
        percent = int((idx + 1) * 100 / len(STATUS_STEPS))
    return BannerEntry(
        order_id=order_id,
        order_status=order_status,
        label=label,
        status_message=status_message,
        total_amount=total,
        progress_percent=percent,
    )


class ActiveOrdersBanner:
    """Orders in progress, for the home-screen banner.

    A dismissal hides an order only for its current status; the next status change
    shows it again. Dismissal keys live in the injected set, which the caller may back
    with whatever storage it likes.
    """

    def __init__(
        self,
        api: OrdersApi,
        settings: CheckoutSettings,
        *,
        dismissed: set[str] | None = None,
    ) -> None:
        self._api = api
        self._dismissed = dismissed if dismissed is not None else set()
        self.entries: list[BannerEntry] = []
        self._poller = PeriodicTask(
            "active-orders-banner", self._poll_once, settings.banner_poll_interval_s
        )

    @property
    def visible(self) -> bool:
        return bool(self.entries)

    async def refresh(self) -> list[BannerEntry]:
        try:
            orders = await self._api.get_active_orders()
        except ApiError as e:
            logger.warning(f"Failed to fetch active orders: {e}")
            self.entries = []
            return self.entries

        self.entries = [
            banner_entry(o.id, o.order_status, o.status_message, o.total_amount)
            for o in orders
            if o.order_status.lower() != "delivered"
            and dismissal_key(o.id, o.order_status) not in self._dismissed
        ]
        return self.entries

    def dismiss(self, order_id: str) -> None:
        for entry in self.entries:
            if entry.order_id == order_id:
                self._dismissed.add(dismissal_key(order_id, entry.order_status))
        self.entries = [e for e in self.entries if e.order_id != order_id]

    def start(self) -> None:
        self._poller.start()

    async def stop(self) -> None:
        await self._poller.stop()

    async def _poll_once(self) -> bool:
        await self.refresh()
        return True
