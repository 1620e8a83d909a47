"""Delivery countdown derived from an order snapshot.

The countdown is recomputed from scratch on every tick; nothing here keeps state.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum

# Statuses in which a partner is on the job and the clock is running.
COUNTING_STATUSES = frozenset({"assigned", "out_for_delivery", "arrived"})

URGENT_THRESHOLD_S = 5 * 60


class TimerStatus(str, Enum):
    WAITING = "waiting"
    ACTIVE = "active"
    OVERTIME = "overtime"
    STOPPED = "stopped"


@dataclass(frozen=True, slots=True)
class Countdown:
    status: TimerStatus
    # Whole seconds left; None while waiting or once delivered.
    seconds_remaining: int | None = None

    @property
    def urgent(self) -> bool:
        return (
            self.status is TimerStatus.ACTIVE
            and self.seconds_remaining is not None
            and self.seconds_remaining < URGENT_THRESHOLD_S
        )

    @property
    def label(self) -> str:
        if self.status is TimerStatus.WAITING:
            return "Waiting for Assignment"
        if self.status is TimerStatus.STOPPED:
            return "Delivered"
        if self.status is TimerStatus.OVERTIME:
            return "Delivering Soon"
        return "Estimated Delivery"

    @property
    def display(self) -> str:
        if self.status is TimerStatus.OVERTIME:
            return "Soon"
        return format_countdown(self.seconds_remaining)


WAITING = Countdown(TimerStatus.WAITING)
STOPPED = Countdown(TimerStatus.STOPPED)


def derive_countdown(
    order_status: str,
    anchor: datetime,
    now: datetime,
    *,
    window: timedelta = timedelta(minutes=30),
) -> Countdown:
    """Countdown for an order, given the time the delivery clock started.

    `anchor` is the partner assignment time, or the order creation time when the
    backend did not report one (see `countdown_anchor`).
    """

    status = (order_status or "").strip().lower()
    if status == "delivered":
        return STOPPED
    if status not in COUNTING_STATUSES:
        return WAITING

    remaining = (anchor + window) - now
    if remaining <= timedelta(0):
        return Countdown(TimerStatus.OVERTIME, 0)
    return Countdown(TimerStatus.ACTIVE, int(remaining.total_seconds()))


def countdown_anchor(assigned_at: datetime | None, created_at: datetime) -> datetime:
    return assigned_at or created_at


def format_countdown(seconds: int | None) -> str:
    if seconds is None:
        return "Waiting..."
    if seconds <= 0:
        return "00:00"
    mins, secs = divmod(seconds, 60)
    return f"{mins:02d}:{secs:02d}"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
