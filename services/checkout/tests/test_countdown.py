from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from packages.shared.schemas.order_v1 import ActiveOrderV1
from services.checkout.app.services.countdown import (
    STOPPED,
    WAITING,
    Countdown,
    TimerStatus,
    countdown_anchor,
    derive_countdown,
    format_countdown,
)

T = datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)


def _at(minutes: float) -> datetime:
    return T + timedelta(minutes=minutes)


def test_counts_down_from_assignment() -> None:
    countdown = derive_countdown("assigned", _at(5), _at(15))

    assert countdown == Countdown(TimerStatus.ACTIVE, 20 * 60)
    assert countdown.display == "20:00"
    assert countdown.label == "Estimated Delivery"
    assert not countdown.urgent


def test_anchor_prefers_assigned_at() -> None:
    assert countdown_anchor(_at(5), T) == _at(5)


def test_anchor_falls_back_to_created_at() -> None:
    assert countdown_anchor(None, T) == T


def test_late_assignment_still_has_a_minute_left() -> None:
    countdown = derive_countdown("out_for_delivery", _at(5), _at(34))

    assert countdown.status is TimerStatus.ACTIVE
    assert countdown.seconds_remaining == 60
    assert countdown.urgent


def test_past_deadline_is_overtime() -> None:
    countdown = derive_countdown("arrived", _at(5), _at(36))

    assert countdown == Countdown(TimerStatus.OVERTIME, 0)
    assert countdown.display == "Soon"
    assert countdown.label == "Delivering Soon"


def test_exact_deadline_is_overtime() -> None:
    assert derive_countdown("assigned", T, _at(30)).status is TimerStatus.OVERTIME


@pytest.mark.parametrize("status", ["confirmed", "preparing", "assigning", "mystery"])
def test_waiting_before_assignment(status: str) -> None:
    countdown = derive_countdown(status, T, _at(100))

    assert countdown is WAITING
    assert countdown.display == "Waiting..."
    assert countdown.label == "Waiting for Assignment"


def test_delivered_stops_the_clock() -> None:
    countdown = derive_countdown("Delivered", T, _at(100))

    assert countdown is STOPPED
    assert countdown.label == "Delivered"


def test_custom_window() -> None:
    countdown = derive_countdown("assigned", T, _at(10), window=timedelta(minutes=45))
    assert countdown.seconds_remaining == 35 * 60


def test_same_inputs_same_output() -> None:
    first = derive_countdown("assigned", _at(5), _at(12))
    second = derive_countdown("assigned", _at(5), _at(12))
    assert first == second


@pytest.mark.parametrize(
    ("seconds", "expected"),
    [
        (None, "Waiting..."),
        (0, "00:00"),
        (-5, "00:00"),
        (59, "00:59"),
        (125, "02:05"),
        (3600, "60:00"),
    ],
)
def test_format_countdown(seconds: int | None, expected: str) -> None:
    assert format_countdown(seconds) == expected


@pytest.mark.parametrize("created_at", ["2024-05-01T10:00:00", "2024-05-01T15:30:00+05:30"])
def test_snapshot_timestamps_are_utc(created_at: str) -> None:
    order = ActiveOrderV1(id="order-1", order_status="assigned", created_at=created_at)

    assert order.created_at == T
    assert derive_countdown(order.order_status, order.created_at, _at(10)).display == "20:00"
