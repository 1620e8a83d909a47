from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from decimal import Decimal

import pytest
from packages.shared.schemas.order_v1 import AddressV1, PaymentMethodV1
from services.checkout.app.client.base import ApiError
from services.checkout.app.config import CheckoutSettings
from services.checkout.app.models.cart import CartScope, ProductLineItem
from services.checkout.app.models.fees import AppFeeConfig, DeliveryFeeConfig
from services.checkout.app.services.cart import Cart
from services.checkout.app.services.errors import (
    CheckoutValidationError,
    ConfirmationError,
    NegotiationError,
    ValidationRule,
)
from services.checkout.app.services.negotiation import (
    DRAFT_EXPIRED,
    GENERIC_ORDER_FAILURE,
    ONLINE_PAYMENT_NOTICE,
    CheckoutSession,
    NegotiationState,
    totals_match,
)

HOME = AddressV1(_id="addr-home", street="221B Baker St", city="Pune")


def _session(
    api, *prices: float, settings: CheckoutSettings | None = None, **kwargs
) -> CheckoutSession:
    cart = Cart(api, authenticated=True)
    for i, price in enumerate(prices):
        cart.add_item(ProductLineItem(id=f"p{i}", name=f"Item {i}", selling_price=price))
    kwargs.setdefault("delivery_address", HOME)
    return CheckoutSession(api, cart, settings or CheckoutSettings(), **kwargs)


@pytest.mark.parametrize(
    ("server", "client", "expected"),
    [
        (523.39, 523.40, True),
        (523.40, 523.40, True),
        (523.389, 523.40, False),
        (523.38, 523.40, False),
    ],
)
def test_totals_match_tolerance(server: float, client: float, expected: bool) -> None:
    assert totals_match(server, client, Decimal("0.01")) is expected


@pytest.mark.anyio
async def test_missing_address_fails_before_any_request(api) -> None:
    session = _session(api, 100, delivery_address=None)

    with pytest.raises(CheckoutValidationError) as exc:
        await session.place_order()

    assert exc.value.rule is ValidationRule.ADDRESS_REQUIRED
    assert str(exc.value) == "Please select a delivery address"
    assert session.state is NegotiationState.IDLE
    assert api.calls == []


@pytest.mark.anyio
@pytest.mark.parametrize(
    ("prices", "settings", "rule"),
    [
        ((), CheckoutSettings(), ValidationRule.CART_EMPTY),
        ((0,), CheckoutSettings(), ValidationRule.SUBTOTAL_NOT_POSITIVE),
        ((200,), CheckoutSettings(max_order_total=100), ValidationRule.TOTAL_OUT_OF_RANGE),
        ((100, 0), CheckoutSettings(), ValidationRule.INVALID_ITEMS),
    ],
)
async def test_validation_rules(api, prices, settings, rule) -> None:
    session = _session(api, *prices, settings=settings)

    with pytest.raises(CheckoutValidationError) as exc:
        await session.place_order()

    assert exc.value.rule is rule
    assert api.calls == []


@pytest.mark.anyio
async def test_matching_total_confirms_and_clears_both_scopes(api, make_draft) -> None:
    api.draft = make_draft(523.39)
    session = _session(api, 523.40)
    cart = session._cart
    cart.authenticated = False
    cart.add_item(ProductLineItem(id="g1", selling_price=10))
    cart.authenticated = True

    outcome = await session.place_order()

    assert outcome.state is NegotiationState.CONFIRMED
    assert outcome.confirmation.order_id == "order-1"
    assert api.names() == ["create_draft", "confirm_order"]
    confirm = api.calls[1][1]
    assert confirm.draft_order_id == "draft-1"
    assert confirm.signature == "sig-abc"
    assert confirm.payment_method is PaymentMethodV1.COD
    assert cart.is_empty(CartScope.USER)
    assert cart.is_empty(CartScope.GUEST)


@pytest.mark.anyio
async def test_draft_request_carries_items_tip_and_promo(api, make_draft) -> None:
    api.draft = make_draft(130.0, tip_amount=30)
    session = _session(api, 100)
    session.tip = 30
    session.apply_promo(" save10 ", 0)

    await session.place_order()

    request = api.calls[0][1]
    assert [it.product_id for it in request.items] == ["p0"]
    assert request.tip_amount == 30
    assert request.promo_code == "SAVE10"
    assert request.delivery_address.id == "addr-home"


@pytest.mark.anyio
async def test_price_mismatch_waits_for_decision(api, make_draft) -> None:
    api.draft = make_draft(523.38)
    session = _session(api, 523.40)

    outcome = await session.place_order()

    assert outcome.state is NegotiationState.PRICE_MISMATCH
    assert outcome.mismatch.client_total == pytest.approx(523.40)
    assert outcome.mismatch.server_total == 523.38
    assert "₹523.40" in outcome.mismatch.message
    assert "₹523.38" in outcome.mismatch.message
    assert api.names() == ["create_draft"]


@pytest.mark.anyio
async def test_decline_returns_to_idle_without_confirming(api, make_draft) -> None:
    api.draft = make_draft(523.38)
    session = _session(api, 523.40)
    await session.place_order()

    session.decline_price()

    assert session.state is NegotiationState.IDLE
    assert session.pending_draft is None
    assert session.breakdown().authoritative is False
    assert api.names() == ["create_draft"]
    assert not session._cart.is_empty()


@pytest.mark.anyio
async def test_accept_confirms_with_server_draft(api, make_draft) -> None:
    api.draft = make_draft(523.38, draft_order_id="draft-9", signature="sig-9")
    session = _session(api, 523.40)
    await session.place_order()

    outcome = await session.accept_price()

    assert outcome.state is NegotiationState.CONFIRMED
    confirm = api.calls[-1][1]
    assert (confirm.draft_order_id, confirm.signature) == ("draft-9", "sig-9")


@pytest.mark.anyio
async def test_accept_without_mismatch_is_an_error(api) -> None:
    session = _session(api, 100)
    with pytest.raises(RuntimeError):
        await session.accept_price()


@pytest.mark.anyio
async def test_server_fees_replace_estimates(api, make_draft) -> None:
    settings = CheckoutSettings(
        delivery_fee=DeliveryFeeConfig(base_fee=40, free_delivery_threshold=500),
        app_fee=AppFeeConfig(flat_fee=5),
    )
    api.draft = make_draft(455.0, subtotal=450, delivery_fee=0, app_fee=5)
    session = _session(api, 450, settings=settings)

    assert session.breakdown().delivery_fee == 40
    assert session.breakdown().total == 495

    outcome = await session.place_order()

    assert outcome.state is NegotiationState.PRICE_MISMATCH
    shown = session.breakdown()
    assert shown.authoritative is True
    assert shown.delivery_fee == 0
    assert shown.total == 455.0


@pytest.mark.anyio
async def test_online_payment_stops_before_confirm(api, make_draft) -> None:
    api.draft = make_draft(100.0)
    session = _session(api, 100, payment_method=PaymentMethodV1.ONLINE)

    outcome = await session.place_order()

    assert outcome.state is NegotiationState.ACCEPTED
    assert outcome.notice == ONLINE_PAYMENT_NOTICE
    assert outcome.confirmation is None
    assert api.names() == ["create_draft"]


@pytest.mark.anyio
@pytest.mark.parametrize(
    ("detail", "message"),
    [("Store is closed", "Store is closed"), (None, GENERIC_ORDER_FAILURE)],
)
async def test_draft_failure_resets_to_local_figures(api, make_draft, detail, message) -> None:
    session = _session(api, 100)

    api.draft = make_draft(90.0)
    await session.place_order()
    assert session.breakdown().authoritative is True
    session.decline_price()

    api.draft_error = ApiError("POST /orders/draft returned 503", status_code=503, detail=detail)
    with pytest.raises(NegotiationError) as exc:
        await session.place_order()

    assert str(exc.value) == message
    assert session.state is NegotiationState.FAILED
    assert session.breakdown().authoritative is False
    assert session.in_flight is False


@pytest.mark.anyio
async def test_second_place_order_while_in_flight_is_ignored(api, make_draft) -> None:
    api.draft = make_draft(100.0)
    session = _session(api, 100)

    gate = asyncio.Event()
    original = api.create_draft

    async def slow_create_draft(request):
        await gate.wait()
        return await original(request)

    api.create_draft = slow_create_draft

    first = asyncio.create_task(session.place_order())
    await asyncio.sleep(0)
    assert session.in_flight

    assert await session.place_order() is None

    gate.set()
    outcome = await first
    assert outcome.state is NegotiationState.CONFIRMED
    assert api.names().count("create_draft") == 1


@pytest.mark.anyio
async def test_confirm_failure_keeps_cart_and_draft(api, make_draft) -> None:
    api.draft = make_draft(100.0)
    api.confirm_error = ApiError(
        "POST /orders/confirm returned 400", status_code=400, detail="Invalid draft signature"
    )
    session = _session(api, 100)

    with pytest.raises(ConfirmationError, match="Invalid draft signature"):
        await session.place_order()

    assert session.state is NegotiationState.FAILED
    assert session.pending_draft is not None
    assert not session._cart.is_empty()

    api.confirm_error = None
    outcome = await session.retry_confirmation()
    assert outcome.state is NegotiationState.CONFIRMED
    assert session._cart.is_empty()


@pytest.mark.anyio
async def test_retry_after_expiry_discards_draft(api, make_draft) -> None:
    api.draft = make_draft(100.0, expires_at="2024-05-01T10:15:00Z")
    api.confirm_error = ApiError("POST /orders/confirm returned 500", status_code=500)
    session = _session(
        api, 100, clock=lambda: datetime(2024, 5, 1, 10, 20, tzinfo=timezone.utc)
    )

    with pytest.raises(ConfirmationError, match=GENERIC_ORDER_FAILURE):
        await session.place_order()

    with pytest.raises(ConfirmationError) as exc:
        await session.retry_confirmation()

    assert str(exc.value) == DRAFT_EXPIRED
    assert session.pending_draft is None
    assert api.names() == ["create_draft", "confirm_order"]


def _gate_confirm(api) -> asyncio.Event:
    gate = asyncio.Event()
    original = api.confirm_order

    async def slow_confirm_order(request):
        await gate.wait()
        return await original(request)

    api.confirm_order = slow_confirm_order
    return gate


@pytest.mark.anyio
async def test_second_accept_while_confirming_is_ignored(api, make_draft) -> None:
    api.draft = make_draft(523.38)
    session = _session(api, 523.40)
    await session.place_order()
    gate = _gate_confirm(api)

    first = asyncio.create_task(session.accept_price())
    await asyncio.sleep(0)
    assert session.in_flight

    assert await session.accept_price() is None
    assert await session.retry_confirmation() is None

    gate.set()
    outcome = await first
    assert outcome.state is NegotiationState.CONFIRMED
    assert api.names().count("confirm_order") == 1


@pytest.mark.anyio
async def test_second_retry_while_confirming_is_ignored(api, make_draft) -> None:
    api.draft = make_draft(100.0)
    api.confirm_error = ApiError("POST /orders/confirm returned 503", status_code=503)
    session = _session(api, 100)
    with pytest.raises(ConfirmationError):
        await session.place_order()

    api.confirm_error = None
    gate = _gate_confirm(api)
    first = asyncio.create_task(session.retry_confirmation())
    await asyncio.sleep(0)
    assert session.in_flight

    assert await session.retry_confirmation() is None
    assert await session.place_order() is None

    gate.set()
    outcome = await first
    assert outcome.state is NegotiationState.CONFIRMED
    assert api.names() == ["create_draft", "confirm_order", "confirm_order"]
